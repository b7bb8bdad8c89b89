from __future__ import annotations

import json
import logging
from types import SimpleNamespace

from fastapi.testclient import TestClient

FLIGHT = json.dumps(
    {
        "title": "Flight to Goa",
        "date": "2024-01-03T10:15:00Z",
        "type": "Transport",
        "subType": "Flight",
        "owners": ["Meera"],
    }
)


def _app_with_client(fake):
    from travel_docs.api.deps import get_extraction_client
    from travel_docs.main import create_app

    app = create_app()
    app.dependency_overrides[get_extraction_client] = lambda: fake
    return app


def test_trips_crud_and_range_validation(fake_client_factory) -> None:
    app = _app_with_client(fake_client_factory(FLIGHT))
    with TestClient(app) as client:
        resp = client.post(
            "/api/trips",
            json={"title": "Goa", "start_date": "2024-01-01", "end_date": "2024-01-10"},
        )
        assert resp.status_code == 200
        trip_id = resp.json()["id"]

        bad = client.post(
            "/api/trips",
            json={"title": "Backwards", "start_date": "2024-02-10", "end_date": "2024-02-01"},
        )
        assert bad.status_code == 400

        resp = client.patch(f"/api/trips/{trip_id}", json={"title": "Goa 2024"})
        assert resp.json()["title"] == "Goa 2024"

        assert [t["id"] for t in client.get("/api/trips").json()] == [trip_id]
        assert client.delete(f"/api/trips/{trip_id}").status_code == 204
        assert client.get(f"/api/trips/{trip_id}").status_code == 404


def test_upload_extracts_and_auto_files(fake_client_factory) -> None:
    fake = fake_client_factory(FLIGHT)
    app = _app_with_client(fake)
    with TestClient(app) as client:
        trip = client.post(
            "/api/trips",
            json={"title": "Goa", "start_date": "2024-01-01", "end_date": "2024-01-10"},
        ).json()

        resp = client.post(
            "/api/documents",
            files={"upload": ("boarding.jpg", b"\xff\xd8\xff fake", "image/jpeg")},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["error"] is None
        assert body["trip_id"] == trip["id"]
        assert body["needs_review"] is False
        assert body["candidates"][0]["occurred_at"] == "2024-01-03T10:15:00.000Z"
        assert len(fake.calls) == 1

        listed = client.get(f"/api/trips/{trip['id']}/documents").json()
        assert [d["title"] for d in listed] == ["Flight to Goa"]
        assert listed[0]["processing_status"] == "SETTLED"


def test_upload_with_auto_parse_off_skips_extraction(fake_client_factory) -> None:
    fake = fake_client_factory(FLIGHT)
    app = _app_with_client(fake)
    with TestClient(app) as client:
        resp = client.post(
            "/api/documents",
            files={"upload": ("voucher.pdf", b"%PDF-1.4", "application/pdf")},
            data={"auto_parse": "false"},
        )
        assert resp.status_code == 200
        assert resp.json()["candidates"] is None
        assert fake.calls == []

        doc = client.get(f"/api/documents/{resp.json()['document_id']}").json()
        assert doc["title"] == "voucher.pdf"
        assert doc["category"] == "Other"
        assert doc["sub_category"] == "PDF"


def test_upload_without_credentials_returns_412() -> None:
    from travel_docs.modules.extraction.client import GeminiExtractionClient

    app = _app_with_client(GeminiExtractionClient(api_key=None))
    with TestClient(app) as client:
        resp = client.post(
            "/api/documents",
            files={"upload": ("boarding.jpg", b"\xff\xd8\xff fake", "image/jpeg")},
            data={"auto_parse": "true"},
        )
        assert resp.status_code == 412
        detail = resp.json()["detail"]
        assert detail["code"] == "credentials_missing"

        doc = client.get(f"/api/documents/{detail['document_id']}").json()
        assert doc["processing_status"] == "SETTLED"
        assert doc["title"] == "boarding.jpg"


def test_upload_to_unknown_trip_is_404(fake_client_factory) -> None:
    app = _app_with_client(fake_client_factory(FLIGHT))
    with TestClient(app) as client:
        resp = client.post(
            "/api/documents",
            files={"upload": ("boarding.jpg", b"\xff\xd8\xff fake", "image/jpeg")},
            data={"trip_id": "999"},
        )
        assert resp.status_code == 404


def test_patch_document_moves_it_between_trips(fake_client_factory) -> None:
    app = _app_with_client(fake_client_factory(FLIGHT))
    with TestClient(app) as client:
        trip = client.post(
            "/api/trips",
            json={"title": "Later", "start_date": "2025-05-01", "end_date": "2025-05-05"},
        ).json()
        uploaded = client.post(
            "/api/documents",
            files={"upload": ("boarding.jpg", b"\xff\xd8\xff fake", "image/jpeg")},
        ).json()

        resp = client.patch(
            f"/api/documents/{uploaded['document_id']}",
            json={"trip_id": trip["id"], "owner": "Meera, Kabir"},
        )
        assert resp.status_code == 200
        assert resp.json()["trip_id"] == trip["id"]
        assert resp.json()["owner"] == "Meera, Kabir"

        missing = client.patch(
            f"/api/documents/{uploaded['document_id']}", json={"trip_id": 12345}
        )
        assert missing.status_code == 404


def test_reprocess_endpoint_enqueues_task(monkeypatch, fake_client_factory) -> None:
    import travel_docs.modules.documents.api as documents_api

    enqueued: list[list[int]] = []

    def _delay(document_ids):
        enqueued.append(list(document_ids))
        return SimpleNamespace(id="task-123")

    monkeypatch.setattr(
        documents_api, "reprocess_documents_task", SimpleNamespace(delay=_delay)
    )

    app = _app_with_client(fake_client_factory(FLIGHT))
    with TestClient(app) as client:
        uploaded = client.post(
            "/api/documents",
            files={"upload": ("boarding.jpg", b"\xff\xd8\xff fake", "image/jpeg")},
            data={"auto_parse": "false"},
        ).json()

        resp = client.post(
            "/api/documents/reprocess", json={"document_ids": [uploaded["document_id"]]}
        )
        assert resp.status_code == 200
        assert resp.json() == {"task_id": "task-123", "document_ids": [uploaded["document_id"]]}
        assert enqueued == [[uploaded["document_id"]]]

        unknown = client.post("/api/documents/reprocess", json={"document_ids": [777]})
        assert unknown.status_code == 404


def test_identity_upload_and_delete(fake_client_factory) -> None:
    fake = fake_client_factory(
        json.dumps(
            {
                "title": "Indian Passport",
                "type": "passport",
                "documentNumber": "Z1234567",
                "expiryDate": "2031-08-14",
                "owner": "Meera Iyer",
            }
        )
    )
    app = _app_with_client(fake)
    with TestClient(app) as client:
        resp = client.post(
            "/api/identity-documents",
            files={"upload": ("passport.png", b"\x89PNG fake", "image/png")},
            data={"auto_parse": "true"},
        )
        assert resp.status_code == 200
        doc = resp.json()["identity_document"]
        assert doc["identity_type"] == "Passport"
        assert doc["document_number"] == "Z1234567"
        assert doc["processing_status"] == "SETTLED"

        assert len(client.get("/api/identity-documents").json()) == 1
        assert client.delete(f"/api/identity-documents/{doc['id']}").status_code == 204
        assert client.get("/api/identity-documents").json() == []


def test_healthz(fake_client_factory) -> None:
    app = _app_with_client(fake_client_factory(FLIGHT))
    with TestClient(app) as client:
        assert client.get("/healthz").json() == {"status": "ok"}
        assert client.get("/healthz/storage").status_code == 200


def test_background_upload_queues_extraction(monkeypatch, fake_client_factory) -> None:
    import travel_docs.modules.documents.api as documents_api

    queued: list[int] = []

    def _delay(document_id):
        queued.append(document_id)
        return SimpleNamespace(id="task-456")

    monkeypatch.setattr(documents_api, "process_document_task", SimpleNamespace(delay=_delay))

    fake = fake_client_factory(FLIGHT)
    app = _app_with_client(fake)
    with TestClient(app) as client:
        resp = client.post(
            "/api/documents",
            files={"upload": ("boarding.jpg", b"\xff\xd8\xff fake", "image/jpeg")},
            data={"auto_parse": "true", "background": "true"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["task_id"] == "task-456"
        assert body["candidates"] is None
        assert queued == [body["document_id"]]
        assert fake.calls == []

        doc = client.get(f"/api/documents/{body['document_id']}").json()
        assert doc["processing_status"] == "PENDING"
        assert doc["title"] == "boarding.jpg"


def test_bulk_update_files_documents_under_one_trip(fake_client_factory) -> None:
    app = _app_with_client(fake_client_factory(FLIGHT))
    with TestClient(app) as client:
        trip = client.post(
            "/api/trips",
            json={"title": "Later", "start_date": "2025-05-01", "end_date": "2025-05-05"},
        ).json()
        ids = [
            client.post(
                "/api/documents",
                files={"upload": (f"doc{n}.jpg", b"\xff\xd8\xff fake", "image/jpeg")},
                data={"auto_parse": "false"},
            ).json()["document_id"]
            for n in range(3)
        ]

        resp = client.post(
            "/api/documents/bulk-update",
            json={"document_ids": [ids[0], ids[2], 999], "trip_id": trip["id"]},
        )
        assert resp.status_code == 200
        assert resp.json() == {"updated": 2}

        filed = client.get(f"/api/trips/{trip['id']}/documents").json()
        assert sorted(d["id"] for d in filed) == [ids[0], ids[2]]
        assert client.get(f"/api/documents/{ids[1]}").json()["trip_id"] is None

        cleared = client.post(
            "/api/documents/bulk-update", json={"document_ids": ids, "trip_id": None}
        )
        assert cleared.json() == {"updated": 3}
        assert client.get(f"/api/trips/{trip['id']}/documents").json() == []

        unknown_trip = client.post(
            "/api/documents/bulk-update", json={"document_ids": ids, "trip_id": 4242}
        )
        assert unknown_trip.status_code == 404


def test_identity_document_can_be_fetched_and_edited(fake_client_factory) -> None:
    app = _app_with_client(fake_client_factory("unused"))
    with TestClient(app) as client:
        created = client.post(
            "/api/identity-documents",
            files={"upload": ("licence.jpg", b"\xff\xd8\xff fake", "image/jpeg")},
            data={"auto_parse": "false"},
        ).json()["identity_document"]

        fetched = client.get(f"/api/identity-documents/{created['id']}").json()
        assert fetched["title"] == "licence.jpg"
        assert fetched["identity_type"] == "Other"

        resp = client.patch(
            f"/api/identity-documents/{created['id']}",
            json={
                "title": "Driving Licence",
                "identity_type": "Driver License",
                "document_number": "MH12 2011 0012345",
                "expiry_date": "2031-02-28T00:00:00Z",
                "owner": "Meera Iyer",
            },
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["identity_type"] == "Driver License"
        assert body["document_number"] == "MH12 2011 0012345"
        assert body["owner"] == "Meera Iyer"
        assert body["processing_status"] == "SETTLED"

        assert (
            client.patch(
                f"/api/identity-documents/{created['id']}", json={"identity_type": None}
            ).status_code
            == 400
        )
        assert client.get("/api/identity-documents/9999").status_code == 404


def test_requests_are_logged_with_status(fake_client_factory, caplog) -> None:
    app = _app_with_client(fake_client_factory(FLIGHT))
    with caplog.at_level(logging.INFO), TestClient(app) as client:
        client.get("/api/trips/123")

    events = [r for r in caplog.records if getattr(r, "event", None) == "http.request"]
    assert [(e.fields["path"], e.fields["status_code"]) for e in events] == [
        ("/api/trips/123", 404)
    ]
    assert events[0].fields["request_id"]

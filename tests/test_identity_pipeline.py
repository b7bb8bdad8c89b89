from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime

import pytest
from sqlalchemy import func, select

from travel_docs.core.db import SessionLocal
from travel_docs.core.events import EventEmitter
from travel_docs.modules.documents.models import ProcessingStatus
from travel_docs.modules.extraction.errors import (
    CredentialsMissingError,
    PlaceholderMissingError,
)
from travel_docs.modules.extraction.service import process_identity_document
from travel_docs.modules.identity.models import IdentityDocument, IdentityType


def _run(session, client, uri, *, enabled=True):
    return asyncio.run(
        process_identity_document(
            session,
            client=client,
            file_uri=uri,
            file_name="visa.jpg",
            auto_parse_enabled=enabled,
            events=EventEmitter("test"),
        )
    )


def test_identity_fields_are_extracted(fake_client_factory, stored_file):
    client = fake_client_factory(
        "```json\n"
        + json.dumps(
            {
                "title": "US Visa",
                "type": "Visa",
                "documentNumber": "V998877",
                "issueDate": "2023-04-01",
                "expiryDate": "2033-03-31",
                "owner": "Kabir Shah",
            }
        )
        + "\n```"
    )
    with SessionLocal() as session:
        result = _run(session, client, stored_file(name="visa.jpg"))

        doc = session.get(IdentityDocument, result.identity_document_id)
        assert doc.title == "US Visa"
        assert doc.identity_type == IdentityType.VISA
        assert doc.document_number == "V998877"
        assert doc.owner == "Kabir Shah"
        assert doc.expiry_date.replace(tzinfo=UTC) == datetime(2033, 3, 31, tzinfo=UTC)
        assert doc.processing_status == ProcessingStatus.SETTLED


def test_unknown_identity_type_falls_back_to_other(fake_client_factory, stored_file):
    client = fake_client_factory(json.dumps({"title": "Library card", "type": "Membership"}))
    with SessionLocal() as session:
        result = _run(session, client, stored_file(name="card.jpg"))
        assert result.candidate.identity_type == IdentityType.OTHER


def test_identity_missing_credentials_settles_and_reraises(fake_client_factory, stored_file):
    client = fake_client_factory(CredentialsMissingError())
    with SessionLocal() as session:
        with pytest.raises(CredentialsMissingError) as exc_info:
            _run(session, client, stored_file(name="visa.jpg"))

        doc = session.get(IdentityDocument, exc_info.value.document_id)
        assert doc.processing_status == ProcessingStatus.SETTLED
        assert doc.title == "visa.jpg"


def test_identity_bad_response_keeps_placeholder(fake_client_factory, stored_file):
    client = fake_client_factory("not json")
    with SessionLocal() as session:
        result = _run(session, client, stored_file(name="visa.jpg"))

        assert result.error is not None
        doc = session.get(IdentityDocument, result.identity_document_id)
        assert doc.identity_type == IdentityType.OTHER
        assert doc.processing_status == ProcessingStatus.SETTLED


@pytest.mark.parametrize("answer", [json.dumps({"title": "PAN", "type": "PAN Card"}), "not json"])
def test_identity_records_settle_through_the_transition_function(
    monkeypatch, fake_client_factory, stored_file, answer
):
    import travel_docs.modules.extraction.service as service_mod

    settled: list[int] = []
    real_settle = service_mod.settle_processing

    def _spy(doc):
        settled.append(doc.id)
        real_settle(doc)

    monkeypatch.setattr(service_mod, "settle_processing", _spy)

    with SessionLocal() as session:
        result = _run(session, fake_client_factory(answer), stored_file(name="pan.jpg"))

    assert settled == [result.identity_document_id]


def test_identity_deleted_during_extraction_returns_result(stored_file):
    class DeletingClient:
        async def extract(self, file_uri: str, *, prompt: str = "") -> str:
            with SessionLocal() as other:
                for doc in other.scalars(select(IdentityDocument)):
                    other.delete(doc)
                other.commit()
            return json.dumps({"title": "US Visa", "type": "Visa"})

    with SessionLocal() as session:
        result = _run(session, DeletingClient(), stored_file(name="visa.jpg"))

        assert isinstance(result.error, PlaceholderMissingError)
        assert session.scalar(select(func.count()).select_from(IdentityDocument)) == 0

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from fastapi import HTTPException

from travel_docs.core.db import SessionLocal
from travel_docs.core.storage import get_storage, uri_to_path
from travel_docs.modules.documents.models import (
    DocumentCategory,
    DocumentRecord,
    ProcessingStatus,
)
from travel_docs.modules.documents.service import (
    ProcessingStateError,
    create_document,
    delete_document,
    list_documents,
    settle_processing,
    start_processing,
)
from travel_docs.modules.trips.service import (
    create_trip,
    delete_trip,
    find_containing_trip,
    list_trips_chronological,
    update_trip,
)


def _doc(session, *, uri: str, title: str = "doc", trip_id=None, when=None) -> DocumentRecord:
    return create_document(
        session,
        source_uri=uri,
        title=title,
        occurred_at=when or datetime(2024, 1, 3, 9, 0, tzinfo=UTC),
        category=DocumentCategory.STAY,
        trip_id=trip_id,
    )


def test_trip_end_before_start_is_rejected():
    with SessionLocal() as session:
        with pytest.raises(HTTPException) as exc_info:
            create_trip(
                session, title="Bad", start_date=date(2024, 1, 10), end_date=date(2024, 1, 1)
            )
        assert exc_info.value.status_code == 400

        trip = create_trip(
            session, title="Ok", start_date=date(2024, 1, 1), end_date=date(2024, 1, 10)
        )
        with pytest.raises(HTTPException):
            update_trip(session, trip=trip, end_date=date(2023, 12, 31))


def test_single_day_trip_contains_its_day():
    with SessionLocal() as session:
        trip = create_trip(
            session, title="Day trip", start_date=date(2024, 3, 1), end_date=date(2024, 3, 1)
        )
        trips = list_trips_chronological(session)
        assert find_containing_trip(trips, datetime(2024, 3, 1, 23, 0, tzinfo=UTC)) == trip
        assert find_containing_trip(trips, datetime(2024, 3, 2, 0, 0, tzinfo=UTC)) is None


def test_deleting_trip_unlinks_documents():
    with SessionLocal() as session:
        trip = create_trip(
            session, title="Goa", start_date=date(2024, 1, 1), end_date=date(2024, 1, 10)
        )
        a = _doc(session, uri="file:///a.jpg", trip_id=trip.id)
        b = _doc(session, uri="file:///b.jpg", trip_id=trip.id)

        unlinked = delete_trip(session, trip=trip)

        assert unlinked == 2
        session.expire_all()
        assert session.get(DocumentRecord, a.id).trip_id is None
        assert session.get(DocumentRecord, b.id).trip_id is None


def test_trip_documents_are_listed_chronologically():
    with SessionLocal() as session:
        trip = create_trip(
            session, title="Goa", start_date=date(2024, 1, 1), end_date=date(2024, 1, 10)
        )
        _doc(session, uri="file:///late.jpg", title="late", trip_id=trip.id,
             when=datetime(2024, 1, 8, tzinfo=UTC))
        _doc(session, uri="file:///early.jpg", title="early", trip_id=trip.id,
             when=datetime(2024, 1, 2, tzinfo=UTC))
        _doc(session, uri="file:///loose.jpg", title="loose")

        assert [d.title for d in list_documents(session, trip_id=trip.id)] == ["early", "late"]
        assert len(list_documents(session)) == 3


def test_shared_file_is_removed_with_the_last_record():
    storage = get_storage()
    stored = storage.put(key="documents/shared.jpg", body=b"scan")
    path = uri_to_path(stored.uri)

    with SessionLocal() as session:
        first = _doc(session, uri=stored.uri, title="Pass A")
        second = _doc(session, uri=stored.uri, title="Pass B")

        delete_document(session, document=first)
        assert path.exists()

        delete_document(session, document=second)
        assert not path.exists()


def test_processing_status_transitions():
    with SessionLocal() as session:
        doc = _doc(session, uri="file:///x.jpg")
        assert doc.processing_status == ProcessingStatus.SETTLED

        with pytest.raises(ProcessingStateError):
            settle_processing(doc)

        start_processing(doc)
        assert doc.is_processing
        # Restarting a record stuck in PENDING is allowed.
        start_processing(doc)
        settle_processing(doc)
        assert doc.processing_status == ProcessingStatus.SETTLED

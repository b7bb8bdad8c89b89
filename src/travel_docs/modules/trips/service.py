from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from travel_docs.core.dates import ensure_utc
from travel_docs.core.logging import get_logger, log_event
from travel_docs.modules.documents.models import DocumentRecord
from travel_docs.modules.trips.models import Trip

logger = get_logger(__name__)


def _validate_range(*, start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date",
        )


def create_trip(session: Session, *, title: str, start_date: date, end_date: date) -> Trip:
    _validate_range(start_date=start_date, end_date=end_date)
    trip = Trip(title=title.strip() or "Untitled Trip", start_date=start_date, end_date=end_date)
    session.add(trip)
    session.commit()
    session.refresh(trip)
    return trip


def list_trips(session: Session) -> list[Trip]:
    return list(session.scalars(select(Trip).order_by(Trip.start_date.desc(), Trip.id.desc())))


def list_trips_chronological(session: Session) -> list[Trip]:
    """Oldest start first; the order auto-filing walks trips in."""
    return list(session.scalars(select(Trip).order_by(Trip.start_date.asc(), Trip.id.asc())))


def get_trip(session: Session, *, trip_id: int) -> Trip:
    trip = session.scalar(select(Trip).where(Trip.id == trip_id))
    if not trip:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return trip


def update_trip(session: Session, *, trip: Trip, **changes) -> Trip:
    for field, value in changes.items():
        if value is None:
            continue
        setattr(trip, field, value)
    _validate_range(start_date=trip.start_date, end_date=trip.end_date)
    session.add(trip)
    session.commit()
    session.refresh(trip)
    return trip


def delete_trip(session: Session, *, trip: Trip) -> int:
    """Delete a trip; its documents are unlinked, never deleted."""
    result = session.execute(
        update(DocumentRecord).where(DocumentRecord.trip_id == trip.id).values(trip_id=None)
    )
    unlinked = int(result.rowcount or 0)
    trip_id = trip.id
    session.delete(trip)
    session.commit()
    log_event(logger, "trip.deleted", trip_id=trip_id, documents_unlinked=unlinked)
    return unlinked


def trip_contains(trip: Trip, when: datetime) -> bool:
    day = ensure_utc(when).date()
    return trip.start_date <= day <= trip.end_date


def find_containing_trip(trips: Sequence[Trip], when: datetime) -> Trip | None:
    """First trip (in the given order) whose inclusive date range holds `when`."""
    for trip in trips:
        if trip_contains(trip, when):
            return trip
    return None

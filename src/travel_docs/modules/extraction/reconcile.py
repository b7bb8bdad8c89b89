from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from travel_docs.core.logging import get_logger, log_event, monotonic_ms
from travel_docs.modules.documents.models import (
    DocumentCategory,
    DocumentRecord,
    ProcessingStatus,
)
from travel_docs.modules.documents.service import (
    create_document,
    list_split_siblings,
    settle_processing,
)
from travel_docs.modules.extraction.normalizer import ExtractionCandidate
from travel_docs.modules.trips.models import Trip
from travel_docs.modules.trips.service import find_containing_trip, list_trips_chronological

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlaceholderSnapshot:
    """Field values a record is restored to when its extraction fails."""

    title: str
    occurred_at: datetime
    category: DocumentCategory
    sub_category: str | None
    owner: str | None
    trip_id: int | None

    @classmethod
    def of(cls, document: DocumentRecord) -> PlaceholderSnapshot:
        return cls(
            title=document.title,
            occurred_at=document.occurred_at,
            category=document.category,
            sub_category=document.sub_category,
            owner=document.owner,
            trip_id=document.trip_id,
        )


@dataclass(frozen=True)
class ReconcileOutcome:
    placeholder_id: int
    sibling_ids: tuple[int, ...]
    trip_id: int | None
    auto_filed: bool

    @property
    def document_ids(self) -> tuple[int, ...]:
        return (self.placeholder_id, *self.sibling_ids)


def match_trip(session: Session, when: datetime) -> Trip | None:
    return find_containing_trip(list_trips_chronological(session), when)


def _load_placeholder(session: Session, placeholder_id: int) -> DocumentRecord | None:
    """Re-read the placeholder; it may have been deleted while the model was busy."""
    session.expire_all()
    placeholder = session.scalar(
        select(DocumentRecord).where(DocumentRecord.id == placeholder_id)
    )
    if placeholder is None:
        log_event(logger, "pipeline.placeholder.missing", document_id=placeholder_id)
    return placeholder


def reconcile(
    session: Session,
    *,
    candidates: Sequence[ExtractionCandidate],
    placeholder_id: int,
    source_uri: str,
    explicit_trip_id: int | None = None,
    replace_siblings: bool = False,
) -> ReconcileOutcome | None:
    """
    Write extraction candidates into the store.

    The first candidate overwrites the placeholder and settles it; every other
    candidate becomes a settled sibling record sharing `source_uri`. When no trip
    is pinned, the first candidate's date picks the earliest-starting trip that
    contains it, and that trip applies to all siblings. With `replace_siblings`, records
    previously split from the placeholder are removed first. All writes commit together.

    Returns None without writing anything when the placeholder no longer exists.
    """
    if not candidates:
        raise ValueError("reconcile requires at least one candidate")

    start = time.monotonic()
    first = candidates[0]

    try:
        placeholder = _load_placeholder(session, placeholder_id)
        if placeholder is None:
            session.rollback()
            return None

        trip_id = explicit_trip_id
        auto_filed = False
        if trip_id is None:
            trip = match_trip(session, first.occurred_at)
            if trip is not None:
                trip_id = trip.id
                auto_filed = True
                log_event(
                    logger,
                    "reconcile.trip_matched",
                    document_id=placeholder_id,
                    trip_id=trip.id,
                    trip_title=trip.title,
                )

        placeholder.title = first.title
        placeholder.occurred_at = first.occurred_at
        placeholder.category = first.category
        placeholder.sub_category = first.sub_category
        placeholder.owner = first.owner
        placeholder.trip_id = trip_id
        settle_processing(placeholder)
        session.add(placeholder)

        removed = 0
        if replace_siblings:
            for stale in list_split_siblings(session, document_id=placeholder_id):
                session.delete(stale)
                removed += 1
            session.flush()

        siblings: list[DocumentRecord] = []
        for candidate in candidates[1:]:
            siblings.append(
                create_document(
                    session,
                    source_uri=source_uri,
                    title=candidate.title,
                    occurred_at=candidate.occurred_at,
                    category=candidate.category,
                    sub_category=candidate.sub_category,
                    owner=candidate.owner,
                    trip_id=trip_id,
                    processing_status=ProcessingStatus.SETTLED,
                    split_from_id=placeholder_id,
                    commit=False,
                )
            )
        session.commit()
    except Exception:
        session.rollback()
        raise

    outcome = ReconcileOutcome(
        placeholder_id=placeholder_id,
        sibling_ids=tuple(s.id for s in siblings),
        trip_id=trip_id,
        auto_filed=auto_filed,
    )
    log_event(
        logger,
        "reconcile.finish",
        document_id=placeholder_id,
        sibling_count=len(outcome.sibling_ids),
        siblings_replaced=removed,
        trip_id=trip_id,
        auto_filed=auto_filed,
        duration_ms=monotonic_ms(start),
    )
    return outcome


def revert_placeholder(
    session: Session, *, placeholder_id: int, snapshot: PlaceholderSnapshot
) -> DocumentRecord | None:
    """Degraded path: restore pre-extraction values and clear the processing flag."""
    try:
        placeholder = _load_placeholder(session, placeholder_id)
        if placeholder is None:
            session.rollback()
            return None
        placeholder.title = snapshot.title
        placeholder.occurred_at = snapshot.occurred_at
        placeholder.category = snapshot.category
        placeholder.sub_category = snapshot.sub_category
        placeholder.owner = snapshot.owner
        placeholder.trip_id = snapshot.trip_id
        if placeholder.processing_status == ProcessingStatus.PENDING:
            settle_processing(placeholder)
        session.add(placeholder)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(placeholder)
    return placeholder

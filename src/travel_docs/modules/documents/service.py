from __future__ import annotations

import re
import uuid
from datetime import UTC, datetime

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from travel_docs.core.logging import get_logger, log_event
from travel_docs.core.storage import StoredFile, get_storage
from travel_docs.modules.documents.models import (
    DocumentCategory,
    DocumentRecord,
    ProcessingStatus,
)
from travel_docs.modules.identity.models import IdentityDocument
from travel_docs.modules.trips.models import Trip

logger = get_logger(__name__)

_UPDATABLE_FIELDS = {
    "title",
    "occurred_at",
    "category",
    "sub_category",
    "owner",
    "trip_id",
}


class ProcessingStateError(RuntimeError):
    pass


def start_processing(document: DocumentRecord | IdentityDocument) -> None:
    """Mark a record as having an extraction in flight.

    Allowed from either state: a record left PENDING by a crashed run may be restarted.
    """
    document.processing_status = ProcessingStatus.PENDING


def settle_processing(document: DocumentRecord | IdentityDocument) -> None:
    if document.processing_status != ProcessingStatus.PENDING:
        raise ProcessingStateError(
            f"Document {document.id} is not processing (status={document.processing_status.value})"
        )
    document.processing_status = ProcessingStatus.SETTLED


def is_pdf_file(file_name: str) -> bool:
    return file_name.lower().endswith(".pdf")


def placeholder_sub_category(file_name: str) -> str:
    return "PDF" if is_pdf_file(file_name) else "Image"


def _sanitize_filename(name: str) -> str:
    name = name.replace("\\", "/").split("/")[-1].strip()
    name = " ".join(name.split())
    return re.sub(r"[^A-Za-z0-9._ -]+", "_", name)


def store_upload(*, filename: str, body: bytes) -> StoredFile:
    safe = _sanitize_filename(filename) or "upload.bin"
    return get_storage().put(key=f"documents/{uuid.uuid4()}-{safe}", body=body)


def _assert_trip_exists(session: Session, trip_id: int | None) -> None:
    if trip_id is None:
        return
    if session.get(Trip, trip_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")


def create_document(
    session: Session,
    *,
    source_uri: str,
    title: str,
    occurred_at: datetime,
    category: DocumentCategory,
    sub_category: str | None = None,
    owner: str | None = None,
    trip_id: int | None = None,
    processing_status: ProcessingStatus = ProcessingStatus.SETTLED,
    split_from_id: int | None = None,
    commit: bool = True,
) -> DocumentRecord:
    document = DocumentRecord(
        source_uri=source_uri,
        title=title,
        occurred_at=occurred_at,
        category=category,
        sub_category=sub_category or None,
        owner=owner or None,
        trip_id=trip_id,
        processing_status=processing_status,
        split_from_id=split_from_id,
    )
    session.add(document)
    if commit:
        session.commit()
        session.refresh(document)
    else:
        session.flush()
    return document


def update_document(
    session: Session, *, document: DocumentRecord, commit: bool = True, **changes
) -> DocumentRecord:
    unknown = set(changes) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown document fields: {sorted(unknown)}")
    if "trip_id" in changes:
        _assert_trip_exists(session, changes["trip_id"])
    for field, value in changes.items():
        setattr(document, field, value)
    session.add(document)
    if commit:
        session.commit()
        session.refresh(document)
    return document


def get_document(session: Session, *, document_id: int) -> DocumentRecord:
    document = session.scalar(select(DocumentRecord).where(DocumentRecord.id == document_id))
    if not document:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return document


def list_documents(session: Session, *, trip_id: int | None = None) -> list[DocumentRecord]:
    stmt = select(DocumentRecord)
    if trip_id is not None:
        stmt = stmt.where(DocumentRecord.trip_id == trip_id).order_by(
            DocumentRecord.occurred_at.asc(), DocumentRecord.id.asc()
        )
    else:
        stmt = stmt.order_by(DocumentRecord.occurred_at.desc(), DocumentRecord.id.desc())
    return list(session.scalars(stmt))


def list_split_siblings(session: Session, *, document_id: int) -> list[DocumentRecord]:
    return list(
        session.scalars(
            select(DocumentRecord)
            .where(DocumentRecord.split_from_id == document_id)
            .order_by(DocumentRecord.id.asc())
        )
    )


def delete_document(session: Session, *, document: DocumentRecord) -> None:
    """Delete a record, and its file once no other record references it."""
    document_id = document.id
    source_uri = document.source_uri
    session.delete(document)
    session.commit()

    remaining = session.scalar(
        select(func.count())
        .select_from(DocumentRecord)
        .where(DocumentRecord.source_uri == source_uri)
    )
    file_deleted = False
    if not remaining:
        file_deleted = get_storage().delete(uri=source_uri)
    log_event(
        logger,
        "document.deleted",
        document_id=document_id,
        file_deleted=file_deleted,
        shared_by=int(remaining or 0),
    )


def now_utc() -> datetime:
    return datetime.now(UTC)


def assign_trip(session: Session, *, document_ids: list[int], trip_id: int | None) -> int:
    """File many records under one trip (or unfile them); unknown ids are skipped."""
    _assert_trip_exists(session, trip_id)
    documents = list(
        session.scalars(select(DocumentRecord).where(DocumentRecord.id.in_(document_ids)))
    )
    for document in documents:
        document.trip_id = trip_id
        session.add(document)
    session.commit()
    log_event(
        logger,
        "document.bulk_assigned",
        trip_id=trip_id,
        requested=len(document_ids),
        updated=len(documents),
    )
    return len(documents)

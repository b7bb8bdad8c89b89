from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from travel_docs.core.logging import get_logger, log_event
from travel_docs.core.storage import get_storage
from travel_docs.modules.documents.models import ProcessingStatus
from travel_docs.modules.identity.models import IdentityDocument, IdentityType

logger = get_logger(__name__)

_UPDATABLE_FIELDS = {
    "title",
    "identity_type",
    "document_number",
    "issue_date",
    "expiry_date",
    "owner",
}


def create_identity_document(
    session: Session,
    *,
    source_uri: str,
    title: str,
    processing_status: ProcessingStatus,
) -> IdentityDocument:
    doc = IdentityDocument(
        source_uri=source_uri,
        title=title,
        identity_type=IdentityType.OTHER,
        processing_status=processing_status,
    )
    session.add(doc)
    session.commit()
    session.refresh(doc)
    return doc


def list_identity_documents(session: Session) -> list[IdentityDocument]:
    return list(
        session.scalars(
            select(IdentityDocument).order_by(
                IdentityDocument.created_at.desc(), IdentityDocument.id.desc()
            )
        )
    )


def get_identity_document(session: Session, *, identity_document_id: int) -> IdentityDocument:
    doc = session.scalar(
        select(IdentityDocument).where(IdentityDocument.id == identity_document_id)
    )
    if not doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Identity document not found"
        )
    return doc


def update_identity_document(
    session: Session, *, doc: IdentityDocument, **changes
) -> IdentityDocument:
    unknown = set(changes) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown identity document fields: {sorted(unknown)}")
    for required in ("title", "identity_type"):
        if required in changes and not changes[required]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=f"{required} is required"
            )
    if "title" in changes:
        changes["title"] = changes["title"].strip() or doc.title
    for field, value in changes.items():
        setattr(doc, field, value)
    session.add(doc)
    session.commit()
    session.refresh(doc)
    log_event(
        logger,
        "identity_document.updated",
        identity_document_id=doc.id,
        fields=sorted(changes),
    )
    return doc


def delete_identity_document(session: Session, *, doc: IdentityDocument) -> None:
    doc_id = doc.id
    source_uri = doc.source_uri
    session.delete(doc)
    session.commit()
    file_deleted = get_storage().delete(uri=source_uri)
    log_event(
        logger,
        "identity_document.deleted",
        identity_document_id=doc_id,
        file_deleted=file_deleted,
    )

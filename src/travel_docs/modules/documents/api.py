from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from travel_docs.api.deps import credentials_missing_exception, get_extraction_client
from travel_docs.core.config import settings
from travel_docs.core.db import db_session
from travel_docs.core.logging import get_logger, log_event
from travel_docs.modules.documents.schemas import (
    BulkTripAssignment,
    BulkUpdateResult,
    CandidateOut,
    DocumentOut,
    DocumentUpdate,
    ProcessResultOut,
    ReprocessEnqueued,
    ReprocessRequest,
)
from travel_docs.modules.documents.service import (
    assign_trip,
    delete_document,
    get_document,
    list_documents,
    store_upload,
    update_document,
)
from travel_docs.modules.extraction.client import GeminiExtractionClient
from travel_docs.modules.extraction.errors import CredentialsMissingError
from travel_docs.modules.extraction.service import (
    ProcessResult,
    create_placeholder,
    process_document,
)
from travel_docs.modules.trips.service import get_trip
from travel_docs.worker.tasks import process_document_task, reprocess_documents_task

router = APIRouter(tags=["documents"])
logger = get_logger(__name__)


def _result_out(result: ProcessResult) -> ProcessResultOut:
    candidates = None
    if result.candidates is not None:
        candidates = [
            CandidateOut(
                title=c.title,
                occurred_at=c.occurred_at_iso,
                category=c.category,
                sub_category=c.sub_category,
                owner=c.owner,
                missing_fields=list(c.missing_fields),
            )
            for c in result.candidates
        ]
    outcome = result.outcome
    return ProcessResultOut(
        document_id=result.document_id,
        document_ids=list(outcome.document_ids) if outcome else [result.document_id],
        trip_id=outcome.trip_id if outcome else None,
        candidates=candidates,
        needs_review=result.needs_review,
        error=str(result.error) if result.error is not None else None,
    )


@router.post("/documents", response_model=ProcessResultOut)
async def upload_document(
    upload: UploadFile = File(...),
    trip_id: int | None = Form(default=None),
    auto_parse: bool | None = Form(default=None),
    background: bool = Form(default=False),
    session: Session = Depends(db_session),
    client: GeminiExtractionClient = Depends(get_extraction_client),
) -> ProcessResultOut:
    """
    Store an upload and extract it. With `background`, extraction is queued on the
    worker and the response only carries the placeholder id and task id.
    """
    body = await upload.read()
    filename = upload.filename or "upload.bin"
    log_event(
        logger,
        "upload.received",
        filename=filename,
        content_type=upload.content_type,
        byte_size=len(body),
        trip_id=trip_id,
    )
    if trip_id is not None:
        get_trip(session, trip_id=trip_id)

    stored = store_upload(filename=filename, body=body)
    enabled = settings.auto_parse_enabled if auto_parse is None else auto_parse
    if background and enabled:
        placeholder = create_placeholder(
            session,
            file_uri=stored.uri,
            file_name=filename,
            auto_parse_enabled=True,
            trip_id=trip_id,
        )
        async_result = process_document_task.delay(placeholder.id)
        log_event(
            logger,
            "celery.task.enqueued",
            task_name="process_document",
            celery_task_id=async_result.id,
            document_id=placeholder.id,
        )
        return ProcessResultOut(
            document_id=placeholder.id,
            document_ids=[placeholder.id],
            trip_id=trip_id,
            task_id=async_result.id,
        )

    try:
        result = await process_document(
            session,
            client=client,
            file_uri=stored.uri,
            file_name=filename,
            auto_parse_enabled=enabled,
            trip_id=trip_id,
        )
    except CredentialsMissingError as e:
        raise credentials_missing_exception(document_id=e.document_id) from e
    return _result_out(result)


@router.get("/documents", response_model=list[DocumentOut])
def list_documents_endpoint(
    trip_id: int | None = None,
    session: Session = Depends(db_session),
) -> list[DocumentOut]:
    docs = list_documents(session, trip_id=trip_id)
    return [DocumentOut.model_validate(d, from_attributes=True) for d in docs]


@router.get("/documents/{document_id}", response_model=DocumentOut)
def get_document_endpoint(
    document_id: int,
    session: Session = Depends(db_session),
) -> DocumentOut:
    doc = get_document(session, document_id=document_id)
    return DocumentOut.model_validate(doc, from_attributes=True)


@router.patch("/documents/{document_id}", response_model=DocumentOut)
def update_document_endpoint(
    document_id: int,
    payload: DocumentUpdate,
    session: Session = Depends(db_session),
) -> DocumentOut:
    doc = get_document(session, document_id=document_id)
    updated = update_document(session, document=doc, **payload.model_dump(exclude_unset=True))
    return DocumentOut.model_validate(updated, from_attributes=True)


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document_endpoint(
    document_id: int,
    session: Session = Depends(db_session),
) -> Response:
    doc = get_document(session, document_id=document_id)
    delete_document(session, document=doc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/documents/reprocess", response_model=ReprocessEnqueued)
def reprocess_documents_endpoint(
    payload: ReprocessRequest,
    session: Session = Depends(db_session),
) -> ReprocessEnqueued:
    for document_id in payload.document_ids:
        get_document(session, document_id=document_id)
    async_result = reprocess_documents_task.delay(payload.document_ids)
    log_event(
        logger,
        "celery.task.enqueued",
        task_name="reprocess_documents",
        celery_task_id=async_result.id,
        document_count=len(payload.document_ids),
    )
    return ReprocessEnqueued(task_id=async_result.id, document_ids=payload.document_ids)


@router.post("/documents/bulk-update", response_model=BulkUpdateResult)
def bulk_update_documents_endpoint(
    payload: BulkTripAssignment,
    session: Session = Depends(db_session),
) -> BulkUpdateResult:
    updated = assign_trip(session, document_ids=payload.document_ids, trip_id=payload.trip_id)
    return BulkUpdateResult(updated=updated)

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from travel_docs.api.deps import credentials_missing_exception, get_extraction_client
from travel_docs.core.config import settings
from travel_docs.core.db import db_session
from travel_docs.core.logging import get_logger, log_event
from travel_docs.modules.documents.service import store_upload
from travel_docs.modules.extraction.client import GeminiExtractionClient
from travel_docs.modules.extraction.errors import CredentialsMissingError
from travel_docs.modules.extraction.service import process_identity_document
from travel_docs.modules.identity.schemas import (
    IdentityDocumentOut,
    IdentityDocumentUpdate,
    IdentityProcessResultOut,
)
from travel_docs.modules.identity.service import (
    delete_identity_document,
    get_identity_document,
    list_identity_documents,
    update_identity_document,
)

router = APIRouter(tags=["identity"])
logger = get_logger(__name__)


@router.post("/identity-documents", response_model=IdentityProcessResultOut)
async def upload_identity_document(
    upload: UploadFile = File(...),
    auto_parse: bool | None = Form(default=None),
    session: Session = Depends(db_session),
    client: GeminiExtractionClient = Depends(get_extraction_client),
) -> IdentityProcessResultOut:
    body = await upload.read()
    filename = upload.filename or "upload.bin"
    log_event(
        logger,
        "upload.received",
        filename=filename,
        content_type=upload.content_type,
        byte_size=len(body),
        kind="identity",
    )
    stored = store_upload(filename=filename, body=body)
    enabled = settings.auto_parse_enabled if auto_parse is None else auto_parse
    try:
        result = await process_identity_document(
            session,
            client=client,
            file_uri=stored.uri,
            file_name=filename,
            auto_parse_enabled=enabled,
        )
    except CredentialsMissingError as e:
        raise credentials_missing_exception(document_id=e.document_id) from e

    doc = get_identity_document(session, identity_document_id=result.identity_document_id)
    return IdentityProcessResultOut(
        identity_document=IdentityDocumentOut.model_validate(doc, from_attributes=True),
        error=str(result.error) if result.error is not None else None,
    )


@router.get("/identity-documents", response_model=list[IdentityDocumentOut])
def list_identity_documents_endpoint(
    session: Session = Depends(db_session),
) -> list[IdentityDocumentOut]:
    docs = list_identity_documents(session)
    return [IdentityDocumentOut.model_validate(d, from_attributes=True) for d in docs]


@router.get("/identity-documents/{identity_document_id}", response_model=IdentityDocumentOut)
def get_identity_document_endpoint(
    identity_document_id: int,
    session: Session = Depends(db_session),
) -> IdentityDocumentOut:
    doc = get_identity_document(session, identity_document_id=identity_document_id)
    return IdentityDocumentOut.model_validate(doc, from_attributes=True)


@router.patch("/identity-documents/{identity_document_id}", response_model=IdentityDocumentOut)
def update_identity_document_endpoint(
    identity_document_id: int,
    payload: IdentityDocumentUpdate,
    session: Session = Depends(db_session),
) -> IdentityDocumentOut:
    doc = get_identity_document(session, identity_document_id=identity_document_id)
    updated = update_identity_document(
        session, doc=doc, **payload.model_dump(exclude_unset=True)
    )
    return IdentityDocumentOut.model_validate(updated, from_attributes=True)


@router.delete(
    "/identity-documents/{identity_document_id}", status_code=status.HTTP_204_NO_CONTENT
)
def delete_identity_document_endpoint(
    identity_document_id: int,
    session: Session = Depends(db_session),
) -> Response:
    doc = get_identity_document(session, identity_document_id=identity_document_id)
    delete_identity_document(session, doc=doc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

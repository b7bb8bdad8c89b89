from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from travel_docs.modules.documents.models import ProcessingStatus
from travel_docs.modules.identity.models import IdentityType


class IdentityDocumentOut(BaseModel):
    id: int
    source_uri: str
    title: str
    identity_type: IdentityType
    document_number: str | None
    issue_date: datetime | None
    expiry_date: datetime | None
    owner: str | None
    processing_status: ProcessingStatus
    created_at: datetime
    updated_at: datetime


class IdentityProcessResultOut(BaseModel):
    identity_document: IdentityDocumentOut
    error: str | None = None


class IdentityDocumentUpdate(BaseModel):
    title: str | None = None
    identity_type: IdentityType | None = None
    document_number: str | None = None
    issue_date: datetime | None = None
    expiry_date: datetime | None = None
    owner: str | None = None

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from travel_docs.core.dates import ensure_utc
from travel_docs.modules.documents.models import DocumentCategory, ProcessingStatus


class DocumentOut(BaseModel):
    id: int
    source_uri: str
    title: str
    occurred_at: datetime
    category: DocumentCategory
    sub_category: str | None
    owner: str | None
    trip_id: int | None
    split_from_id: int | None
    processing_status: ProcessingStatus
    created_at: datetime
    updated_at: datetime

    @field_validator("occurred_at", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class DocumentUpdate(BaseModel):
    title: str | None = None
    occurred_at: datetime | None = None
    category: DocumentCategory | None = None
    sub_category: str | None = None
    owner: str | None = None
    trip_id: int | None = None


class CandidateOut(BaseModel):
    title: str
    occurred_at: str
    category: DocumentCategory
    sub_category: str | None
    owner: str | None
    missing_fields: list[str]


class ProcessResultOut(BaseModel):
    document_id: int
    document_ids: list[int] = Field(default_factory=list)
    trip_id: int | None = None
    candidates: list[CandidateOut] | None = None
    needs_review: bool = False
    error: str | None = None
    task_id: str | None = None


class ReprocessRequest(BaseModel):
    document_ids: list[int] = Field(min_length=1)


class ReprocessEnqueued(BaseModel):
    task_id: str | None
    document_ids: list[int]


class BulkTripAssignment(BaseModel):
    document_ids: list[int] = Field(min_length=1)
    trip_id: int | None = None


class BulkUpdateResult(BaseModel):
    updated: int

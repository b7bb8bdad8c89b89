from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from travel_docs.core.dates import isoformat_z, parse_iso_datetime
from travel_docs.modules.documents.models import DocumentCategory, resolve_category
from travel_docs.modules.extraction.errors import ResponseShapeError
from travel_docs.modules.identity.models import IdentityType

UNTITLED_DOCUMENT = "Untitled Document"
UNTITLED_IDENTITY_DOCUMENT = "Untitled Identity Document"

_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*")


@dataclass(frozen=True)
class ExtractionCandidate:
    title: str
    occurred_at: datetime
    category: DocumentCategory
    sub_category: str | None = None
    owner: str | None = None
    missing_fields: tuple[str, ...] = field(default=())

    @property
    def occurred_at_iso(self) -> str:
        return isoformat_z(self.occurred_at)


@dataclass(frozen=True)
class IdentityCandidate:
    title: str
    identity_type: IdentityType
    document_number: str | None = None
    issue_date: datetime | None = None
    expiry_date: datetime | None = None
    owner: str | None = None


@dataclass(frozen=True)
class SingleDocument:
    item: dict[str, Any]


@dataclass(frozen=True)
class DocumentList:
    items: list[dict[str, Any]]


ModelOutput = SingleDocument | DocumentList


def strip_code_fences(raw_text: str) -> str:
    return _FENCE_RE.sub("", raw_text or "").strip()


def parse_model_output(raw_text: str) -> ModelOutput:
    cleaned = strip_code_fences(raw_text)
    if not cleaned:
        raise ResponseShapeError("Model response is empty")
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ResponseShapeError(f"Model response is not valid JSON: {e.msg}") from e

    if isinstance(parsed, dict):
        return SingleDocument(item=parsed)
    if isinstance(parsed, list):
        if not parsed:
            raise ResponseShapeError("Model response contains no documents")
        if not all(isinstance(item, dict) for item in parsed):
            raise ResponseShapeError("Model response array must contain only objects")
        return DocumentList(items=parsed)
    raise ResponseShapeError(f"Model response has unexpected type {type(parsed).__name__}")


def _items(output: ModelOutput) -> list[dict[str, Any]]:
    if isinstance(output, SingleDocument):
        return [output.item]
    return list(output.items)


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    s = " ".join(str(value).split())
    return s or None


def normalize_owner(value: Any) -> str | None:
    """Owners may arrive as a list of names or a single string."""
    if isinstance(value, (list, tuple)):
        names = [_clean_str(v) for v in value]
    else:
        names = [_clean_str(value)]
    names = [n for n in names if n]
    return ", ".join(names) if names else None


def repair_date(value: Any, *, now: datetime | None = None) -> datetime:
    parsed = parse_iso_datetime(value)
    if parsed is not None:
        return parsed
    return now or datetime.now(UTC)


def _candidate_from_item(item: dict[str, Any], *, now: datetime | None) -> ExtractionCandidate:
    raw_category = item.get("type") or item.get("category")
    category, implied_sub = resolve_category(raw_category)

    sub_category = _clean_str(item.get("subType") or item.get("subCategory"))
    if sub_category is None:
        # Unrecognised labels ("Cruise") survive as the sub-category under Other.
        sub_category = implied_sub if category is not None else _clean_str(raw_category)

    owner_value = item.get("owners")
    if owner_value is None or owner_value == []:
        owner_value = item.get("owner")

    return ExtractionCandidate(
        title=_clean_str(item.get("title")) or UNTITLED_DOCUMENT,
        occurred_at=repair_date(item.get("date"), now=now),
        category=category or DocumentCategory.OTHER,
        sub_category=sub_category,
        owner=normalize_owner(owner_value),
    )


def normalize(raw_text: str, *, now: datetime | None = None) -> list[ExtractionCandidate]:
    """Turn raw model text into one candidate per logical document, in input order."""
    output = parse_model_output(raw_text)
    return [_candidate_from_item(item, now=now) for item in _items(output)]


def _resolve_identity_type(value: Any) -> IdentityType:
    if isinstance(value, str):
        label = value.strip().lower()
        for identity_type in IdentityType:
            if identity_type.value.lower() == label:
                return identity_type
    return IdentityType.OTHER


def normalize_identity(raw_text: str) -> IdentityCandidate:
    output = parse_model_output(raw_text)
    item = _items(output)[0]
    return IdentityCandidate(
        title=_clean_str(item.get("title")) or UNTITLED_IDENTITY_DOCUMENT,
        identity_type=_resolve_identity_type(item.get("type")),
        document_number=_clean_str(item.get("documentNumber")),
        issue_date=parse_iso_datetime(item.get("issueDate")),
        expiry_date=parse_iso_datetime(item.get("expiryDate")),
        owner=normalize_owner(item.get("owner")),
    )

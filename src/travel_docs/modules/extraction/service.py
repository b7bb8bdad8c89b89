from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from travel_docs.core.events import (
    EventEmitter,
    documents_changed,
    identity_documents_changed,
)
from travel_docs.core.logging import document_context, get_logger, log_event, monotonic_ms
from travel_docs.modules.documents.models import (
    DocumentCategory,
    DocumentRecord,
    ProcessingStatus,
)
from travel_docs.modules.documents.service import (
    create_document,
    get_document,
    list_split_siblings,
    now_utc,
    placeholder_sub_category,
    settle_processing,
    start_processing,
)
from travel_docs.modules.extraction.client import DOCUMENT_PROMPT, IDENTITY_PROMPT
from travel_docs.modules.extraction.completeness import annotate_all, needs_review
from travel_docs.modules.extraction.errors import (
    CredentialsMissingError,
    PlaceholderMissingError,
)
from travel_docs.modules.extraction.normalizer import (
    ExtractionCandidate,
    IdentityCandidate,
    normalize,
    normalize_identity,
)
from travel_docs.modules.extraction.reconcile import (
    PlaceholderSnapshot,
    ReconcileOutcome,
    reconcile,
    revert_placeholder,
)
from travel_docs.modules.identity.models import IdentityDocument
from travel_docs.modules.identity.service import create_identity_document

logger = get_logger(__name__)


class ExtractionClient(Protocol):
    async def extract(self, file_uri: str, *, prompt: str = ...) -> str: ...


@dataclass
class ProcessResult:
    document_id: int
    candidates: list[ExtractionCandidate] | None = None
    error: Exception | None = None
    outcome: ReconcileOutcome | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def needs_review(self) -> bool:
        return bool(self.candidates) and needs_review(self.candidates or [])


@dataclass
class ReprocessReport:
    succeeded: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    credentials_missing: bool = False

    @property
    def success_count(self) -> int:
        return len(self.succeeded)


async def _run_pipeline(
    session: Session,
    *,
    client: ExtractionClient,
    document: DocumentRecord,
    snapshot: PlaceholderSnapshot,
    explicit_trip_id: int | None,
    events: EventEmitter,
    replace_siblings: bool = False,
) -> ProcessResult:
    document_id = document.id
    source_uri = document.source_uri
    start = time.monotonic()
    with document_context(document_id):
        log_event(
            logger,
            "pipeline.start",
            explicit_trip_id=explicit_trip_id,
            replace_siblings=replace_siblings,
        )
        try:
            raw_text = await client.extract(source_uri, prompt=DOCUMENT_PROMPT)
            candidates = annotate_all(normalize(raw_text))
            outcome = reconcile(
                session,
                candidates=candidates,
                placeholder_id=document_id,
                source_uri=source_uri,
                explicit_trip_id=explicit_trip_id,
                replace_siblings=replace_siblings,
            )
        except CredentialsMissingError as e:
            e.document_id = document_id
            revert_placeholder(session, placeholder_id=document_id, snapshot=snapshot)
            events.emit()
            log_event(
                logger,
                "pipeline.failure",
                error_type="CredentialsMissingError",
                duration_ms=monotonic_ms(start),
            )
            raise
        except Exception as e:  # noqa: BLE001
            revert_placeholder(session, placeholder_id=document_id, snapshot=snapshot)
            events.emit()
            log_event(
                logger,
                "pipeline.failure",
                error_type=type(e).__name__,
                error=str(e),
                duration_ms=monotonic_ms(start),
            )
            return ProcessResult(document_id=document_id, error=e)

        events.emit()
        if outcome is None:
            # Deleted mid-flight; nothing was written.
            return ProcessResult(
                document_id=document_id,
                candidates=candidates,
                error=PlaceholderMissingError(document_id),
            )

        log_event(
            logger,
            "pipeline.finish",
            candidate_count=len(candidates),
            sibling_ids=list(outcome.sibling_ids),
            trip_id=outcome.trip_id,
            needs_review=needs_review(candidates),
            duration_ms=monotonic_ms(start),
        )
    return ProcessResult(document_id=document_id, candidates=candidates, outcome=outcome)


def create_placeholder(
    session: Session,
    *,
    file_uri: str,
    file_name: str,
    auto_parse_enabled: bool,
    trip_id: int | None = None,
    events: EventEmitter = documents_changed,
) -> DocumentRecord:
    """Record a stored file straight away so it is never lost, even if extraction fails."""
    placeholder = create_document(
        session,
        source_uri=file_uri,
        title=file_name,
        occurred_at=now_utc(),
        category=DocumentCategory.OTHER,
        sub_category=placeholder_sub_category(file_name),
        trip_id=trip_id,
        processing_status=(
            ProcessingStatus.PENDING if auto_parse_enabled else ProcessingStatus.SETTLED
        ),
    )
    events.emit()
    log_event(
        logger,
        "pipeline.placeholder.created",
        document_id=placeholder.id,
        file_name=file_name,
        auto_parse_enabled=auto_parse_enabled,
        trip_id=trip_id,
    )
    return placeholder


async def process_document(
    session: Session,
    *,
    client: ExtractionClient,
    file_uri: str,
    file_name: str,
    auto_parse_enabled: bool,
    trip_id: int | None = None,
    events: EventEmitter = documents_changed,
) -> ProcessResult:
    """
    Add a scanned file: create its placeholder record, then extract and reconcile.

    Raises CredentialsMissingError (after settling the placeholder) so callers can
    route the user to configure a key; every other failure is returned in
    `ProcessResult.error`.
    """
    placeholder = create_placeholder(
        session,
        file_uri=file_uri,
        file_name=file_name,
        auto_parse_enabled=auto_parse_enabled,
        trip_id=trip_id,
        events=events,
    )
    if not auto_parse_enabled:
        log_event(logger, "pipeline.skipped", document_id=placeholder.id, reason="auto_parse_off")
        return ProcessResult(document_id=placeholder.id)

    return await _run_pipeline(
        session,
        client=client,
        document=placeholder,
        snapshot=PlaceholderSnapshot.of(placeholder),
        explicit_trip_id=trip_id,
        events=events,
    )


async def process_stored_document(
    session: Session,
    *,
    client: ExtractionClient,
    document_id: int,
    events: EventEmitter = documents_changed,
) -> ProcessResult:
    """
    Extract a placeholder created earlier by `create_placeholder` (queued uploads).

    The trip chosen at upload time, if any, stays pinned.
    """
    document = get_document(session, document_id=document_id)
    if not document.is_processing:
        start_processing(document)
        session.add(document)
        session.commit()
        session.refresh(document)
        events.emit()

    return await _run_pipeline(
        session,
        client=client,
        document=document,
        snapshot=PlaceholderSnapshot.of(document),
        explicit_trip_id=document.trip_id,
        events=events,
    )


async def reprocess_document(
    session: Session,
    *,
    client: ExtractionClient,
    document_id: int,
    events: EventEmitter = documents_changed,
) -> ProcessResult:
    """
    Re-run extraction for an existing record instead of creating a new placeholder.

    Siblings previously split from this record are replaced in the same transaction
    that writes the new candidates, so retries never duplicate them. The record's
    current trip stays pinned.
    """
    document = get_document(session, document_id=document_id)
    snapshot = PlaceholderSnapshot.of(document)

    start_processing(document)
    session.add(document)
    session.commit()
    session.refresh(document)
    events.emit()
    log_event(
        logger,
        "pipeline.reprocess.start",
        document_id=document.id,
        existing_siblings=len(list_split_siblings(session, document_id=document.id)),
    )

    return await _run_pipeline(
        session,
        client=client,
        document=document,
        snapshot=snapshot,
        explicit_trip_id=snapshot.trip_id,
        events=events,
        replace_siblings=True,
    )


async def reprocess_documents(
    session: Session,
    *,
    client: ExtractionClient,
    document_ids: Sequence[int],
    events: EventEmitter = documents_changed,
) -> ReprocessReport:
    """
    Reprocess records one at a time. A failure only affects its own record; a
    missing API key stops the batch since no later record could succeed either.
    """
    report = ReprocessReport()
    start = time.monotonic()
    log_event(logger, "reprocess.batch.start", document_count=len(document_ids))

    for idx, document_id in enumerate(document_ids):
        try:
            result = await reprocess_document(
                session, client=client, document_id=document_id, events=events
            )
        except CredentialsMissingError:
            report.credentials_missing = True
            report.failed.append(document_id)
            report.skipped.extend(document_ids[idx + 1 :])
            log_event(
                logger,
                "reprocess.batch.stopped",
                document_id=document_id,
                reason="credentials_missing",
                succeeded=report.success_count,
                skipped=len(report.skipped),
            )
            break
        except Exception as e:  # noqa: BLE001
            report.failed.append(document_id)
            log_event(
                logger,
                "reprocess.document.failure",
                document_id=document_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            continue

        if result.ok:
            report.succeeded.append(document_id)
        else:
            report.failed.append(document_id)

    log_event(
        logger,
        "reprocess.batch.finish",
        succeeded=report.success_count,
        failed=len(report.failed),
        skipped=len(report.skipped),
        credentials_missing=report.credentials_missing,
        duration_ms=monotonic_ms(start),
    )
    return report


@dataclass
class IdentityProcessResult:
    identity_document_id: int
    candidate: IdentityCandidate | None = None
    error: Exception | None = None


def _reload_identity(session: Session, identity_document_id: int) -> IdentityDocument | None:
    session.expire_all()
    doc = session.scalar(
        select(IdentityDocument).where(IdentityDocument.id == identity_document_id)
    )
    if doc is None:
        log_event(
            logger, "pipeline.placeholder.missing", identity_document_id=identity_document_id
        )
    return doc


async def process_identity_document(
    session: Session,
    *,
    client: ExtractionClient,
    file_uri: str,
    file_name: str,
    auto_parse_enabled: bool,
    events: EventEmitter = identity_documents_changed,
) -> IdentityProcessResult:
    """Identity documents follow the same placeholder / settle / re-raise policy."""
    doc = create_identity_document(
        session,
        source_uri=file_uri,
        title=file_name,
        processing_status=(
            ProcessingStatus.PENDING if auto_parse_enabled else ProcessingStatus.SETTLED
        ),
    )
    events.emit()
    if not auto_parse_enabled:
        return IdentityProcessResult(identity_document_id=doc.id)

    doc_id = doc.id
    start = time.monotonic()
    try:
        raw_text = await client.extract(file_uri, prompt=IDENTITY_PROMPT)
        candidate = normalize_identity(raw_text)
    except Exception as e:
        doc = _reload_identity(session, doc_id)
        if doc is not None and doc.is_processing:
            settle_processing(doc)
            session.add(doc)
            session.commit()
        events.emit()
        log_event(
            logger,
            "pipeline.identity.failure",
            identity_document_id=doc_id,
            error_type=type(e).__name__,
            duration_ms=monotonic_ms(start),
        )
        if isinstance(e, CredentialsMissingError):
            e.document_id = doc_id
            raise
        return IdentityProcessResult(identity_document_id=doc_id, error=e)

    doc = _reload_identity(session, doc_id)
    if doc is None:
        events.emit()
        return IdentityProcessResult(
            identity_document_id=doc_id,
            candidate=candidate,
            error=PlaceholderMissingError(doc_id),
        )

    doc.title = candidate.title
    doc.identity_type = candidate.identity_type
    doc.document_number = candidate.document_number
    doc.issue_date = candidate.issue_date
    doc.expiry_date = candidate.expiry_date
    doc.owner = candidate.owner
    settle_processing(doc)
    session.add(doc)
    session.commit()
    events.emit()
    log_event(
        logger,
        "pipeline.identity.finish",
        identity_document_id=doc_id,
        identity_type=candidate.identity_type.value,
        duration_ms=monotonic_ms(start),
    )
    return IdentityProcessResult(identity_document_id=doc_id, candidate=candidate)

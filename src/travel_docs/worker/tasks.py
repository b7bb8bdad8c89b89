from __future__ import annotations

# Ensure all models are registered before any task runs
# isort: off
import travel_docs.models  # noqa: F401
# isort: on

import asyncio
import time
from typing import Any

from travel_docs.core.db import SessionLocal
from travel_docs.core.logging import (
    get_logger,
    log_event,
    log_exception,
    monotonic_ms,
    reset_task_context,
    set_task_context,
)
from travel_docs.worker.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(name="reprocess_documents", bind=True)
def reprocess_documents_task(self, document_ids: list[int]) -> dict[str, Any]:
    from travel_docs.modules.extraction.client import build_extraction_client
    from travel_docs.modules.extraction.service import reprocess_documents

    task_id = getattr(self.request, "id", None)
    token = set_task_context(task_id)
    start = time.monotonic()
    log_event(
        logger,
        "celery.task.start",
        task_name="reprocess_documents",
        celery_task_id=task_id,
        document_count=len(document_ids),
    )
    try:
        with SessionLocal() as session:
            report = asyncio.run(
                reprocess_documents(
                    session,
                    client=build_extraction_client(),
                    document_ids=[int(i) for i in document_ids],
                )
            )
        log_event(
            logger,
            "celery.task.finish",
            task_name="reprocess_documents",
            celery_task_id=task_id,
            succeeded=report.success_count,
            credentials_missing=report.credentials_missing,
            duration_ms=monotonic_ms(start),
        )
        return {
            "succeeded": report.succeeded,
            "failed": report.failed,
            "skipped": report.skipped,
            "credentials_missing": report.credentials_missing,
        }
    except Exception:
        log_exception(
            logger,
            "celery.task.error",
            task_name="reprocess_documents",
            celery_task_id=task_id,
            duration_ms=monotonic_ms(start),
        )
        raise
    finally:
        reset_task_context(token)


@celery_app.task(name="process_document", bind=True)
def process_document_task(self, document_id: int) -> dict[str, Any]:
    from travel_docs.modules.extraction.client import build_extraction_client
    from travel_docs.modules.extraction.errors import CredentialsMissingError
    from travel_docs.modules.extraction.service import process_stored_document

    task_id = getattr(self.request, "id", None)
    token = set_task_context(task_id)
    start = time.monotonic()
    log_event(
        logger,
        "celery.task.start",
        task_name="process_document",
        celery_task_id=task_id,
        document_id=document_id,
    )
    try:
        with SessionLocal() as session:
            try:
                result = asyncio.run(
                    process_stored_document(
                        session,
                        client=build_extraction_client(),
                        document_id=int(document_id),
                    )
                )
            except CredentialsMissingError:
                # Retrying cannot help until a key is configured; the record is settled.
                log_event(
                    logger,
                    "celery.task.finish",
                    task_name="process_document",
                    celery_task_id=task_id,
                    document_id=document_id,
                    credentials_missing=True,
                    duration_ms=monotonic_ms(start),
                )
                return {
                    "document_id": int(document_id),
                    "document_ids": [],
                    "error": "credentials_missing",
                    "credentials_missing": True,
                }
        outcome = result.outcome
        log_event(
            logger,
            "celery.task.finish",
            task_name="process_document",
            celery_task_id=task_id,
            document_id=document_id,
            ok=result.ok,
            duration_ms=monotonic_ms(start),
        )
        return {
            "document_id": result.document_id,
            "document_ids": list(outcome.document_ids) if outcome else [],
            "error": str(result.error) if result.error is not None else None,
            "credentials_missing": False,
        }
    except Exception:
        log_exception(
            logger,
            "celery.task.error",
            task_name="process_document",
            celery_task_id=task_id,
            document_id=document_id,
            duration_ms=monotonic_ms(start),
        )
        raise
    finally:
        reset_task_context(token)

from __future__ import annotations

from fastapi import HTTPException, status

from travel_docs.modules.extraction.client import GeminiExtractionClient, build_extraction_client

CREDENTIALS_MISSING_CODE = "credentials_missing"


def get_extraction_client() -> GeminiExtractionClient:
    return build_extraction_client()


def credentials_missing_exception(*, document_id: int | None = None) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_412_PRECONDITION_FAILED,
        detail={
            "code": CREDENTIALS_MISSING_CODE,
            "message": "Configure an extraction API key to parse documents.",
            "document_id": document_id,
        },
    )

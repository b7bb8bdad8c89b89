from __future__ import annotations

import base64
import time
from collections.abc import Callable
from typing import Any

import httpx

from travel_docs.core.config import settings
from travel_docs.core.logging import get_logger, log_event, monotonic_ms
from travel_docs.core.storage import read_file_uri, uri_to_path
from travel_docs.modules.documents.models import DocumentCategory
from travel_docs.modules.extraction.errors import (
    CredentialsMissingError,
    ExtractionTransportError,
)
from travel_docs.modules.identity.models import IdentityType

logger = get_logger(__name__)

_MIME_BY_SUFFIX: dict[str, str] = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".webp": "image/webp",
    ".heic": "image/heic",
}

DOCUMENT_PROMPT = (
    "Analyze this travel document. It may contain one or more separate documents "
    "(for example several boarding passes or tickets on one page).\n"
    "Return strict JSON: a single object if there is one document, or an array of "
    "objects if there are several. Each object has these fields:\n"
    "- 'title': A short descriptive title (e.g., 'Flight to Mumbai', "
    "'Hotel Booking - Taj')\n"
    "- 'date': The most relevant date and time in ISO 8601 format (flight departure, "
    "hotel check-in, transaction time). If no date is found, return null.\n"
    "- 'type': One of: "
    + ", ".join(c.value for c in DocumentCategory)
    + "\n"
    "- 'subType': A more specific kind (e.g., Flight, Train, Bus, Hotel, Concert). "
    "If unclear, return null.\n"
    "- 'owners': An array of the names of the people this document belongs to "
    "(passengers, guests, customers). If no name is found, return an empty array.\n\n"
    "Do not include markdown formatting like ```json."
)

IDENTITY_PROMPT = (
    "Analyze this identity/credential document. Extract the following fields in strict "
    "JSON format:\n"
    "- 'title': A descriptive title (e.g., 'Indian Passport', 'US Visa', 'Driver License')\n"
    "- 'type': One of: "
    + ", ".join(t.value for t in IdentityType)
    + "\n"
    "- 'documentNumber': The document/ID number. If not found, return null.\n"
    "- 'issueDate': The issue date in ISO 8601 format. If not found, return null.\n"
    "- 'expiryDate': The expiry date in ISO 8601 format. If not found or the document "
    "does not expire, return null.\n"
    "- 'owner': The holder's name in title case, without titles like Mr/Mrs/Ms. "
    "If not found, return null.\n\n"
    "Return a single JSON object (not an array).\n"
    "Do not include markdown formatting like ```json."
)


def mime_type_for(file_uri: str) -> str:
    suffix = uri_to_path(file_uri).suffix.lower()
    return _MIME_BY_SUFFIX.get(suffix, "image/jpeg")


class GeminiExtractionClient:
    """
    Submits an image/PDF to the Gemini generateContent endpoint and returns the
    model's freeform text answer.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        read_file: Callable[[str], bytes] = read_file_uri,
    ):
        self._api_key = (api_key or "").strip() or None
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._read_file = read_file

    def build_payload(self, *, prompt: str, mime_type: str, data: bytes) -> dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": prompt},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(data).decode("ascii"),
                            }
                        },
                    ]
                }
            ]
        }

    async def extract(self, file_uri: str, *, prompt: str = DOCUMENT_PROMPT) -> str:
        if not self._api_key:
            raise CredentialsMissingError()

        mime_type = mime_type_for(file_uri)
        payload = self.build_payload(
            prompt=prompt, mime_type=mime_type, data=self._read_file(file_uri)
        )
        url = f"{self._base_url}/models/{self._model}:generateContent"

        start = time.monotonic()
        log_event(
            logger,
            "extraction.request",
            model=self._model,
            mime_type=mime_type,
            file_uri=file_uri,
        )
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    url,
                    params={"key": self._api_key},
                    headers={"Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            log_event(
                logger,
                "extraction.failure",
                model=self._model,
                error_type=type(e).__name__,
                duration_ms=monotonic_ms(start),
            )
            raise ExtractionTransportError(
                f"Extraction request failed: {type(e).__name__}"
            ) from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.status_code >= 400:
            upstream = _upstream_error_message(data)
            log_event(
                logger,
                "extraction.failure",
                model=self._model,
                status_code=resp.status_code,
                upstream_message=upstream,
                duration_ms=monotonic_ms(start),
            )
            raise ExtractionTransportError(
                upstream or f"Extraction service returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                upstream_message=upstream,
            )

        text = _response_text(data)
        if not text:
            raise ExtractionTransportError(
                "No response from extraction service", status_code=resp.status_code
            )

        log_event(
            logger,
            "extraction.response",
            model=self._model,
            status_code=resp.status_code,
            text_chars=len(text),
            duration_ms=monotonic_ms(start),
        )
        return text


def _upstream_error_message(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    err = data.get("error")
    if isinstance(err, dict):
        msg = err.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return None


def _response_text(data: Any) -> str | None:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return None
    texts = [p.get("text") for p in parts if isinstance(p, dict)]
    joined = "".join(t for t in texts if isinstance(t, str))
    return joined if joined.strip() else None


def build_extraction_client(
    *, api_key: str | None = None, transport: httpx.AsyncBaseTransport | None = None
) -> GeminiExtractionClient:
    return GeminiExtractionClient(
        api_key=api_key if api_key is not None else settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout=float(settings.extraction_timeout_seconds or 60.0),
        transport=transport,
    )

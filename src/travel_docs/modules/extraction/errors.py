from __future__ import annotations


class ExtractionError(RuntimeError):
    pass


class CredentialsMissingError(ExtractionError):
    """No API key is configured for the extraction service."""

    def __init__(self, message: str = "Extraction API key is not configured"):
        super().__init__(message)
        # Set by the pipeline to the record that was settled before re-raising.
        self.document_id: int | None = None


class ExtractionTransportError(ExtractionError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        upstream_message: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.upstream_message = upstream_message


class ResponseShapeError(ExtractionError):
    """Model text could not be read as the expected JSON document shape."""


class PlaceholderMissingError(ExtractionError):
    """The record being filled in was deleted while its extraction was running."""

    def __init__(self, document_id: int):
        super().__init__(f"Document {document_id} was deleted during extraction")
        self.document_id = document_id

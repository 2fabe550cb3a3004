"""
Error taxonomy for the directory service.

Every error carries an HTTP status so the API layer can render it as
``{"error": ..., "details": ...}`` without knowing where it came from.
"""

from typing import Optional


class DirectoryServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ConfigurationError(DirectoryServiceError):
    """A required credential or setting is missing or malformed."""

    status_code = 500


class EmptyDocumentError(DirectoryServiceError):
    status_code = 400


class InsufficientTextError(DirectoryServiceError):
    """Too little text survived extraction to be worth sending to the model."""

    status_code = 400


class DocumentTooLargeError(DirectoryServiceError):
    status_code = 413


class DocumentParseError(DirectoryServiceError):
    """The uploaded bytes could not be decoded as the declared document type."""

    status_code = 500


class UnsupportedDocumentError(DocumentParseError):
    status_code = 415


class ExtractionServiceError(DirectoryServiceError):
    """OCR or language-model provider call failed."""

    status_code = 502

    def __init__(self, message: str, provider_status: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message, details=details)
        self.provider_status = provider_status

    def to_body(self) -> dict:
        body = super().to_body()
        if self.provider_status is not None:
            body["providerStatus"] = self.provider_status
        return body


class ExtractionParseError(DirectoryServiceError):
    """Model content was not the expected JSON shape. Recovered locally, never rendered."""


class AirtableError(DirectoryServiceError):
    """Non-2xx answer or transport failure talking to Airtable."""

    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None, payload: Optional[object] = None):
        details = None
        if payload is not None:
            details = str(payload)[:500]
        super().__init__(message, details=details)
        self.status = status
        self.payload = payload


class UpsertError(AirtableError):
    """A write batch was rejected. Reported in the upsert status rather than raised to the client."""


class BadRequestError(DirectoryServiceError):
    status_code = 400

"""Error taxonomy shared by the courserag pipeline and API."""

from __future__ import annotations


class CourseRAGError(RuntimeError):
    """Base class for errors raised by courserag components."""


class ConfigurationError(CourseRAGError):
    """Raised when a provider credential or required setting is missing."""


class ExtractionError(CourseRAGError):
    """Raised when text cannot be fetched or decoded from a document."""


class ProviderError(CourseRAGError):
    """Raised when an embedding or language-model call fails or returns malformed data."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class VectorStoreError(CourseRAGError):
    """Raised when the vector database rejects or fails a request."""


class IngestionError(CourseRAGError):
    """Raised when ingestion produces no chunks or an invalid vector id."""


class NotFoundError(CourseRAGError):
    """Raised when a referenced course or document does not exist."""


class AuthorizationError(CourseRAGError):
    """Raised when a non-admin principal attempts an admin-only operation."""


__all__ = [
    "AuthorizationError",
    "ConfigurationError",
    "CourseRAGError",
    "ExtractionError",
    "IngestionError",
    "NotFoundError",
    "ProviderError",
    "VectorStoreError",
]

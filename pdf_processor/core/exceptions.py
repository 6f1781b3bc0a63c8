"""
Domain exceptions raised by the ingestion pipeline.

The orchestrator raises these; the API layer maps them to HTTP responses
(see app exception handlers in pdf_processor.main). Best-effort step errors
(ExtractionError, IndexingError, StructuredExtractionError) are absorbed by
the orchestrator and never reach a caller.
"""

from __future__ import annotations

from enum import Enum


class StorageErrorKind(str, Enum):
    IO         = "io"
    PERMISSION = "permission"
    UNEXPECTED = "unexpected"


class PersistenceErrorKind(str, Enum):
    INTEGRITY  = "integrity"    # constraint violation; candidate for caller retry
    TRANSIENT  = "transient"    # connectivity / timeout
    UNEXPECTED = "unexpected"


class ExtractionErrorKind(str, Enum):
    FILE_NOT_FOUND = "file_not_found"
    FAILED         = "failed"     # file present but unreadable / unsupported


class IngestionError(Exception):
    """Base class for every pipeline error."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DocumentValidationError(IngestionError):
    """Client-correctable input problem. Raised before any side effect."""

    def __init__(self, message: str, field: str | None = None, code: str = "VALIDATION_ERROR") -> None:
        super().__init__(message)
        self.field = field
        self.code = code


class ConfigurationError(IngestionError):
    """A setting required by the requested operation is missing."""


class StorageWriteError(IngestionError):
    def __init__(self, message: str, kind: StorageErrorKind) -> None:
        super().__init__(message)
        self.kind = kind


class ExtractionError(IngestionError):
    def __init__(self, message: str, kind: ExtractionErrorKind) -> None:
        super().__init__(message)
        self.kind = kind


class PersistenceError(IngestionError):
    def __init__(self, message: str, kind: PersistenceErrorKind) -> None:
        super().__init__(message)
        self.kind = kind


class IndexingError(IngestionError):
    """Index write failed. Logged only."""


class StructuredExtractionError(IngestionError):
    """Structured field extraction failed. Logged only."""


class SearchError(IngestionError):
    """Search request failed at the transport level or was rejected by the index."""


class DocumentNotFoundError(IngestionError):
    def __init__(self, document_id) -> None:
        super().__init__(f"Document '{document_id}' was not found.")
        self.document_id = document_id

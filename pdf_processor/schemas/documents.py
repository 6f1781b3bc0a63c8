"""
Document Ingestion — Pydantic Request/Response Schemas

Covers:
  - DocumentMetadata responses (upload, metadata-only registration, read-by-id)
  - SearchDocument, the derived record written to the search index
  - InvoiceData, the optional structured fields parsed by the LLM
  - Structured error bodies (400, 403, 404, 500)

Wire format uses camelCase field names (originalFileName, uploadedAt, ...);
Python attributes stay snake_case.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Upload constraints
# ---------------------------------------------------------------------------

ALLOWED_EXTENSION: str = ".pdf"

# Hard cap on stored display names
MAX_FILE_NAME_LENGTH: int = 250


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Processing state machine
# ---------------------------------------------------------------------------

class ProcessingStatus(str, Enum):
    """
    Maps to document_metadata_entries.status.
    Transitions: Received → Processing → Processed | Failed
    """
    RECEIVED   = "Received"
    PROCESSING = "Processing"
    PROCESSED  = "Processed"
    FAILED     = "Failed"


# ---------------------------------------------------------------------------
# DocumentMetadata
# ---------------------------------------------------------------------------

class DocumentMetadataResponse(_CamelModel):
    """Authoritative record as returned by every document endpoint."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id:                     UUID
    original_file_name:     str
    file_path:              str | None = None
    uploaded_at:            datetime
    detected_document_type: str | None = None
    status:                 ProcessingStatus


class RegisterMetadataRequest(_CamelModel):
    """Body of POST /documents/metadata (no binary upload)."""
    original_file_name: str = Field(
        ...,
        min_length=1,
        max_length=MAX_FILE_NAME_LENGTH,
        description="Display name for the document",
    )


# ---------------------------------------------------------------------------
# Structured extraction
# ---------------------------------------------------------------------------

class InvoiceData(_CamelModel):
    """
    Invoice-style fields parsed from document text.
    None means "unknown"; never coerced to zero or an empty string.
    """
    invoice_number: str | None = None
    invoice_date:   str | None = None
    vendor_name:    str | None = None
    customer_name:  str | None = None
    net_amount:     Decimal | None = None
    tax_amount:     Decimal | None = None
    gross_amount:   Decimal | None = None

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


# ---------------------------------------------------------------------------
# Search index document
# ---------------------------------------------------------------------------

class SearchDocument(_CamelModel):
    """Derived, non-authoritative copy of a document kept in the search index."""
    id:                 UUID
    original_file_name: str = ""
    uploaded_at:        datetime
    extracted_text:     str = ""
    invoice_data:       InvoiceData | None = None


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error; may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str        = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")


# ---------------------------------------------------------------------------
# Pre-defined error factories (keeps exception handlers thin)
# ---------------------------------------------------------------------------

class DocumentErrors:
    """Factories for every documented error case."""

    @staticmethod
    def validation(message: str, field: str | None, code: str) -> ErrorResponse:
        return ErrorResponse(
            error_code=code,
            message=message,
            details=[ErrorDetail(field=field, message=message, code=code)],
        )

    @staticmethod
    def storage_permission_denied() -> ErrorResponse:
        return ErrorResponse(
            error_code="STORAGE_PERMISSION_DENIED",
            message="Permission denied. Please check your access rights.",
        )

    @staticmethod
    def storage_error() -> ErrorResponse:
        return ErrorResponse(
            error_code="STORAGE_ERROR",
            message="File upload failed. Please try again later.",
        )

    @staticmethod
    def persistence_error(kind: str) -> ErrorResponse:
        return ErrorResponse(
            error_code="DATABASE_ERROR",
            message="Database update failed. Please try again later.",
            details=[ErrorDetail(field=None, message=f"Failure kind: {kind}", code="DATABASE_ERROR")],
        )

    @staticmethod
    def search_error() -> ErrorResponse:
        return ErrorResponse(
            error_code="SEARCH_ERROR",
            message="An error occurred while searching.",
        )

    @staticmethod
    def document_not_found(document_id: UUID) -> ErrorResponse:
        return ErrorResponse(
            error_code="DOCUMENT_NOT_FOUND",
            message=f"Document '{document_id}' was not found.",
        )

    @staticmethod
    def configuration_error() -> ErrorResponse:
        return ErrorResponse(
            error_code="CONFIGURATION_ERROR",
            message="The server is not configured to accept uploads.",
        )

    @staticmethod
    def internal_error(request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred. Please try again later.",
            request_id=request_id,
        )

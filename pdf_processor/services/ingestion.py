"""
Document Ingestion Service

Orchestrates the upload pipeline:
  1. Validate   file name, extension (.pdf only), size, non-empty body
  2. Store      write bytes to content storage as <document_id>.pdf   [mandatory]
  3. Extract    PDF text layer                                         [best-effort]
  3b. Fields    optional LLM invoice-field extraction                  [best-effort]
  4. Persist    insert the DocumentMetadata row                        [mandatory]
  5. Index      write the SearchDocument (only if step 3 found text)   [best-effort]
  6. Return     the persisted DocumentMetadata

Consistency rules:
  - Step 4 is the consistency boundary. A returned record means the row is
    committed; steps 3 and 5 may have failed silently.
  - Every mandatory step that leaves something behind registers a
    compensation. When a later mandatory step fails, compensations run in
    reverse order (today: delete the stored file). A failing compensation
    is logged and never replaces the original error.
  - Validation failures have no side effects.
  - No retries. A failed step is terminal for that step within the request.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePath
from typing import Any, Awaitable, Callable
from uuid import UUID

from pdf_processor.core.config import settings
from pdf_processor.core.exceptions import DocumentNotFoundError, DocumentValidationError
from pdf_processor.db.repository import DocumentMetadataRepository
from pdf_processor.models.documents import DocumentMetadata
from pdf_processor.processing.extractor import PdfTextExtractor
from pdf_processor.processing.structured import InvoiceFieldExtractor
from pdf_processor.schemas.documents import (
    ALLOWED_EXTENSION,
    MAX_FILE_NAME_LENGTH,
    InvoiceData,
    ProcessingStatus,
    SearchDocument,
)
from pdf_processor.search.base import SearchIndexBase
from pdf_processor.storage.local import LocalFileStorage, resolve_base_directory

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# File name helpers
# ---------------------------------------------------------------------------

_INVALID_FILENAME_CHARS = re.compile(r'[/\\:*?"<>|\x00-\x1f]')

_PREVIEW_CHARS = 200


def get_extension(filename: str) -> str:
    """Return the lowercased extension including the dot, or "" if none."""
    return PurePath(filename.replace("\\", "/")).suffix.lower()


def sanitize_file_name(filename: str) -> str:
    """
    Replace characters that are invalid in file names with '_' and cap the
    length at MAX_FILE_NAME_LENGTH, keeping the extension.
    """
    safe = _INVALID_FILENAME_CHARS.sub("_", filename)
    if len(safe) <= MAX_FILE_NAME_LENGTH:
        return safe

    ext = PurePath(safe).suffix
    if len(ext) >= MAX_FILE_NAME_LENGTH:
        return safe[:MAX_FILE_NAME_LENGTH]
    return safe[: MAX_FILE_NAME_LENGTH - len(ext)] + ext


def _preview(text: str) -> str:
    return text[:_PREVIEW_CHARS].replace("\n", " ").replace("\r", " ")


# ---------------------------------------------------------------------------
# Step bookkeeping
# ---------------------------------------------------------------------------

class StepPolicy(str, Enum):
    MANDATORY   = "mandatory"     # failure aborts the request and compensates
    BEST_EFFORT = "best_effort"   # failure is logged and downgraded


@dataclass
class Compensation:
    """Undo action registered by a completed mandatory step."""
    step:   str
    action: Callable[[], Awaitable[Any]]


# ---------------------------------------------------------------------------
# Core ingestion orchestrator
# ---------------------------------------------------------------------------

class IngestionService:
    """
    Stateless service object, one instance per request.
    All collaborators are injected (testable, no hidden globals).
    """

    def __init__(
        self,
        repository:       DocumentMetadataRepository,
        storage:          LocalFileStorage,
        text_extractor:   PdfTextExtractor,
        search_index:     SearchIndexBase,
        field_extractor:  InvoiceFieldExtractor | None = None,
        storage_base_path: str | None = None,
        max_file_size_bytes: int | None = None,
        search_max_results:  int | None = None,
    ) -> None:
        self._repository      = repository
        self._storage         = storage
        self._text_extractor  = text_extractor
        self._search_index    = search_index
        self._field_extractor = field_extractor
        self._storage_base_path   = storage_base_path
        self._max_file_size_bytes = max_file_size_bytes or settings.max_file_size_bytes
        self._search_max_results  = search_max_results or settings.search_max_results

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def ingest(
        self,
        file_name:  str | None,
        file_bytes: bytes | None,
        size_limit: int | None = None,
    ) -> DocumentMetadata:
        """
        Full ingestion pipeline. Returns the committed DocumentMetadata.

        Raises DocumentValidationError, ConfigurationError, StorageWriteError
        or PersistenceError. Extraction and indexing problems never raise.
        """
        limit = size_limit or self._max_file_size_bytes

        # ---- Step 1: Validate -----------------------------------------
        extension = self._validate_upload(file_name, file_bytes, limit)
        base_directory = resolve_base_directory(self._storage_base_path)

        document_id  = uuid.uuid4()
        display_name = sanitize_file_name(file_name)
        compensations: list[Compensation] = []

        logger.info(
            "Ingest start | id=%s file=%s size=%d",
            document_id, display_name, len(file_bytes),
        )

        # ---- Step 2: Store (mandatory) --------------------------------
        stored_path = await self._storage.write(base_directory, f"{document_id}{extension}", file_bytes)
        compensations.append(Compensation(
            step="store",
            action=lambda: self._storage.delete(stored_path),
        ))

        # ---- Step 3: Extract text (best-effort) -----------------------
        extracted_text = await self._extract_text(stored_path, display_name)

        invoice_data: InvoiceData | None = None
        if extracted_text is not None and self._field_extractor is not None:
            invoice_data = await self._best_effort(
                "structured_extraction",
                self._field_extractor.extract_fields(extracted_text),
                document_id,
            )

        # ---- Step 4: Persist metadata (mandatory) ---------------------
        record = DocumentMetadata(
            id=document_id,
            original_file_name=display_name,
            file_path=stored_path,
            uploaded_at=datetime.now(timezone.utc),
            detected_document_type=None,
            status=ProcessingStatus.RECEIVED.value,
        )
        try:
            record = await self._repository.create(record)
        except Exception:
            logger.error(
                "Registering document metadata failed | id=%s file=%s, compensating",
                document_id, display_name,
            )
            await self._compensate(compensations, document_id)
            raise

        logger.info(
            "Document metadata registered | id=%s file=%s",
            record.id, record.original_file_name,
        )

        # ---- Step 5: Index (best-effort) ------------------------------
        if extracted_text is None:
            logger.warning("No text extracted for document %s. Skipping indexing.", record.id)
        else:
            await self._index(record, extracted_text, invoice_data)

        # ---- Step 6: Return -------------------------------------------
        return record

    async def register_metadata_only(self, original_file_name: str | None) -> DocumentMetadata:
        """Create a record without a stored file (file_path stays NULL)."""
        name = (original_file_name or "").strip()
        if not name:
            raise DocumentValidationError(
                "Original file name is required.", field="originalFileName", code="INVALID_FILE_NAME",
            )
        if len(name) > MAX_FILE_NAME_LENGTH:
            raise DocumentValidationError(
                f"Original file name must be at most {MAX_FILE_NAME_LENGTH} characters.",
                field="originalFileName",
                code="INVALID_FILE_NAME",
            )

        record = DocumentMetadata(
            id=uuid.uuid4(),
            original_file_name=sanitize_file_name(name),
            file_path=None,
            uploaded_at=datetime.now(timezone.utc),
            detected_document_type=None,
            status=ProcessingStatus.RECEIVED.value,
        )
        record = await self._repository.create(record)
        logger.info("Metadata-only document registered | id=%s file=%s", record.id, record.original_file_name)
        return record

    async def get_document(self, document_id: UUID) -> DocumentMetadata:
        record = await self._repository.get_by_id(document_id)
        if record is None:
            logger.warning("Document metadata requested but not found | id=%s", document_id)
            raise DocumentNotFoundError(document_id)
        return record

    async def search(self, term: str | None) -> list[SearchDocument]:
        """Full-text search. Blank terms are rejected before the index is called."""
        if term is None or not term.strip():
            raise DocumentValidationError("Search term cannot be empty.", field="term", code="EMPTY_SEARCH_TERM")

        logger.info("Searching documents | term=%r", term)
        return await self._search_index.search(term, size=self._search_max_results)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_upload(file_name: str | None, file_bytes: bytes | None, limit: int) -> str:
        """Return the accepted extension or raise DocumentValidationError."""
        if not file_name or not file_bytes:
            logger.warning("File upload rejected: no file provided.")
            raise DocumentValidationError("No file provided.", field="file", code="MISSING_FILE")

        extension = get_extension(file_name)
        if not extension:
            logger.warning("File upload rejected: no file extension found | file=%s", file_name)
            raise DocumentValidationError("No file extension found.", field="file", code="MISSING_EXTENSION")

        if extension != ALLOWED_EXTENSION:
            logger.warning(
                "File upload rejected: invalid file type. Expected %s, got %s",
                ALLOWED_EXTENSION, extension,
            )
            raise DocumentValidationError(
                f"Invalid file type. Expected {ALLOWED_EXTENSION}, got {extension}",
                field="file",
                code="UNSUPPORTED_FILE_TYPE",
            )

        if len(file_bytes) > limit:
            limit_mb = limit / (1024 * 1024)
            logger.warning("File upload rejected: %d bytes exceeds limit of %.0f MB", len(file_bytes), limit_mb)
            raise DocumentValidationError(
                f"File size exceeds the limit of {limit_mb:g} MB.",
                field="file",
                code="FILE_TOO_LARGE",
            )

        return extension

    async def _extract_text(self, stored_path: str, display_name: str) -> str | None:
        logger.info("Extracting text from PDF file: %s", display_name)
        try:
            text = await self._text_extractor.extract(stored_path)
        except Exception as exc:
            logger.error("Text extraction failed | file=%s error=%s", display_name, exc)
            return None

        if text is None:
            logger.warning("Text extraction returned nothing for file: %s", display_name)
            return None

        logger.info(
            "Extracted text from %s | length=%d preview='%s...'",
            display_name, len(text), _preview(text),
        )
        return text

    async def _index(
        self,
        record: DocumentMetadata,
        extracted_text: str,
        invoice_data: InvoiceData | None,
    ) -> None:
        document = SearchDocument(
            id=record.id,
            original_file_name=record.original_file_name,
            uploaded_at=record.uploaded_at,
            extracted_text=extracted_text,
            invoice_data=invoice_data if invoice_data and not invoice_data.is_empty() else None,
        )
        indexed = await self._best_effort("index", self._search_index.index(document), record.id)
        if indexed:
            logger.info("Document indexed | id=%s", record.id)
        else:
            logger.warning("Indexing encountered an issue for document %s", record.id)

    @staticmethod
    async def _best_effort(step: str, awaitable: Awaitable[Any], document_id: UUID) -> Any:
        try:
            return await awaitable
        except Exception:
            logger.exception(
                "Step failed | step=%s policy=%s id=%s",
                step, StepPolicy.BEST_EFFORT.value, document_id,
            )
            return None

    @staticmethod
    async def _compensate(compensations: list[Compensation], document_id: UUID) -> None:
        for compensation in reversed(compensations):
            try:
                await compensation.action()
                logger.info("Compensation done | step=%s id=%s", compensation.step, document_id)
            except Exception as exc:
                logger.error(
                    "Compensation failed | step=%s id=%s error=%s",
                    compensation.step, document_id, exc,
                )

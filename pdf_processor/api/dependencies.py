"""
Composed FastAPI Dependencies

Combines the per-request DB session with the application-wide capability
objects (storage, text extractor, search index, optional field extractor)
into one IngestionService. Route handlers import from here; the
capability objects are built once in the app lifespan and kept on
``app.state``.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from pdf_processor.core.config import settings
from pdf_processor.db.repository import DocumentMetadataRepository
from pdf_processor.db.session import get_db
from pdf_processor.services.ingestion import IngestionService


def get_ingestion_service(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> IngestionService:
    state = request.app.state
    return IngestionService(
        repository=DocumentMetadataRepository(db),
        storage=state.storage,
        text_extractor=state.text_extractor,
        search_index=state.search_index,
        field_extractor=getattr(state, "field_extractor", None),
        storage_base_path=settings.file_storage_base_path,
        max_file_size_bytes=settings.max_file_size_bytes,
        search_max_results=settings.search_max_results,
    )


# ---------------------------------------------------------------------------
# Type aliases for cleaner route signatures
# ---------------------------------------------------------------------------

Ingestion = Annotated[IngestionService, Depends(get_ingestion_service)]

"""
Document API Router

  POST /api/v1/documents            multipart upload → ingestion pipeline
  POST /api/v1/documents/metadata   register a record without a file
  GET  /api/v1/documents/search     full-text search on extracted text
  GET  /api/v1/documents/{id}       read one metadata record

Domain errors raised by IngestionService are not caught here; the
application exception handlers in pdf_processor.main translate them into
ErrorResponse bodies with the right status code.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, File, Query, UploadFile, status
from fastapi.responses import JSONResponse

from pdf_processor.api.dependencies import Ingestion
from pdf_processor.schemas.documents import (
    DocumentMetadataResponse,
    ErrorResponse,
    RegisterMetadataRequest,
    SearchDocument,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/documents",
    tags=["Documents"],
)


def _created(record) -> JSONResponse:
    body = DocumentMetadataResponse.model_validate(record)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=body.model_dump(mode="json", by_alias=True),
        headers={"Location": f"/api/v1/documents/{body.id}"},
    )


# ---------------------------------------------------------------------------
# POST /documents
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=DocumentMetadataResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a PDF for ingestion",
    description=(
        "Stores the file, extracts its text, registers metadata and indexes "
        "the text for search. Extraction and indexing are best-effort: a "
        "201 means the file and its metadata record are durable."
    ),
    responses={
        201: {"model": DocumentMetadataResponse, "description": "Document stored and registered"},
        400: {"model": ErrorResponse, "description": "Missing file, wrong extension or file too large"},
        403: {"model": ErrorResponse, "description": "Storage permission denied"},
        500: {"model": ErrorResponse, "description": "Storage, database or configuration failure"},
    },
)
async def upload_document(
    service: Ingestion,
    file: UploadFile | None = File(None, description="PDF file"),
) -> JSONResponse:
    if file is None:
        record = await service.ingest(None, None)
    else:
        data = await file.read()
        logger.info("Upload received | file=%s bytes=%d", file.filename, len(data))
        record = await service.ingest(file.filename, data)

    return _created(record)


# ---------------------------------------------------------------------------
# POST /documents/metadata
# ---------------------------------------------------------------------------

@router.post(
    "/metadata",
    response_model=DocumentMetadataResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register document metadata without a file",
    responses={
        201: {"model": DocumentMetadataResponse},
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def register_metadata(body: RegisterMetadataRequest, service: Ingestion) -> JSONResponse:
    record = await service.register_metadata_only(body.original_file_name)
    return _created(record)


# ---------------------------------------------------------------------------
# GET /documents/search
# ---------------------------------------------------------------------------

@router.get(
    "/search",
    response_model=list[SearchDocument],
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Full-text search over extracted document text",
    responses={
        400: {"model": ErrorResponse, "description": "Empty search term"},
        500: {"model": ErrorResponse, "description": "Search index unavailable"},
    },
)
async def search_documents(
    service: Ingestion,
    term: str | None = Query(None, description="Words to match against extracted text"),
) -> list[SearchDocument]:
    return await service.search(term)


# ---------------------------------------------------------------------------
# GET /documents/{document_id}
# ---------------------------------------------------------------------------

@router.get(
    "/{document_id}",
    response_model=DocumentMetadataResponse,
    response_model_by_alias=True,
    summary="Read a document metadata record",
    responses={
        200: {"model": DocumentMetadataResponse},
        404: {"model": ErrorResponse},
    },
)
async def get_document(document_id: UUID, service: Ingestion) -> DocumentMetadataResponse:
    record = await service.get_document(document_id)
    return DocumentMetadataResponse.model_validate(record)

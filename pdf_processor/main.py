"""
FastAPI Application — Entry Point

PDF ingestion and search API

Architecture:
  - All routes are versioned under /api/v1/
  - Capability objects (file storage, text extractor, search index and the
    optional LLM field extractor) are built once in the lifespan and kept
    on app.state; IngestionService is assembled per request
  - Domain exceptions are mapped to structured ErrorResponse bodies here,
    never inside route handlers

Middleware stack (innermost → outermost):
  1. CORS, restricted to configured origins
  2. Request ID injection: X-Request-ID header on every response
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pdf_processor.api.v1.documents import router as documents_router
from pdf_processor.core.config import settings
from pdf_processor.core.exceptions import (
    ConfigurationError,
    DocumentNotFoundError,
    DocumentValidationError,
    PersistenceError,
    SearchError,
    StorageErrorKind,
    StorageWriteError,
)
from pdf_processor.db.session import check_db_health, create_tables
from pdf_processor.processing.extractor import PdfTextExtractor
from pdf_processor.processing.structured import InvoiceFieldExtractor, build_chat_model
from pdf_processor.schemas.documents import DocumentErrors, ErrorDetail, ErrorResponse
from pdf_processor.search.elastic import ElasticsearchIndex
from pdf_processor.storage.local import LocalFileStorage

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID") or str(uuid.uuid4())


def _error(status_code: int, body: ErrorResponse, request: Request) -> JSONResponse:
    request_id = _request_id(request)
    body.request_id = request_id
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers={"X-Request-ID": request_id},
    )


def build_field_extractor() -> InvoiceFieldExtractor | None:
    """LLM field extraction runs only when enabled and a key is configured."""
    if not settings.structured_extraction_enabled:
        return None
    if not settings.openai_api_key:
        logger.warning("Structured extraction enabled but OPENAI_API_KEY is empty; disabling it.")
        return None

    llm = build_chat_model(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.structured_extraction_timeout_seconds,
    )
    return InvoiceFieldExtractor(
        llm,
        max_chars=settings.structured_extraction_max_chars,
        timeout_seconds=settings.structured_extraction_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Application lifespan — startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Run on startup: build capability objects, optionally create tables.
    Run on shutdown: close the search client and the connection pool.
    """
    logger.info(
        "Starting PDF processor | env=%s index=%s storage=%s",
        settings.app_env, settings.elasticsearch_default_index, settings.file_storage_base_path,
    )
    if not settings.file_storage_base_path:
        logger.warning("FILE_STORAGE_BASE_PATH is not set; uploads will be rejected.")

    app.state.storage = LocalFileStorage()
    app.state.text_extractor = PdfTextExtractor(timeout_seconds=settings.text_extraction_timeout_seconds)
    app.state.search_index = ElasticsearchIndex(
        base_url=settings.elasticsearch_url,
        index_name=settings.elasticsearch_default_index,
        timeout_seconds=settings.search_timeout_seconds,
    )
    app.state.field_extractor = build_field_extractor()
    logger.info("Structured extraction: %s", "on" if app.state.field_extractor else "off")

    if settings.db_auto_create:
        await create_tables()

    yield

    logger.info("Shutting down PDF processor")
    await app.state.search_index.close()
    from pdf_processor.db.session import engine
    await engine.dispose()


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="PDF Processor",
        description=(
            "Uploads PDF documents, extracts their text, registers metadata "
            "and makes the text searchable."
        ),
        version="1.0.0",
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # ----------------------------------------------------------------
    # Middleware (last added = outermost)
    # ----------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if not settings.is_production else [],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Location"],
    )

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers — uniform structured error responses
    # ----------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Convert Pydantic/FastAPI validation errors to structured ErrorResponse."""
        details = [
            ErrorDetail(
                field=" → ".join(str(loc) for loc in err["loc"]),
                message=err["msg"],
                code="VALIDATION_ERROR",
            )
            for err in exc.errors()
        ]
        body = ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Request validation failed.",
            details=details,
        )
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, body, request)

    @app.exception_handler(DocumentValidationError)
    async def document_validation_handler(request: Request, exc: DocumentValidationError):
        return _error(
            status.HTTP_400_BAD_REQUEST,
            DocumentErrors.validation(exc.message, exc.field, exc.code),
            request,
        )

    @app.exception_handler(StorageWriteError)
    async def storage_error_handler(request: Request, exc: StorageWriteError):
        if exc.kind == StorageErrorKind.PERMISSION:
            return _error(status.HTTP_403_FORBIDDEN, DocumentErrors.storage_permission_denied(), request)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, DocumentErrors.storage_error(), request)

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            DocumentErrors.persistence_error(exc.kind.value),
            request,
        )

    @app.exception_handler(DocumentNotFoundError)
    async def not_found_handler(request: Request, exc: DocumentNotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, DocumentErrors.document_not_found(exc.document_id), request)

    @app.exception_handler(SearchError)
    async def search_error_handler(request: Request, exc: SearchError):
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, DocumentErrors.search_error(), request)

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error("Configuration error | path=%s error=%s", request.url.path, exc.message)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, DocumentErrors.configuration_error(), request)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all: 500 with no stack trace in the body."""
        request_id = _request_id(request)
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, DocumentErrors.internal_error(request_id), request)

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(documents_router, prefix="/api/v1")

    # ----------------------------------------------------------------
    # Health & readiness endpoints
    # ----------------------------------------------------------------

    @app.get(
        "/health",
        tags=["Operations"],
        summary="Liveness probe",
        description="Returns 200 if the process is alive. No external checks.",
    )
    async def health() -> dict:
        return {"status": "ok", "service": "pdf-processor"}

    @app.get(
        "/ready",
        tags=["Operations"],
        summary="Readiness probe",
        description=(
            "Returns 200 if the database is reachable. The search index is "
            "reported but does not fail readiness, since indexing is best-effort."
        ),
    )
    async def readiness(request: Request) -> JSONResponse:
        db_status = await check_db_health()
        search_index = getattr(request.app.state, "search_index", None)
        index_ok = await search_index.ping() if search_index is not None else False
        content = {
            "database": db_status,
            "searchIndex": {"status": "ok" if index_ok else "error"},
        }
        if db_status["status"] != "ok":
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "not_ready", **content},
            )
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "ready", **content},
        )

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

app = create_app()


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pdf_processor.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )

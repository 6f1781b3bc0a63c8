"""
Metadata Repository — transactional CRUD over document_metadata_entries.

The repository is a pure persistence boundary: it never fills in ids,
timestamps or statuses. Database failures are translated to
PersistenceError with a kind the caller can act on:

    integrity   — constraint violation (duplicate key, check constraint, ...)
    transient   — connection dropped, pool exhausted, statement timeout
    unexpected  — anything else
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from pdf_processor.core.exceptions import PersistenceError, PersistenceErrorKind
from pdf_processor.models.documents import DocumentMetadata

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


def _classify(exc: Exception) -> PersistenceErrorKind:
    if isinstance(exc, IntegrityError):
        return PersistenceErrorKind.INTEGRITY
    if isinstance(exc, _TRANSIENT_ERRORS):
        return PersistenceErrorKind.TRANSIENT
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return PersistenceErrorKind.TRANSIENT
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return PersistenceErrorKind.TRANSIENT
    return PersistenceErrorKind.UNEXPECTED


class DocumentMetadataRepository:
    """One instance per request, bound to the request's session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, record: DocumentMetadata) -> DocumentMetadata:
        """Insert and commit. The record is returned exactly as supplied."""
        try:
            self._session.add(record)
            await self._session.commit()
        except Exception as exc:
            kind = _classify(exc)
            logger.error(
                "Metadata insert failed | id=%s kind=%s error=%s",
                record.id, kind.value, exc,
            )
            try:
                await self._session.rollback()
            except Exception as rollback_exc:
                logger.error("Rollback after failed insert also failed: %s", rollback_exc)
            raise PersistenceError(f"Could not persist document metadata: {exc}", kind) from exc

        logger.debug("Metadata committed | id=%s", record.id)
        return record

    async def get_by_id(self, document_id: UUID) -> DocumentMetadata | None:
        try:
            return await self._session.get(DocumentMetadata, document_id)
        except Exception as exc:
            kind = _classify(exc)
            logger.error("Metadata lookup failed | id=%s kind=%s error=%s", document_id, kind.value, exc)
            raise PersistenceError(f"Could not read document metadata: {exc}", kind) from exc

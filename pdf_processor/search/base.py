"""
Search Index — Abstract Base

The orchestrator and API only speak this protocol, so the backend can be
swapped (or faked in tests) without touching pipeline code.

Consistency contract:
  - The index is derived data. It may lag behind or miss documents that
    exist in the metadata store; that is not an error for the record.
  - index() is idempotent per document id (create-or-overwrite).
  - index() never raises; it reports success as a boolean.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pdf_processor.schemas.documents import SearchDocument


class SearchIndexBase(ABC):

    @abstractmethod
    async def index(self, document: SearchDocument) -> bool:
        """
        Write ``document`` keyed by its id.
        Returns False (without a network call) for a missing id, and False
        for any transport or server-side failure.
        """

    @abstractmethod
    async def search(self, term: str, size: int = 20) -> list[SearchDocument]:
        """
        Full-text match on extracted text. Raises SearchError on failure.
        """

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the index service answers."""

    async def close(self) -> None:
        """Release network resources."""

"""
Elasticsearch Search Index — REST over httpx

Endpoints used:
  PUT  /<index>/_doc/<id>   create-or-overwrite one document
  POST /<index>/_search     match query on extractedText
  GET  /                    cluster ping (readiness)

Two failure classes are kept apart in the logs:
  - transport failures (connect, timeout, protocol) — httpx.RequestError
  - application failures — the call completed but Elasticsearch answered
    with an error body {"error": {"type": ..., "reason": ...}, "status": ...}
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from pdf_processor.core.exceptions import IndexingError, SearchError
from pdf_processor.schemas.documents import SearchDocument
from pdf_processor.search.base import SearchIndexBase

logger = logging.getLogger(__name__)

_ACCEPTED_RESULTS = {"created", "updated", "noop"}


def _server_error(response: httpx.Response) -> tuple[str | None, str | None]:
    """Pull (type, reason) out of an Elasticsearch error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return None, response.text[:500] or None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("type"), error.get("reason")
    if isinstance(error, str):
        return None, error
    return None, None


class ElasticsearchIndex(SearchIndexBase):
    """
    One instance per application; the underlying httpx.AsyncClient keeps a
    connection pool and is safe for concurrent requests.
    """

    def __init__(
        self,
        base_url: str,
        index_name: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._index_name = index_name
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Search index client closed.")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def index(self, document: SearchDocument | None) -> bool:
        if document is None or not document.id or document.id.int == 0:
            logger.warning("Document is missing or has an empty id; not indexing.")
            return False

        logger.info("Indexing document | id=%s index=%s", document.id, self._index_name)
        try:
            await self._put(document)
        except IndexingError as exc:
            logger.error("Failed to index document | id=%s %s", document.id, exc.message)
            return False
        except httpx.RequestError as exc:
            logger.error(
                "Transport error while indexing document | id=%s error=%s: %s",
                document.id, type(exc).__name__, exc,
            )
            return False
        except Exception:
            logger.exception("Unexpected error while indexing document | id=%s", document.id)
            return False

        logger.info("Document indexed | id=%s", document.id)
        return True

    async def _put(self, document: SearchDocument) -> None:
        response = await self._client.put(
            f"/{self._index_name}/_doc/{document.id}",
            json=document.model_dump(mode="json", by_alias=True, exclude_none=True),
        )

        if response.is_error:
            err_type, err_reason = _server_error(response)
            logger.error(
                "Search index server error: %s - %s (status=%d)",
                err_type, err_reason, response.status_code,
            )
            raise IndexingError(f"status={response.status_code} type={err_type} reason={err_reason}")

        try:
            body = response.json()
        except ValueError as exc:
            raise IndexingError(f"malformed response body: {response.text[:200]!r}") from exc

        result = body.get("result") if isinstance(body, dict) else None
        if result not in _ACCEPTED_RESULTS:
            raise IndexingError(f"unexpected index result: {result!r}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(self, term: str, size: int = 20) -> list[SearchDocument]:
        query: dict[str, Any] = {
            "query": {"match": {"extractedText": term}},
            "size": size,
        }
        try:
            response = await self._client.post(f"/{self._index_name}/_search", json=query)
        except httpx.RequestError as exc:
            logger.error("Transport error while searching | term=%r error=%s", term, exc)
            raise SearchError(f"Search index unreachable: {exc}") from exc

        if response.is_error:
            err_type, err_reason = _server_error(response)
            logger.warning("Search failed | term=%r status=%d", term, response.status_code)
            logger.error("Search index server error: %s - %s", err_type, err_reason)
            raise SearchError(f"Search failed: {err_type} - {err_reason}")

        try:
            body = response.json()
            hits = body["hits"]["hits"]
            documents = [SearchDocument.model_validate(hit["_source"]) for hit in hits]
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            logger.error("Malformed search response | term=%r error=%s", term, exc)
            raise SearchError(f"Malformed search response: {exc}") from exc

        total = body["hits"].get("total")
        if isinstance(total, dict):
            total = total.get("value")
        logger.info("Search completed | term=%r total_hits=%s returned=%d", term, total, len(documents))
        return documents

    async def ping(self) -> bool:
        try:
            response = await self._client.get("/")
        except httpx.RequestError as exc:
            logger.warning("Search index ping failed: %s", exc)
            return False
        return response.is_success

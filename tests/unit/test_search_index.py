"""
Unit Tests — ElasticsearchIndex
═══════════════════════════════
The adapter is driven through httpx.MockTransport, so every request is
inspected and every response is scripted. No Elasticsearch needed.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone

import httpx
import pytest

from pdf_processor.core.exceptions import SearchError
from pdf_processor.schemas.documents import InvoiceData, SearchDocument
from pdf_processor.search.elastic import ElasticsearchIndex

BASE_URL = "http://search.test:9200"
INDEX = "pdf-documents"


def _make_index(handler) -> ElasticsearchIndex:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return ElasticsearchIndex(BASE_URL, INDEX, client=client)


def _document(**overrides) -> SearchDocument:
    values = dict(
        id=uuid.UUID("cccccccc-cccc-cccc-cccc-cccccccccccc"),
        original_file_name="invoice.pdf",
        uploaded_at=datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc),
        extracted_text="Invoice FV/123/2024",
    )
    values.update(overrides)
    return SearchDocument(**values)


def _es_error(status_code: int, err_type: str, reason: str) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"error": {"type": err_type, "reason": reason}, "status": status_code},
    )


# ─────────────────────────────────────────────────────────────────────────────
# index()
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestIndex:

    async def test_puts_camel_case_document_keyed_by_id(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"_id": "x", "result": "created"})

        index = _make_index(handler)
        doc = _document()

        assert await index.index(doc) is True

        assert len(seen) == 1
        request = seen[0]
        assert request.method == "PUT"
        assert request.url.path == f"/{INDEX}/_doc/{doc.id}"
        body = json.loads(request.content)
        assert body == {
            "id": str(doc.id),
            "originalFileName": "invoice.pdf",
            "uploadedAt": "2024-03-15T10:00:00Z",
            "extractedText": "Invoice FV/123/2024",
        }

    async def test_invoice_data_serialised_when_present(self):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"result": "updated"})

        index = _make_index(handler)
        doc = _document(invoice_data=InvoiceData(invoice_number="FV/123/2024", net_amount="1500.75"))

        assert await index.index(doc) is True
        assert seen[0]["invoiceData"] == {"invoiceNumber": "FV/123/2024", "netAmount": "1500.75"}

    async def test_nil_id_fails_without_network_call(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(201, json={"result": "created"})

        index = _make_index(handler)

        assert await index.index(_document(id=uuid.UUID(int=0))) is False
        assert await index.index(None) is False
        assert calls == []

    async def test_server_error_logged_with_type_and_reason(self, caplog):
        index = _make_index(lambda request: _es_error(400, "mapper_parsing_exception", "failed to parse field"))

        with caplog.at_level(logging.ERROR, logger="pdf_processor.search.elastic"):
            assert await index.index(_document()) is False

        messages = " ".join(r.getMessage() for r in caplog.records)
        assert "mapper_parsing_exception" in messages
        assert "failed to parse field" in messages

    async def test_transport_error_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        index = _make_index(handler)

        assert await index.index(_document()) is False

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, content=b"<html>proxy error</html>"),
            httpx.Response(200, json={"result": "not_found"}),
            httpx.Response(200, json=["unexpected"]),
        ],
    )
    async def test_malformed_or_unexpected_response_returns_false(self, response):
        index = _make_index(lambda request: response)

        assert await index.index(_document()) is False


# ─────────────────────────────────────────────────────────────────────────────
# search()
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestSearch:

    async def test_match_query_on_extracted_text(self):
        seen: list[httpx.Request] = []
        hit_id = uuid.uuid4()

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={
                "hits": {
                    "total": {"value": 1, "relation": "eq"},
                    "hits": [{
                        "_id": str(hit_id),
                        "_source": {
                            "id": str(hit_id),
                            "originalFileName": "invoice.pdf",
                            "uploadedAt": "2024-03-15T10:00:00Z",
                            "extractedText": "Invoice FV/123/2024",
                            "invoiceData": {"grossAmount": 1845.92},
                        },
                    }],
                },
            })

        index = _make_index(handler)

        results = await index.search("invoice", size=20)

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == f"/{INDEX}/_search"
        assert json.loads(request.content) == {"query": {"match": {"extractedText": "invoice"}}, "size": 20}

        assert len(results) == 1
        assert results[0].id == hit_id
        assert results[0].original_file_name == "invoice.pdf"
        assert results[0].invoice_data.gross_amount is not None

    async def test_no_hits_returns_empty_list(self):
        index = _make_index(lambda request: httpx.Response(200, json={"hits": {"total": {"value": 0}, "hits": []}}))

        assert await index.search("nothing") == []

    async def test_server_error_raises_search_error(self):
        index = _make_index(lambda request: _es_error(404, "index_not_found_exception", "no such index"))

        with pytest.raises(SearchError) as exc_info:
            await index.search("invoice")

        assert "index_not_found_exception" in exc_info.value.message

    async def test_transport_error_raises_search_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        index = _make_index(handler)

        with pytest.raises(SearchError):
            await index.search("invoice")

    async def test_malformed_body_raises_search_error(self):
        index = _make_index(lambda request: httpx.Response(200, json={"unexpected": True}))

        with pytest.raises(SearchError):
            await index.search("invoice")


# ─────────────────────────────────────────────────────────────────────────────
# ping()
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestPing:

    async def test_ping_ok(self):
        index = _make_index(lambda request: httpx.Response(200, json={"cluster_name": "test"}))
        assert await index.ping() is True

    async def test_ping_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        index = _make_index(handler)
        assert await index.ping() is False

"""
Structured Invoice Field Extraction (LLM)

Sends document text to a chat model and parses the JSON object it returns
into InvoiceData. This step is additive: every failure (API error, timeout,
non-JSON reply, schema mismatch) is logged and reported as "no fields".

Input is truncated to ``max_chars`` before the call to bound cost and
latency; over-long text is never rejected.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

from pdf_processor.core.exceptions import StructuredExtractionError
from pdf_processor.schemas.documents import InvoiceData

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 15_000

SYSTEM_PROMPT = """You are an expert in automated data extraction from business documents.
Analyse the supplied text taken from a VAT invoice and extract exactly these fields:

InvoiceNumber (string): the main invoice number.
InvoiceDate (string, format YYYY-MM-DD): the issue date. If the full date is not present, give the best possible approximation (e.g. YYYY-MM-01).
VendorName (string): the company issuing the invoice (seller).
CustomerName (string): the company or person receiving the invoice (buyer).
NetAmount (number): total net amount before tax. Use '.' as the decimal separator.
TaxAmount (number): total tax (VAT) amount. Use '.' as the decimal separator.
GrossAmount (number): total gross amount payable (net + tax). Use '.' as the decimal separator.

Return ONLY a JSON object using exactly these field names.
If a value cannot be found or determined, use null for that field.
Do not add any explanation or text outside the JSON structure.

Example of a correct response:
{
  "InvoiceNumber": "FV/123/2024",
  "InvoiceDate": "2024-03-15",
  "VendorName": "Selling Company Ltd.",
  "CustomerName": "Buying Company Inc.",
  "NetAmount": 1500.75,
  "TaxAmount": 345.17,
  "GrossAmount": 1845.92
}"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def build_chat_model(
    api_key: str,
    model: str,
    base_url: str | None = None,
    timeout_seconds: float | None = None,
) -> BaseChatModel:
    """ChatOpenAI configured for deterministic JSON-object replies."""
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=model,
        api_key=api_key,
        base_url=base_url,
        temperature=0.1,
        max_tokens=500,
        timeout=timeout_seconds,
        max_retries=0,
        model_kwargs={"response_format": {"type": "json_object"}},
    )


def _normalise_keys(payload: dict) -> dict:
    """InvoiceNumber / invoice_number / invoiceNumber -> invoiceNumber."""
    out: dict = {}
    for key, value in payload.items():
        if not isinstance(key, str) or not key:
            continue
        if "_" in key:
            head, *rest = key.lower().split("_")
            key = head + "".join(part.title() for part in rest)
        else:
            key = key[0].lower() + key[1:]
        out[key] = value
    return out


def parse_invoice_json(raw: str) -> InvoiceData:
    """Parse a model reply. Raises StructuredExtractionError on any mismatch."""
    cleaned = _FENCE_RE.sub("", raw.strip())
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise StructuredExtractionError(f"Reply is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise StructuredExtractionError(f"Expected a JSON object, got {type(payload).__name__}")

    try:
        return InvoiceData.model_validate(_normalise_keys(payload))
    except ValidationError as exc:
        raise StructuredExtractionError(f"Reply does not match the invoice schema: {exc}") from exc


class InvoiceFieldExtractor:
    """
    Wraps a LangChain chat model. The model is injected so tests can pass a
    fake without network access.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        max_chars: int = DEFAULT_MAX_CHARS,
        timeout_seconds: float | None = None,
    ) -> None:
        self._llm = llm
        self._max_chars = max_chars
        self._timeout = timeout_seconds

    def truncate(self, text: str) -> str:
        if len(text) > self._max_chars:
            logger.warning(
                "Input text (%d chars) exceeds limit of %d. Truncating.",
                len(text), self._max_chars,
            )
            return text[: self._max_chars]
        return text

    async def extract_fields(self, text: str | None) -> InvoiceData | None:
        if not text or not text.strip():
            logger.warning("Structured extraction skipped: empty text")
            return None

        text = self.truncate(text)
        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=f"Here is the text extracted from the invoice:\n\n---\n{text}\n---"),
        ]

        try:
            reply = await asyncio.wait_for(self._llm.ainvoke(messages), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error("Structured extraction timed out after %.1fs", self._timeout)
            return None
        except Exception as exc:
            logger.error("Structured extraction call failed: %s", exc, exc_info=True)
            return None

        content = reply.content if isinstance(reply.content, str) else ""
        if not content.strip():
            logger.warning("Structured extraction reply had no content")
            return None

        try:
            data = parse_invoice_json(content)
        except StructuredExtractionError as exc:
            logger.error("Could not parse structured extraction reply: %s | reply=%s", exc.message, content[:500])
            return None

        logger.info("Structured fields extracted | invoice_number=%s", data.invoice_number)
        return data

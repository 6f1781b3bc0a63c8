"""
PDF Text Extraction (PyMuPDF)
═════════════════════════════

Reads the native text layer of a stored PDF, page by page in document
order. Each page's text is followed by PAGE_SEPARATOR.

Outcomes:
  str                       text was found
  None                      the document has no extractable text
  ExtractionError(kind=FILE_NOT_FOUND)   path does not exist
  ExtractionError(kind=FAILED)           corrupt / encrypted / unsupported
                                         file, or the timeout expired

The orchestrator treats every outcome except ``str`` as "no text".
"""

from __future__ import annotations

import asyncio
import logging
import os
import time

from pdf_processor.core.exceptions import ExtractionError, ExtractionErrorKind

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n"


class PdfTextExtractor:
    """
    Stateless extractor, one instance per application.

    fitz.open() returns an independent document object per call, so
    concurrent extractions do not share state.
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._timeout = timeout_seconds

    async def extract(self, file_path: str) -> str | None:
        if not os.path.isfile(file_path):
            logger.warning("PDF file not found: %s", file_path)
            raise ExtractionError(f"PDF file not found: {file_path}", ExtractionErrorKind.FILE_NOT_FOUND)

        loop = asyncio.get_event_loop()
        t0 = time.monotonic()
        try:
            text = await asyncio.wait_for(
                loop.run_in_executor(None, self._extract_sync, file_path),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error("Text extraction timed out after %.1fs: %s", self._timeout, file_path)
            raise ExtractionError(f"Text extraction timed out: {file_path}", ExtractionErrorKind.FAILED) from exc
        except Exception as exc:
            logger.error("Error extracting text from PDF file: %s (%s)", file_path, exc)
            raise ExtractionError(f"Could not read PDF: {exc}", ExtractionErrorKind.FAILED) from exc

        elapsed_ms = (time.monotonic() - t0) * 1000
        if not text.strip():
            logger.warning("PDF contains no extractable text: %s", file_path)
            return None

        logger.info(
            "Text extraction completed | path=%s chars=%d elapsed_ms=%.0f",
            file_path, len(text), elapsed_ms,
        )
        return text

    @staticmethod
    def _extract_sync(file_path: str) -> str:
        """Blocking extraction; runs in the thread executor."""
        import fitz  # PyMuPDF; imported here to avoid module-level import cost

        parts: list[str] = []
        with fitz.open(file_path, filetype="pdf") as doc:
            if doc.needs_pass:
                raise ValueError("PDF is encrypted")
            logger.debug("Number of pages in PDF: %d", doc.page_count)
            for page in doc:
                parts.append(page.get_text("text") or "")
                parts.append(PAGE_SEPARATOR)

        return "".join(parts)

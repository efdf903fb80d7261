"""Bounded text extraction from paginated (PDF) documents."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Optional

import pypdf

from coascan.config import settings
from coascan.errors import ExtractionError
from coascan.cancellation import CancellationToken

logger = logging.getLogger(__name__)


def page_header(number: int) -> str:
    """Return the marker line written ahead of page *number*."""
    return f"--- Page {number} ---"


def _read_page_text(page: pypdf.PageObject) -> str:
    """Return the text items of *page* joined with single spaces."""
    items: list[str] = []

    def _collect(text, cm, tm, font_dict, font_size) -> None:  # noqa: ARG001
        fragment = text.strip()
        if fragment:
            items.append(fragment)

    page.extract_text(visitor_text=_collect)
    return " ".join(items)


def _open_document(data: bytes) -> pypdf.PdfReader:
    if not data:
        raise ExtractionError("Document payload is empty")
    try:
        reader = pypdf.PdfReader(io.BytesIO(data))
        # Touch the page tree so malformed documents fail here, not per page.
        len(reader.pages)
    except Exception as exc:
        raise ExtractionError(f"Document could not be parsed: {exc}") from exc
    return reader


class TextExtractor:
    """Turn a PDF payload into page-marked text under page and size caps.

    At most ``max_pages`` pages are read, starting from page 1.  The
    concatenated output is cut to ``max_chars`` characters once, after every
    processed page has been appended.

    Args:
        max_pages: Page cap.  Defaults to ``settings.max_pages`` (5).
        max_chars: Character cap.  Defaults to ``settings.max_chars`` (5000).
    """

    def __init__(
        self,
        max_pages: Optional[int] = None,
        max_chars: Optional[int] = None,
    ) -> None:
        self.max_pages = settings.max_pages if max_pages is None else max_pages
        self.max_chars = settings.max_chars if max_chars is None else max_chars

    async def extract(
        self,
        data: bytes,
        token: Optional[CancellationToken] = None,
    ) -> str:
        """Extract bounded text from *data*.

        A page whose text cannot be read contributes an empty body; the
        remaining pages are still processed.

        Raises:
            ExtractionError: If *data* is not a readable paginated document.
            PipelineCancelled: If *token* fires between pages.
        """
        reader = await asyncio.to_thread(_open_document, data)
        total = len(reader.pages)
        limit = min(total, self.max_pages)
        logger.info("Extracting %d of %d page(s)", limit, total)

        parts: list[str] = []
        for index in range(limit):
            if token is not None:
                token.raise_if_cancelled()
            number = index + 1
            try:
                text = await asyncio.to_thread(_read_page_text, reader.pages[index])
            except Exception as exc:  # noqa: BLE001
                logger.warning("Page %d could not be read: %s", number, exc)
                text = ""
            parts.append(f"{page_header(number)}\n{text}\n\n")

        full_text = "".join(parts)
        if len(full_text) > self.max_chars:
            logger.debug("Truncating %d chars to %d", len(full_text), self.max_chars)
        return full_text[: self.max_chars]

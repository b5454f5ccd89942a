"""
PDF page processing using PyMuPDF (fitz).

Each page's embedded text layer is used when present. Pages without one
(scans) are rasterized at 2x scale, encoded to PNG and routed through the
OCR provider factory. Pages are processed in small concurrent batches so
only a few rasterized pages are held in memory at once.

All fitz access happens on the event-loop thread; only recognition runs
concurrently.
"""

from __future__ import annotations

import asyncio
import io
import logging
from pathlib import PurePath
from typing import TYPE_CHECKING

import fitz  # PyMuPDF

from docintake.config import OcrConfig
from docintake.exceptions import ProcessingError
from docintake.models import (
    AUTO_LANGUAGE,
    PAGE_SEPARATOR,
    DocumentFile,
    PageExtraction,
    PdfExtraction,
)

if TYPE_CHECKING:
    from docintake.ocr.factory import OcrProviderFactory
    from docintake.ocr.providers import ProgressCallback

logger = logging.getLogger(__name__)


# =============================================================================
# CANVAS POOL
# =============================================================================


class CanvasPool:
    """
    Free-list of reusable PNG encode buffers.

    Acquiring from an empty pool allocates a new buffer; the pool only
    reduces allocation, it never limits concurrency. A buffer must be
    released before another page can reuse it.
    """

    def __init__(self, max_free: int = 3):
        self.max_free = max_free
        self._free: list[io.BytesIO] = []
        self.allocated = 0

    def __len__(self) -> int:
        return len(self._free)

    def acquire(self) -> io.BytesIO:
        if self._free:
            return self._free.pop()
        self.allocated += 1
        return io.BytesIO()

    def release(self, canvas: io.BytesIO) -> None:
        canvas.seek(0)
        canvas.truncate()
        if len(self._free) < self.max_free:
            self._free.append(canvas)


# =============================================================================
# PAGE HELPERS
# =============================================================================


def page_text_layer(page: fitz.Page) -> str:
    """Join every text span on the page with single spaces."""
    spans = []
    page_dict = page.get_text("dict")

    for block in page_dict.get("blocks", []):
        # Skip image blocks
        if block.get("type") != 0:
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = span.get("text", "").strip()
                if text:
                    spans.append(text)

    return " ".join(spans).strip()


def render_page_png(page: fitz.Page, canvas: io.BytesIO, scale: float = 2.0) -> bytes:
    """Rasterize a page at ``scale`` and encode it as PNG through ``canvas``."""
    pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
    try:
        canvas.write(pix.tobytes("png"))
        return canvas.getvalue()
    finally:
        del pix


class _Progress:
    """Monotonic progress reporter over the pages' slices of 0-100."""

    def __init__(self, callback: ProgressCallback | None, page_count: int):
        self._callback = callback
        self._span = 100.0 / page_count if page_count else 100.0
        self._last = 0.0

    def report(self, value: float) -> None:
        if self._callback is None or value <= self._last:
            return
        self._last = min(100.0, value)
        self._callback(self._last)

    def page(self, index: int, fraction: float) -> None:
        self.report(self._span * (index + fraction))

    def for_page(self, index: int) -> ProgressCallback:
        return lambda p: self.page(index, max(0.0, min(100.0, p)) / 100.0)


# =============================================================================
# PAGE PROCESSOR
# =============================================================================


class PdfPageProcessor:
    """
    Extracts the text of a PDF, falling back to OCR page by page.

    Example:
        >>> processor = PdfPageProcessor(factory)
        >>> extraction = await processor.extract(file, print)
        >>> extraction.ocr_pages
        [1]
    """

    def __init__(
        self,
        factory: OcrProviderFactory,
        config: OcrConfig | None = None,
        pool: CanvasPool | None = None,
    ):
        self.factory = factory
        self.config = config or OcrConfig()
        self.pool = pool or CanvasPool(self.config.pdf_batch_size)

    async def extract(
        self,
        file: DocumentFile,
        on_progress: ProgressCallback | None = None,
        language: str | None = None,
        provider_name: str | None = None,
    ) -> PdfExtraction:
        """
        Extract every page, joined by the page-break marker.

        Args:
            file: The PDF.
            on_progress: Called with overall progress from 0 to 100.
            language: OCR language, "auto" to detect from the first page.
            provider_name: OCR provider for scanned pages.

        Raises:
            ProcessingError: If the PDF cannot be opened.
        """
        language = language or self.config.language
        provider_name = provider_name or self.config.provider

        try:
            doc = fitz.open(stream=file.data, filetype="pdf")
        except Exception as e:
            raise ProcessingError(
                f"Failed to open PDF {file.name}: {e}", "OCR", "PDF_OPEN_FAILED"
            ) from e

        try:
            page_count = len(doc)
            logger.info("Processing %s: %d pages", file.name, page_count)
            progress = _Progress(on_progress, page_count)
            pages: list[PageExtraction] = []
            detected_language: str | None = None
            batch_size = self.config.pdf_batch_size

            for start in range(0, page_count, batch_size):
                indices = range(start, min(start + batch_size, page_count))
                page_language = language
                if language == AUTO_LANGUAGE and detected_language is not None:
                    page_language = detected_language

                results = await asyncio.gather(
                    *(
                        self._extract_page(doc, i, file.name, page_language, provider_name, progress)
                        for i in indices
                    )
                )
                for page, detected in results:
                    pages.append(page)
                    if page.index == 0 and detected:
                        detected_language = detected
                        logger.debug("Document language from page 1: %s", detected)
        finally:
            doc.close()

        progress.report(100)
        text = PAGE_SEPARATOR.join(page.text for page in pages)
        return PdfExtraction(text=text, pages=pages, detected_language=detected_language)

    async def _extract_page(
        self,
        doc: fitz.Document,
        index: int,
        source_name: str,
        language: str,
        provider_name: str,
        progress: _Progress,
    ) -> tuple[PageExtraction, str | None]:
        """Extract one page; returns the page and the language OCR detected."""
        page = doc[index]
        text = page_text_layer(page)

        if text:
            progress.page(index, 1.0)
            return PageExtraction(index=index, text=text, method="text_layer"), None

        logger.debug("Page %d has no text layer, running OCR", index + 1)
        canvas = self.pool.acquire()
        try:
            png = render_page_png(page, canvas, self.config.pdf_render_scale)
        finally:
            self.pool.release(canvas)
        del page

        stem = PurePath(source_name).stem or "document"
        image = DocumentFile(f"{stem}-page-{index + 1}.png", "image/png", png)
        provider = self.factory.get_provider(provider_name)
        result = await provider.extract_text(image, progress.for_page(index), language)

        progress.page(index, 1.0)
        return (
            PageExtraction(index=index, text=result.text, method="ocr", confidence=result.confidence),
            result.detected_language,
        )

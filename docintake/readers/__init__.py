"""PDF reading module (PyMuPDF)."""

from docintake.readers.pdf_reader import (
    CanvasPool,
    PdfPageProcessor,
    page_text_layer,
)

__all__ = [
    "PdfPageProcessor",
    "CanvasPool",
    "page_text_layer",
]

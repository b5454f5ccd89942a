"""
Data models for docintake.

These models represent the input files, OCR output, detected document
structure and the records handed to the persistence service.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

# Language tags (Tesseract-style three-letter codes)
AUTO_LANGUAGE = "auto"
DEFAULT_LANGUAGE = "eng"

DEFAULT_PAGE_BREAK = "=== PAGE BREAK ==="
PAGE_SEPARATOR = f"\n\n{DEFAULT_PAGE_BREAK}\n\n"

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class ExtractionStrategy(Enum):
    """Which pages contribute to the text sent for classification."""

    ALL = "all"
    FIRST_PAGE = "first_page"
    FIRST_LAST = "first_last"
    FIRST_MIDDLE_LAST = "first_middle_last"


class SegmentType(Enum):
    """Structural kind of a persisted segment."""

    HEADING = "heading"
    KEY_VALUE = "key_value"
    TABLE = "table"
    PARAGRAPH = "paragraph"
    LIST = "list"


# =============================================================================
# INPUT
# =============================================================================


@dataclass(frozen=True)
class DocumentFile:
    """An uploaded file: name, MIME type and raw bytes."""

    name: str
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        """Size in bytes."""
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path) -> DocumentFile:
        """
        Load a file from disk, guessing its MIME type.

        The extension is tried first; files without a recognizable
        extension are sniffed for the ``%PDF`` header.

        Raises:
            FileNotFoundError: If the path does not exist.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {path}")

        data = path.read_bytes()
        mime_type, _ = mimetypes.guess_type(path.name)
        if mime_type is None:
            mime_type = PDF_MIME if data.startswith(b"%PDF") else "application/octet-stream"
        return cls(name=path.name, mime_type=mime_type, data=data)


# =============================================================================
# OCR OUTPUT
# =============================================================================


@dataclass(frozen=True)
class OcrBlock:
    """One recognized text region.

    ``box`` is an 8-number polygon (x0, y0, x1, y1, x2, y2, x3, y3) in
    image pixels, clockwise from the top-left corner.
    """

    text: str
    confidence: float
    box: tuple[float, ...] | None = None

    @property
    def center_y(self) -> float | None:
        """Vertical center of the polygon."""
        if not self.box:
            return None
        ys = self.box[1::2]
        return (min(ys) + max(ys)) / 2

    @property
    def center_x(self) -> float | None:
        """Horizontal center of the polygon."""
        if not self.box:
            return None
        xs = self.box[0::2]
        return (min(xs) + max(xs)) / 2


@dataclass(frozen=True)
class OcrResult:
    """Result of one recognition call."""

    text: str
    confidence: float  # 0.0 to 1.0
    language: str
    detected_language: str | None = None
    blocks: tuple[OcrBlock, ...] = ()


@dataclass
class PageExtraction:
    """How a single PDF page's text was obtained."""

    index: int  # 0-based page index
    text: str
    method: str  # "text_layer" or "ocr"
    confidence: float | None = None


@dataclass
class PdfExtraction:
    """Text of a whole PDF, pages joined by the page-break marker."""

    text: str
    pages: list[PageExtraction]
    detected_language: str | None = None

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def ocr_pages(self) -> list[int]:
        """Indices of pages that needed OCR."""
        return [p.index for p in self.pages if p.method == "ocr"]


# =============================================================================
# DOCUMENT STRUCTURE
# =============================================================================


@dataclass
class Heading:
    text: str
    level: int  # 1 = all caps, 2 = short isolated line
    line_index: int

    def to_dict(self, include_positions: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {"text": self.text, "level": self.level}
        if include_positions:
            data["lineIndex"] = self.line_index
        return data


@dataclass
class Paragraph:
    text: str
    line_index: int  # first line of the paragraph

    def to_dict(self, include_positions: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {"text": self.text}
        if include_positions:
            data["lineIndex"] = self.line_index
        return data


@dataclass
class ListItem:
    text: str
    line_index: int

    def to_dict(self, include_positions: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {"text": self.text}
        if include_positions:
            data["lineIndex"] = self.line_index
        return data


@dataclass
class DocumentList:
    ordered: bool
    items: list[ListItem] = field(default_factory=list)

    @property
    def last_line_index(self) -> int | None:
        return self.items[-1].line_index if self.items else None

    def to_dict(self, include_positions: bool = True) -> dict[str, Any]:
        return {
            "ordered": self.ordered,
            "items": [item.to_dict(include_positions) for item in self.items],
        }


@dataclass
class KeyValuePair:
    key: str
    value: str
    line_index: int

    def to_dict(self, include_positions: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {"key": self.key, "value": self.value}
        if include_positions:
            data["lineIndex"] = self.line_index
        return data


@dataclass
class Table:
    headers: list[str]
    rows: list[list[str]]
    start_line_index: int
    end_line_index: int

    def to_dict(self, include_positions: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {"headers": list(self.headers), "rows": [list(r) for r in self.rows]}
        if include_positions:
            data["startLineIndex"] = self.start_line_index
            data["endLineIndex"] = self.end_line_index
        return data


@dataclass
class DocumentStructure:
    """Headings, paragraphs, lists, key-value pairs and tables of one text.

    Each category keeps first-encountered line order. Line indices are weak
    back-references into the source text, used for ordering and debugging.
    """

    headings: list[Heading] = field(default_factory=list)
    paragraphs: list[Paragraph] = field(default_factory=list)
    lists: list[DocumentList] = field(default_factory=list)
    key_value_pairs: list[KeyValuePair] = field(default_factory=list)
    tables: list[Table] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.headings or self.paragraphs or self.lists or self.key_value_pairs or self.tables
        )

    def to_dict(self, include_positions: bool = True) -> dict[str, Any]:
        """JSON-ready representation; positions are omitted when stripped."""
        return {
            "headings": [h.to_dict(include_positions) for h in self.headings],
            "paragraphs": [p.to_dict(include_positions) for p in self.paragraphs],
            "lists": [lst.to_dict(include_positions) for lst in self.lists],
            "keyValuePairs": [kv.to_dict(include_positions) for kv in self.key_value_pairs],
            "tables": [t.to_dict(include_positions) for t in self.tables],
        }


# =============================================================================
# PERSISTED OUTPUT
# =============================================================================


@dataclass(frozen=True)
class Segment:
    """One structurally-classified unit of document text, as persisted."""

    document_id: str
    segment_type: SegmentType
    segment_text: str
    segment_markdown: str
    segment_data: dict[str, Any]
    position_data: dict[str, Any]
    confidence_score: float

    def to_record(self) -> dict[str, Any]:
        """Column mapping for the segments table."""
        return {
            "document_id": self.document_id,
            "segment_type": self.segment_type.value,
            "segment_text": self.segment_text,
            "segment_markdown": self.segment_markdown,
            "segment_data": self.segment_data,
            "position_data": self.position_data,
            "confidence_score": self.confidence_score,
        }


@dataclass
class ProcessedDocument:
    """
    Everything the pipeline produced for one document.

    Example:
        >>> result = await intake.process(file, classifier, persistence)
        >>> print(result.classification, result.document_id)
        >>> print(result.markdown)
    """

    file_name: str
    mime_type: str
    extracted_text: str
    classification_text: str
    classification: str
    markdown: str
    structured: dict[str, Any]
    segments: list[Segment] = field(default_factory=list)
    detected_language: str | None = None
    extraction_strategy: ExtractionStrategy = ExtractionStrategy.FIRST_PAGE
    ocr_processed: bool = False
    extraction_complete: bool = False
    storage_path: str | None = None
    document_id: str | None = None

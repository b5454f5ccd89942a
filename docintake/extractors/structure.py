"""
Heuristic document structure detection over plain text.

One forward pass over the text's lines. Each non-blank line is tested against
an ordered list of classifiers and the first match wins:

1. heading     all-caps line, or a short line isolated by blank lines
2. key_value   "Key: value" with a short key
3. list_item   "-", "•", "*" or "N." prefix
4. table_row   pipe-delimited, or 3+ cells separated by runs of 2+ spaces
5. paragraph   everything else, merged with adjacent paragraph lines

Blank lines and page-break markers are not classified; they end the current
paragraph and close an open table. The priority order decides ambiguous lines
(a short all-caps "TOTAL: 5" is a heading) and must stay stable.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from docintake.models import (
    DEFAULT_PAGE_BREAK,
    DocumentList,
    DocumentStructure,
    Heading,
    KeyValuePair,
    ListItem,
    Paragraph,
    Table,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)


# =============================================================================
# PATTERNS AND LIMITS
# =============================================================================

HEADING_MAX_LENGTH = 50  # exclusive
ALL_CAPS_MIN_LENGTH = 4
KEY_MAX_LENGTH = 30  # exclusive
KEY_MAX_WORDS = 6  # exclusive
LIST_GROUP_DISTANCE = 2  # max line gap between items of one list
MIN_WHITESPACE_CELLS = 3

BULLET_RE = re.compile(r"^[-•*]\s+")
NUMBERED_RE = re.compile(r"^\d+\.\s+")
CELL_GAP_RE = re.compile(r"\s{2,}")
ALIGNMENT_CELL_RE = re.compile(r"^:?-{3,}:?$")


@dataclass(frozen=True)
class Line:
    """A trimmed source line with its blank-line context."""

    index: int  # position in the source text's lines
    text: str
    previous_blank: bool
    next_blank: bool  # also true at the end of the text


def split_cells(text: str) -> list[str]:
    """Split a table-like line into non-empty trimmed cells."""
    parts = text.split("|") if "|" in text else CELL_GAP_RE.split(text)
    return [cell.strip() for cell in parts if cell.strip()]


def _is_alignment_row(cells: list[str]) -> bool:
    return bool(cells) and all(ALIGNMENT_CELL_RE.match(cell) for cell in cells)


# =============================================================================
# CLASSIFIERS
# =============================================================================
# Each matcher returns a payload when the line belongs to its category, or
# None to let the next classifier try.


def match_heading(line: Line) -> int | None:
    """Heading level: 1 for all caps, 2 for a short isolated line."""
    text = line.text
    if len(text) >= HEADING_MAX_LENGTH:
        return None
    # Needs a cased letter so numeric rows like "2024  100  200" don't qualify
    if len(text) >= ALL_CAPS_MIN_LENGTH and text == text.upper() and text != text.lower():
        return 1
    if line.index > 0 and line.previous_blank and line.next_blank:
        return 2
    return None


def match_key_value(line: Line) -> tuple[str, str] | None:
    key, sep, value = line.text.partition(":")
    if not sep:
        return None
    key, value = key.strip(), value.strip()
    if not key or not value:
        return None
    if len(key) >= KEY_MAX_LENGTH or len(key.split()) >= KEY_MAX_WORDS:
        return None
    return key, value


def match_list_item(line: Line) -> tuple[bool, str] | None:
    """(ordered, item text without its marker)."""
    numbered = NUMBERED_RE.match(line.text)
    if numbered:
        return True, line.text[numbered.end() :]
    bullet = BULLET_RE.match(line.text)
    if bullet:
        return False, line.text[bullet.end() :]
    return None


def match_table_row(line: Line) -> list[str] | None:
    text = line.text
    if "|" in text:
        return split_cells(text)
    if "  " in text:
        cells = split_cells(text)
        if len(cells) >= MIN_WHITESPACE_CELLS:
            return cells
    return None


def match_paragraph(line: Line) -> str:
    return line.text


@dataclass(frozen=True)
class LineClassifier:
    """A named matcher paired with the handler that records its matches."""

    name: str
    match: Callable[[Line], Any]
    apply: Callable[[_DetectionState, Line, Any], None]


# =============================================================================
# DETECTION STATE
# =============================================================================


@dataclass
class _DetectionState:
    structure: DocumentStructure = field(default_factory=DocumentStructure)
    paragraph_lines: list[str] = field(default_factory=list)
    paragraph_start: int = 0
    table: Table | None = None

    def flush_paragraph(self) -> None:
        if self.paragraph_lines:
            text = " ".join(self.paragraph_lines)
            self.structure.paragraphs.append(Paragraph(text=text, line_index=self.paragraph_start))
            self.paragraph_lines = []

    def close_table(self) -> None:
        if self.table is not None:
            self.structure.tables.append(self.table)
            self.table = None

    def end_blocks(self) -> None:
        self.flush_paragraph()
        self.close_table()

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def add_heading(self, line: Line, level: int) -> None:
        self.end_blocks()
        self.structure.headings.append(Heading(text=line.text, level=level, line_index=line.index))

    def add_key_value(self, line: Line, pair: tuple[str, str]) -> None:
        self.end_blocks()
        key, value = pair
        self.structure.key_value_pairs.append(KeyValuePair(key=key, value=value, line_index=line.index))

    def add_list_item(self, line: Line, item: tuple[bool, str]) -> None:
        self.end_blocks()
        ordered, text = item
        target = None
        for candidate in reversed(self.structure.lists):
            last = candidate.last_line_index
            if (
                candidate.ordered == ordered
                and last is not None
                and line.index - last <= LIST_GROUP_DISTANCE
            ):
                target = candidate
                break
        if target is None:
            target = DocumentList(ordered=ordered)
            self.structure.lists.append(target)
        target.items.append(ListItem(text=text, line_index=line.index))

    def add_table_row(self, line: Line, cells: list[str]) -> None:
        self.flush_paragraph()
        if self.table is None:
            self.table = Table(headers=[], rows=[], start_line_index=line.index, end_line_index=line.index)
            if len(cells) > 1:
                self.table.headers = cells
        elif len(cells) > 1 and not _is_alignment_row(cells):
            self.table.rows.append(cells)
        self.table.end_line_index = line.index

    def add_paragraph_line(self, line: Line, text: str) -> None:
        self.close_table()
        if not self.paragraph_lines:
            self.paragraph_start = line.index
        self.paragraph_lines.append(text)


DEFAULT_CLASSIFIERS: tuple[LineClassifier, ...] = (
    LineClassifier("heading", match_heading, _DetectionState.add_heading),
    LineClassifier("key_value", match_key_value, _DetectionState.add_key_value),
    LineClassifier("list_item", match_list_item, _DetectionState.add_list_item),
    LineClassifier("table_row", match_table_row, _DetectionState.add_table_row),
    LineClassifier("paragraph", match_paragraph, _DetectionState.add_paragraph_line),
)


# =============================================================================
# DETECTOR
# =============================================================================


class DocumentStructureDetector:
    """
    Detects headings, key-value pairs, lists, tables and paragraphs in text.

    Example:
        >>> detector = DocumentStructureDetector()
        >>> structure = detector.detect("INVOICE\\n\\nVendor: Acme Co")
        >>> structure.headings[0].text, structure.key_value_pairs[0].key
        ('INVOICE', 'Vendor')
    """

    def __init__(
        self,
        page_break_markers: Sequence[str] | None = None,
        classifiers: Sequence[LineClassifier] = DEFAULT_CLASSIFIERS,
    ):
        markers = page_break_markers if page_break_markers is not None else [DEFAULT_PAGE_BREAK]
        self.page_break_markers = frozenset(m.strip() for m in markers)
        self.classifiers = tuple(classifiers)

    def _is_separator(self, text: str) -> bool:
        return not text or text in self.page_break_markers

    def lines(self, text: str) -> list[Line]:
        """Every trimmed line with its blank-line neighbours."""
        raw = [line.strip() for line in text.splitlines()]
        blank = [self._is_separator(line) for line in raw]
        return [
            Line(
                index=i,
                text=line,
                previous_blank=i > 0 and blank[i - 1],
                next_blank=i + 1 >= len(raw) or blank[i + 1],
            )
            for i, line in enumerate(raw)
        ]

    def detect(self, text: str) -> DocumentStructure:
        """Classify every line of ``text`` in a single pass."""
        state = _DetectionState()

        for line in self.lines(text):
            if self._is_separator(line.text):
                state.end_blocks()
                continue

            for classifier in self.classifiers:
                payload = classifier.match(line)
                if payload is not None:
                    classifier.apply(state, line, payload)
                    break

        state.end_blocks()

        structure = state.structure
        logger.debug(
            "Detected %d headings, %d paragraphs, %d lists, %d key-value pairs, %d tables",
            len(structure.headings),
            len(structure.paragraphs),
            len(structure.lists),
            len(structure.key_value_pairs),
            len(structure.tables),
        )
        return structure


def detect_structure(text: str, page_break_markers: Sequence[str] | None = None) -> DocumentStructure:
    """Convenience wrapper around DocumentStructureDetector.detect."""
    return DocumentStructureDetector(page_break_markers).detect(text)

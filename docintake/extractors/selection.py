"""
Extraction strategy selection: which pages of a document feed classification.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from docintake.config import ExtractionConfig
from docintake.models import DEFAULT_PAGE_BREAK, ExtractionStrategy

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

PAGE_ELLIPSIS = "\n\n[...]\n\n"
TRUNCATION_SUFFIX = " [...]"


@dataclass(frozen=True)
class ExtractionResult:
    """The full document text and the part selected for classification."""

    full_text: str
    classification_text: str


def split_pages(text: str, page_break_markers: Sequence[str] | None = None) -> list[str]:
    """
    Split on the first marker that occurs in ``text``.

    Pages are trimmed and empty pages dropped. Text without any marker is a
    single page.
    """
    if not text:
        return []

    markers = list(page_break_markers or []) or [DEFAULT_PAGE_BREAK]
    pages = [text]
    for marker in markers:
        if marker and marker in text:
            pages = text.split(marker)
            break

    return [page.strip() for page in pages if page.strip()]


def truncate(text: str, max_length: int) -> str:
    """Hard character cut with a trailing indicator."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + TRUNCATION_SUFFIX


def apply_strategy(pages: list[str], strategy: ExtractionStrategy, full_text: str) -> str:
    if strategy is ExtractionStrategy.ALL:
        return full_text
    if not pages:
        return ""
    if strategy is ExtractionStrategy.FIRST_PAGE:
        return pages[0]
    if strategy is ExtractionStrategy.FIRST_LAST:
        if len(pages) == 1:
            return pages[0]
        return pages[0] + PAGE_ELLIPSIS + pages[-1]
    if strategy is ExtractionStrategy.FIRST_MIDDLE_LAST:
        if len(pages) <= 2:
            return "\n\n".join(pages)
        middle = pages[len(pages) // 2]
        return PAGE_ELLIPSIS.join([pages[0], middle, pages[-1]])
    raise ValueError(f"Unknown extraction strategy: {strategy!r}")


def select_classification_text(
    full_text: str,
    page_break_markers: Sequence[str] | None = None,
    config: ExtractionConfig | None = None,
) -> ExtractionResult:
    """
    Select the classification text of a document according to its strategy.

    Example:
        >>> config = ExtractionConfig(strategy=ExtractionStrategy.FIRST_LAST)
        >>> select_classification_text(text, ["=== PAGE BREAK ==="], config)
        ExtractionResult(full_text='...', classification_text='page 1\\n\\n[...]\\n\\npage 3')
    """
    config = config or ExtractionConfig()
    if page_break_markers is None:
        page_break_markers = config.page_break_markers

    pages = split_pages(full_text, page_break_markers)
    selected = apply_strategy(pages, config.strategy, full_text)
    classification_text = truncate(selected, config.max_classification_length)

    logger.debug(
        "Selected %d of %d characters from %d pages (%s)",
        len(classification_text),
        len(full_text),
        len(pages),
        config.strategy.value,
    )
    return ExtractionResult(full_text=full_text, classification_text=classification_text)

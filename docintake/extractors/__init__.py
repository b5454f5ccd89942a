"""
Structure extraction from recognized text.

- DocumentStructureDetector: single-pass line classification into headings,
  key-value pairs, lists, tables and paragraphs
- render / convert_to_markdown: fixed-order markdown rendering
- build_segments: one persisted segment per structural unit
- select_classification_text: page selection for classification
"""

from docintake.extractors.markup import (
    convert_to_markdown,
    render,
    render_markdown,
)
from docintake.extractors.segments import SEGMENT_CONFIDENCE, build_segments
from docintake.extractors.selection import (
    ExtractionResult,
    select_classification_text,
    split_pages,
)
from docintake.extractors.structure import (
    DEFAULT_CLASSIFIERS,
    DocumentStructureDetector,
    LineClassifier,
    detect_structure,
)

__all__ = [
    # Structure
    "DocumentStructureDetector",
    "LineClassifier",
    "DEFAULT_CLASSIFIERS",
    "detect_structure",
    # Markup
    "render",
    "render_markdown",
    "convert_to_markdown",
    # Segments
    "build_segments",
    "SEGMENT_CONFIDENCE",
    # Selection
    "select_classification_text",
    "split_pages",
    "ExtractionResult",
]

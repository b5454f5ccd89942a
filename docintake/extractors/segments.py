"""
Segment building: one persisted record per structural unit of a document.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from docintake.extractors.markup import (
    heading_markdown,
    key_value_markdown,
    table_markdown,
)
from docintake.models import Segment, SegmentType

if TYPE_CHECKING:
    from docintake.models import DocumentStructure

# Confidence per segment kind, reflecting how reliable each heuristic is
SEGMENT_CONFIDENCE = {
    SegmentType.HEADING: 0.9,
    SegmentType.KEY_VALUE: 0.85,
    SegmentType.LIST: 0.8,
    SegmentType.PARAGRAPH: 0.8,
    SegmentType.TABLE: 0.75,
}


def _segment(
    document_id: str,
    kind: SegmentType,
    text: str,
    markdown: str,
    data: dict,
    position: dict,
) -> Segment:
    return Segment(
        document_id=document_id,
        segment_type=kind,
        segment_text=text,
        segment_markdown=markdown,
        segment_data=data,
        position_data=position,
        confidence_score=SEGMENT_CONFIDENCE[kind],
    )


def build_segments(document_id: str, structure: DocumentStructure) -> list[Segment]:
    """
    Flatten a structure into segments, grouped by kind.

    Lists contribute one segment per item; tables without headers are skipped.
    """
    segments: list[Segment] = []

    for heading in structure.headings:
        segments.append(
            _segment(
                document_id,
                SegmentType.HEADING,
                heading.text,
                heading_markdown(heading),
                {"level": heading.level},
                {"lineIndex": heading.line_index},
            )
        )

    for pair in structure.key_value_pairs:
        segments.append(
            _segment(
                document_id,
                SegmentType.KEY_VALUE,
                f"{pair.key}: {pair.value}",
                key_value_markdown(pair),
                {"key": pair.key, "value": pair.value},
                {"lineIndex": pair.line_index},
            )
        )

    for lst in structure.lists:
        for number, item in enumerate(lst.items, start=1):
            prefix = f"{number}." if lst.ordered else "-"
            segments.append(
                _segment(
                    document_id,
                    SegmentType.LIST,
                    item.text,
                    f"{prefix} {item.text}",
                    {"ordered": lst.ordered},
                    {"lineIndex": item.line_index},
                )
            )

    for paragraph in structure.paragraphs:
        segments.append(
            _segment(
                document_id,
                SegmentType.PARAGRAPH,
                paragraph.text,
                paragraph.text,
                {},
                {"lineIndex": paragraph.line_index},
            )
        )

    for table in structure.tables:
        if not table.headers:
            continue
        text = "\n".join(" | ".join(cells) for cells in [table.headers, *table.rows])
        segments.append(
            _segment(
                document_id,
                SegmentType.TABLE,
                text,
                table_markdown(table),
                {"headers": list(table.headers), "rows": [list(r) for r in table.rows]},
                {"startLineIndex": table.start_line_index, "endLineIndex": table.end_line_index},
            )
        )

    return segments

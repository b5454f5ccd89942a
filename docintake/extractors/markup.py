"""
Markdown rendering of a detected DocumentStructure.

Categories are emitted in a fixed order (headings, paragraphs, lists,
key-value pairs, tables), each in full before the next. This is a
presentation order, not the document's reading order; callers needing true
order use the positional data in the structured output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from docintake.config import MarkupOptions
from docintake.extractors.structure import DocumentStructureDetector

if TYPE_CHECKING:
    from docintake.models import DocumentList, DocumentStructure, Heading, KeyValuePair, Table


def heading_markdown(heading: Heading) -> str:
    return f"{'#' * max(1, heading.level)} {heading.text}"


def list_markdown(lst: DocumentList) -> str:
    if lst.ordered:
        return "\n".join(f"{n}. {item.text}" for n, item in enumerate(lst.items, start=1))
    return "\n".join(f"- {item.text}" for item in lst.items)


def key_value_markdown(pair: KeyValuePair) -> str:
    return f"**{pair.key}:** {pair.value}"


def _table_row(cells: list[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def table_markdown(table: Table) -> str:
    """Header row, one ``---`` separator per column, then the data rows."""
    lines = [_table_row(table.headers), _table_row(["---"] * len(table.headers))]
    lines.extend(_table_row(row) for row in table.rows)
    return "\n".join(lines)


def render_markdown(structure: DocumentStructure, options: MarkupOptions | None = None) -> str:
    """Render the markdown text only."""
    options = options or MarkupOptions()
    blocks: list[str] = []

    if options.detect_headings:
        blocks.extend(heading_markdown(h) for h in structure.headings)

    blocks.extend(p.text for p in structure.paragraphs)

    if options.detect_lists:
        blocks.extend(list_markdown(lst) for lst in structure.lists if lst.items)

    if structure.key_value_pairs:
        blocks.append("\n".join(key_value_markdown(kv) for kv in structure.key_value_pairs))

    if options.detect_tables:
        # Tables whose first line had a single cell have no headers to render
        blocks.extend(table_markdown(t) for t in structure.tables if t.headers)

    return "\n\n".join(blocks).strip()


def render(structure: DocumentStructure, options: MarkupOptions | None = None) -> dict[str, Any]:
    """
    Render a structure to markdown alongside its JSON-ready form.

    Returns:
        ``{"markdown": str, "structure": dict}``. Line indices are omitted
        from the structure when ``include_positional_data`` is off.
    """
    options = options or MarkupOptions()
    return {
        "markdown": render_markdown(structure, options),
        "structure": structure.to_dict(include_positions=options.include_positional_data),
    }


def convert_to_markdown(
    text: str,
    options: MarkupOptions | None = None,
    detector: DocumentStructureDetector | None = None,
) -> dict[str, Any]:
    """Detect the structure of ``text`` and render it."""
    detector = detector or DocumentStructureDetector()
    return render(detector.detect(text), options)

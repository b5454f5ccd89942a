"""
Reading-order reconstruction for recognized blocks.

Block order from the recognition engine does not follow visual reading
order, so blocks are re-sorted spatially: by vertical center, grouped into
lines when consecutive centers are within a pixel threshold, then sorted
left-to-right within each line.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from docintake.models import OcrBlock

DEFAULT_LINE_THRESHOLD_PX = 20.0


def group_lines(
    blocks: Sequence[OcrBlock],
    threshold: float = DEFAULT_LINE_THRESHOLD_PX,
) -> list[list[OcrBlock]]:
    """
    Group blocks into visual lines.

    Blocks without a polygon cannot be placed; each becomes its own line
    after the positioned lines, in engine order.

    Args:
        blocks: Recognized blocks in any order.
        threshold: Maximum distance (px) between consecutive vertical
            centers for two blocks to share a line.

    Returns:
        Lines top-to-bottom, each sorted left-to-right.
    """
    positioned = sorted((b for b in blocks if b.box), key=lambda b: b.center_y)
    lines: list[list[OcrBlock]] = []
    previous_center: float | None = None

    for block in positioned:
        center = block.center_y
        if lines and previous_center is not None and abs(center - previous_center) <= threshold:
            lines[-1].append(block)
        else:
            lines.append([block])
        previous_center = center

    for line in lines:
        line.sort(key=lambda b: b.center_x)

    lines.extend([b] for b in blocks if not b.box)
    return lines


def reading_order_text(
    blocks: Sequence[OcrBlock],
    threshold: float = DEFAULT_LINE_THRESHOLD_PX,
) -> str:
    """Join blocks into text: spaces within a line, newlines between lines."""
    lines = group_lines(blocks, threshold)
    return "\n".join(" ".join(b.text for b in line if b.text) for line in lines)

"""
Virtualization window for fixed-height row lists.

Only rows intersecting the viewport (plus an overscan margin on each side)
are realized; the rest of the list is reserved as blank space through the
total extent, with the realized block positioned at ``start * row_height``.
"""

import math
from typing import List, Sequence, Tuple, TypeVar

T = TypeVar('T')

DEFAULT_ROW_HEIGHT = 40
DEFAULT_OVERSCAN = 10


def visible_slice(total_count: int, row_height: float, viewport_height: float,
                  scroll_offset: float, overscan: int = DEFAULT_OVERSCAN) -> Tuple[int, int]:
    """
    Compute the half-open row range ``[start, end)`` to realize.

    A viewport height of zero (layout not known yet) disables windowing and
    returns every row.

    Args:
        total_count: Number of rows in the list
        row_height: Fixed row height in pixels
        viewport_height: Measured viewport height in pixels
        scroll_offset: Current vertical scroll offset in pixels
        overscan: Extra rows realized above and below the viewport

    Returns:
        Tuple (start, end)

    Raises:
        ValueError: If ``row_height`` is not positive
    """
    if row_height <= 0:
        raise ValueError(f"row_height must be positive, got {row_height}")
    total_count = max(0, total_count)
    if viewport_height <= 0:
        return 0, total_count

    scroll_offset = max(0.0, scroll_offset)
    start = max(0, math.floor(scroll_offset / row_height) - overscan)
    end = min(total_count, math.ceil((scroll_offset + viewport_height) / row_height) + overscan)
    return min(start, end), end


class VirtualWindow:
    """Scroll/viewport state of one virtualized list."""

    def __init__(self, row_height: float = DEFAULT_ROW_HEIGHT, overscan: int = DEFAULT_OVERSCAN):
        if row_height <= 0:
            raise ValueError(f"row_height must be positive, got {row_height}")
        self.row_height = row_height
        self.overscan = overscan
        self.viewport_height = 0.0
        self.scroll_offset = 0.0

    def set_viewport_height(self, height: float):
        self.viewport_height = max(0.0, height)

    def set_scroll_offset(self, offset: float):
        self.scroll_offset = max(0.0, offset)

    def slice_for(self, total_count: int) -> Tuple[int, int]:
        """Row range to realize for a list of ``total_count`` rows."""
        return visible_slice(total_count, self.row_height, self.viewport_height,
                             self.scroll_offset, self.overscan)

    def total_extent(self, total_count: int) -> float:
        """Scrollable height of the whole list."""
        return total_count * self.row_height

    def offset_top(self, start: int) -> float:
        """Top position of the realized block."""
        return start * self.row_height

    def visible_rows(self, rows: Sequence[T]) -> List[T]:
        start, end = self.slice_for(len(rows))
        return list(rows[start:end])

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Sequence

ROW_HEIGHT = 36
VIEWPORT_HEIGHT = 560
OVERSCAN = 10


@dataclass(frozen=True)
class Window:
    start: int
    end: int
    row_height: int
    total_rows: int

    @property
    def pad_top(self) -> int:
        return self.start * self.row_height

    @property
    def pad_bottom(self) -> int:
        return (self.total_rows - self.end) * self.row_height

    @property
    def materialized_height(self) -> int:
        return (self.end - self.start) * self.row_height

    @property
    def total_height(self) -> int:
        return self.total_rows * self.row_height

    def slice(self, rows: Sequence[Any]) -> Sequence[Any]:
        return rows[self.start:self.end]

    def to_dict(self) -> Dict[str, int]:
        out = asdict(self)
        out.update(pad_top=self.pad_top, pad_bottom=self.pad_bottom, total_height=self.total_height)
        return out


def compute_window(
    n: int,
    scroll_offset: float,
    row_height: int = ROW_HEIGHT,
    viewport_height: int = VIEWPORT_HEIGHT,
    overscan: int = OVERSCAN,
) -> Window:
    """Contiguous row range intersecting the viewport, padded by overscan rows on both sides."""
    n = max(0, int(n))
    row_height = max(1, int(row_height))
    offset = max(0.0, float(scroll_offset or 0))
    end = min(n, math.ceil((offset + viewport_height) / row_height) + overscan)
    start = min(max(0, math.floor(offset / row_height) - overscan), end)
    return Window(start=start, end=end, row_height=row_height, total_rows=n)

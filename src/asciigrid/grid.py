from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class CharGrid:
    rows: list[str]  # one string per row
    colours: np.ndarray | None = None  # (rows, cols, 3) uint8, or None

    def __post_init__(self):
        widths = {len(row) for row in self.rows}
        if len(widths) > 1:
            raise ValueError(f"Grid rows have different lengths: {sorted(widths)}")
        if self.colours is not None:
            expected = (self.height, self.width, 3)
            if self.colours.shape != expected:
                raise ValueError(f"Colour array shape {self.colours.shape} does not match grid {expected}")
            self.colours.setflags(write=False)

    @property
    def width(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    @property
    def height(self) -> int:
        return len(self.rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CharGrid):
            return NotImplemented
        if self.rows != other.rows:
            return False
        if self.colours is None or other.colours is None:
            return self.colours is None and other.colours is None
        return bool(np.array_equal(self.colours, other.colours))

    __hash__ = None

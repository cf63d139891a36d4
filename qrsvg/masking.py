"""Which module coordinates ordinary dot drawing may paint."""

from dataclasses import dataclass

import numpy as np

from qrsvg.constants import FINDER_SIZE
from qrsvg.logging import get_logger

log = get_logger("masking")

# Outer ring of a finder pattern
SQUARE_MASK = np.array([
    [1, 1, 1, 1, 1, 1, 1],
    [1, 0, 0, 0, 0, 0, 1],
    [1, 0, 0, 0, 0, 0, 1],
    [1, 0, 0, 0, 0, 0, 1],
    [1, 0, 0, 0, 0, 0, 1],
    [1, 0, 0, 0, 0, 0, 1],
    [1, 1, 1, 1, 1, 1, 1],
], dtype=bool)

# 3x3 centre of a finder pattern
DOT_MASK = np.array([
    [0, 0, 0, 0, 0, 0, 0],
    [0, 0, 0, 0, 0, 0, 0],
    [0, 0, 1, 1, 1, 0, 0],
    [0, 0, 1, 1, 1, 0, 0],
    [0, 0, 1, 1, 1, 0, 0],
    [0, 0, 0, 0, 0, 0, 0],
    [0, 0, 0, 0, 0, 0, 0],
], dtype=bool)


def mask_lookup(mask: np.ndarray, row: int, col: int) -> bool:
    """Out-of-range lookups read as empty."""
    rows, cols = mask.shape
    return 0 <= row < rows and 0 <= col < cols and bool(mask[row, col])


def finder_origins(count: int) -> list[tuple[int, int]]:
    """(row, col) of the top-left, top-right and bottom-left finder patterns."""
    far = count - FINDER_SIZE
    return [(0, 0), (0, far), (far, 0)]


def hidden_region(count: int, hidden_rows: int, hidden_columns: int) -> tuple[slice, slice]:
    """Centred block of ``hidden_rows x hidden_columns`` modules."""
    top = (count - hidden_rows) // 2
    left = (count - hidden_columns) // 2
    return slice(top, top + hidden_rows), slice(left, left + hidden_columns)


@dataclass(frozen=True)
class ModuleMask:
    """Per-render paintability grid, indexed (row, col) in grid space."""

    paintable: np.ndarray

    @property
    def count(self) -> int:
        return self.paintable.shape[0]

    def is_paintable(self, row: int, col: int) -> bool:
        return mask_lookup(self.paintable, row, col)

    __call__ = is_paintable


def build_mask(count: int, hidden_rows: int = 0, hidden_columns: int = 0) -> ModuleMask:
    """Build the paintability grid for a ``count x count`` symbol.

    The whole 7x7 footprint of each finder pattern is withheld: its ring and
    centre belong to the corner renderer, and the light ring between them is
    never dark in a valid symbol. A centred logo region is withheld when
    ``hidden_rows`` / ``hidden_columns`` are non-zero.
    """
    paintable = np.ones((count, count), dtype=bool)

    for row, col in finder_origins(count):
        paintable[max(row, 0):row + FINDER_SIZE, max(col, 0):col + FINDER_SIZE] = False

    if hidden_rows > 0 and hidden_columns > 0:
        rows, cols = hidden_region(count, hidden_rows, hidden_columns)
        paintable[rows, cols] = False

    paintable.setflags(write=False)
    log.debug("mask built count=%d hidden=%dx%d paintable=%d",
              count, hidden_columns, hidden_rows, int(paintable.sum()))
    return ModuleMask(paintable)

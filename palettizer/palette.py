# palettizer/palette.py
from __future__ import annotations

"""
Palette extraction.

Exports:
  extract_palette(grid) -> Palette
    Every pixel of a source grid contributes (R, G, B, 255). The source alpha
    is discarded; duplicates collapse and rows come out in (R, G, B, A) order.
  palette_from_colors(colors) -> Palette
    Same canonicalisation for an explicit colour list.
"""

from typing import Iterable, Sequence

import numpy as np

from .core_types import OPAQUE, Palette, U8Grid, U8Rows, assert_u8_grid_rgba


def _canonical_palette(rgb_rows: U8Rows) -> Palette:
    """Unique RGB rows, sorted lexicographically, with alpha forced opaque."""
    if rgb_rows.shape[0] == 0:
        return Palette(np.zeros((0, 4), dtype=np.uint8))
    # np.unique(axis=0) sorts rows lexicographically: R, then G, then B.
    uniques = np.unique(rgb_rows.reshape(-1, 3), axis=0)
    colors = np.empty((uniques.shape[0], 4), dtype=np.uint8)
    colors[:, :3] = uniques
    colors[:, 3] = OPAQUE
    return Palette(colors)


def extract_palette(grid: U8Grid) -> Palette:
    """Deduplicated, canonically ordered opaque colours of a source grid."""
    grid = assert_u8_grid_rgba(grid)
    return _canonical_palette(grid[..., :3].reshape(-1, 3))


def palette_from_colors(colors: Iterable[Sequence[int]]) -> Palette:
    """Build a Palette from RGB or RGBA tuples; any alpha given is ignored."""
    rows = [tuple(int(c) for c in colour[:3]) for colour in colors]
    for row in rows:
        if len(row) != 3 or any(c < 0 or c > 255 for c in row):
            raise ValueError(f"invalid colour: {row!r}")
    arr = np.array(rows, dtype=np.uint8).reshape(-1, 3)
    return _canonical_palette(arr)


__all__ = ["extract_palette", "palette_from_colors"]

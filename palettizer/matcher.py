# palettizer/matcher.py
from __future__ import annotations

"""
Nearest-colour matching under Manhattan RGB distance.

Tie-break: palette rows are in canonical (R, G, B, A) order and a candidate
only replaces the current best on strict improvement, so the first of several
equidistant colours wins. The vectorised path relies on np.argmin returning
the first minimum, which gives the same answer.

Empty palette: the scan starts from a sentinel distance above MAX_DISTANCE
and the colour black, so with nothing to scan every pixel comes out black.
"""

from typing import Sequence

import numpy as np

from .core_types import MAX_DISTANCE, OPAQUE, Color, Palette, U8Rows

NO_MATCH_DISTANCE = MAX_DISTANCE + 1
NO_MATCH_COLOR: Color = (0, 0, 0, OPAQUE)

# Rows of the (N, P) distance matrix evaluated per chunk.
DEFAULT_CHUNK_CELLS = 1 << 22


def colour_distance(a: Sequence[int], b: Sequence[int]) -> int:
    """|dR| + |dG| + |dB|. Alpha is ignored."""
    return (
        abs(int(a[0]) - int(b[0]))
        + abs(int(a[1]) - int(b[1]))
        + abs(int(a[2]) - int(b[2]))
    )


def nearest_colour(colour: Sequence[int], palette: Palette) -> Color:
    """Palette member closest to colour's RGB; black for an empty palette."""
    best_distance = NO_MATCH_DISTANCE
    best = NO_MATCH_COLOR
    for candidate in palette:
        d = colour_distance(colour, candidate)
        if d < best_distance:
            best_distance = d
            best = candidate
    return best


def _chunk_rows(num_palette: int, chunk_cells: int) -> int:
    return max(1, chunk_cells // max(1, num_palette))


def nearest_palette_indices(
    rgb_rows: U8Rows,
    palette_rgb: U8Rows,
    *,
    chunk_cells: int = DEFAULT_CHUNK_CELLS,
) -> np.ndarray:
    """
    For each (N, 3) source row, index of the nearest palette row.

    Distances accumulate in int32 so 3 * 255 never wraps. Returns int64 [N];
    an empty palette returns -1 for every row.
    """
    num_rows = int(rgb_rows.shape[0])
    num_palette = int(palette_rgb.shape[0])
    out = np.full((num_rows,), -1, dtype=np.int64)
    if num_rows == 0 or num_palette == 0:
        return out

    pal = palette_rgb[:, :3].astype(np.int32)
    step = _chunk_rows(num_palette, chunk_cells)
    for start in range(0, num_rows, step):
        stop = min(start + step, num_rows)
        src = rgb_rows[start:stop, :3].astype(np.int32)
        dist = np.abs(src[:, None, :] - pal[None, :, :]).sum(axis=2)
        out[start:stop] = np.argmin(dist, axis=1)
    return out


def nearest_rgb_rows(
    rgb_rows: U8Rows,
    palette: Palette,
    *,
    chunk_cells: int = DEFAULT_CHUNK_CELLS,
) -> U8Rows:
    """Matched RGB (N, 3) for each source row; black rows for an empty palette."""
    out = np.zeros((rgb_rows.shape[0], 3), dtype=np.uint8)
    if palette.is_empty():
        out[:] = NO_MATCH_COLOR[:3]
        return out
    idx = nearest_palette_indices(rgb_rows, palette.rgb, chunk_cells=chunk_cells)
    out[:] = palette.rgb[idx]
    return out


__all__ = [
    "NO_MATCH_DISTANCE",
    "NO_MATCH_COLOR",
    "colour_distance",
    "nearest_colour",
    "nearest_palette_indices",
    "nearest_rgb_rows",
]

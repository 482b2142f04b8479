# palettizer/remap.py
from __future__ import annotations

"""
Image remapper.

Each pixel takes the RGB of its nearest palette colour and keeps its own
alpha. Matching is done once per unique target colour, then materialised
per pixel through the inverse index. Pixels never depend on each other, so
the unique-colour block can be split into disjoint spans across threads.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Tuple

import numpy as np

from .core_types import Palette, U8Grid, U8Rows, assert_u8_grid_rgba
from .matcher import nearest_rgb_rows
from .utils import (
    debug_log,
    format_seconds_compact,
    key_value_pairs_to_string,
    split_rows_into_parts,
)

# Below this many unique colours a thread pool costs more than it saves.
MIN_ROWS_PER_WORKER = 4096


def _unique_colours_with_inverse(grid: U8Grid) -> Tuple[U8Rows, np.ndarray]:
    """
    Unique RGB rows of the grid and the inverse index.

    Returns:
      unique_rgb: uint8 [U,3]
      inverse_idx: int64 [H*W], where unique_rgb[inverse_idx] reconstructs flattened pixels
    """
    flat = grid[..., :3].reshape(-1, 3)
    unique_rgb, inverse_idx = np.unique(flat, axis=0, return_inverse=True)
    return (
        unique_rgb.astype(np.uint8, copy=False),
        inverse_idx.reshape(-1).astype(np.int64, copy=False),
    )


def _match_unique(unique_rgb: U8Rows, palette: Palette, workers: int) -> U8Rows:
    """Nearest palette RGB per unique row; spans are written by one worker each."""
    num_unique = int(unique_rgb.shape[0])
    workers = max(1, min(int(workers), num_unique // MIN_ROWS_PER_WORKER))
    if workers <= 1:
        return nearest_rgb_rows(unique_rgb, palette)

    matched = np.empty((num_unique, 3), dtype=np.uint8)

    def _run_span(span: Tuple[int, int]) -> None:
        start, stop = span
        matched[start:stop] = nearest_rgb_rows(unique_rgb[start:stop], palette)

    spans = split_rows_into_parts(num_unique, workers)
    with ThreadPoolExecutor(max_workers=workers) as ex:
        for fut in [ex.submit(_run_span, span) for span in spans]:
            fut.result()
    return matched


def remap_in_place(
    grid: U8Grid,
    palette: Palette,
    *,
    workers: int = 1,
    debug: bool = False,
) -> U8Grid:
    """Remap grid's RGB channels in place; alpha is left untouched."""
    grid = assert_u8_grid_rgba(grid)
    height, width = grid.shape[0], grid.shape[1]
    if height == 0 or width == 0:
        return grid

    t0 = time.perf_counter()
    unique_rgb, inverse_idx = _unique_colours_with_inverse(grid)
    t1 = time.perf_counter()
    matched = _match_unique(unique_rgb, palette, workers)
    t2 = time.perf_counter()
    grid[..., :3] = matched[inverse_idx].reshape(height, width, 3)
    t3 = time.perf_counter()

    if debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Size", f"{width}x{height}"),
                    ("Uniques", int(unique_rgb.shape[0])),
                    ("Palette", len(palette)),
                    ("Workers", workers),
                    ("Unique", format_seconds_compact(t1 - t0)),
                    ("Match", format_seconds_compact(t2 - t1)),
                    ("Write", format_seconds_compact(t3 - t2)),
                ]
            )
        )
    return grid


def remap(
    grid: U8Grid,
    palette: Palette,
    *,
    workers: int = 1,
    debug: bool = False,
) -> U8Grid:
    """New grid of the same shape with every pixel snapped to the palette."""
    out = np.array(assert_u8_grid_rgba(grid), dtype=np.uint8, copy=True)
    return remap_in_place(out, palette, workers=workers, debug=debug)


__all__ = ["remap", "remap_in_place"]

# palettizer/core_types.py
from __future__ import annotations

"""
Core type aliases, the Palette value object, and lightweight helpers.
"""

from dataclasses import dataclass
from typing import Iterator, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

# Basic aliases

Color = Tuple[int, int, int, int]  # (R, G, B, A)
HexStr = str

U8Grid = NDArray[np.uint8]  # (H, W, 4) RGBA
U8Rows = NDArray[np.uint8]  # (N, 3) or (N, 4)

OPAQUE = 255
MAX_DISTANCE = 3 * 255  # largest possible Manhattan RGB distance

# Value objects


@dataclass(frozen=True, eq=False)
class Palette:
    """Unique opaque colours, rows sorted ascending by (R, G, B, A)."""

    colors: U8Rows  # shape (P, 4), alpha == 255

    def __post_init__(self) -> None:
        # Private copy; the caller's array stays writable.
        owned = np.array(self.colors, dtype=np.uint8, copy=True)
        owned.setflags(write=False)
        object.__setattr__(self, "colors", owned)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Palette):
            return NotImplemented
        return bool(np.array_equal(self.colors, other.colors))

    def __len__(self) -> int:
        return int(self.colors.shape[0])

    def __iter__(self) -> Iterator[Color]:
        for row in self.colors.tolist():
            yield (row[0], row[1], row[2], row[3])

    def __contains__(self, value: object) -> bool:
        if not isinstance(value, (tuple, list)) or len(value) < 3:
            return False
        rgb = np.asarray(value[:3], dtype=np.int64)
        return bool(np.any(np.all(self.colors[:, :3] == rgb, axis=1)))

    @property
    def rgb(self) -> U8Rows:
        """(P, 3) view of the RGB channels."""
        return self.colors[:, :3]

    def is_empty(self) -> bool:
        return self.colors.shape[0] == 0


# Small helpers


def rgb_to_hex(rgb: Sequence[int]) -> HexStr:
    """RGB tuple to lowercase hex string '#rrggbb'."""
    return f"#{int(rgb[0]):02x}{int(rgb[1]):02x}{int(rgb[2]):02x}"


def assert_u8_grid_rgba(image: np.ndarray) -> U8Grid:
    """Validate a uint8 (H,W,4) grid and return it typed as U8Grid."""
    if (
        not isinstance(image, np.ndarray)
        or image.dtype != np.uint8
        or image.ndim != 3
        or image.shape[-1] != 4
    ):
        raise TypeError("expected uint8 (H,W,4) RGBA grid")
    return image  # type: ignore[return-value]


__all__ = [
    # aliases / types
    "Color",
    "HexStr",
    "U8Grid",
    "U8Rows",
    "OPAQUE",
    "MAX_DISTANCE",
    # value objects
    "Palette",
    # helpers
    "rgb_to_hex",
    "assert_u8_grid_rgba",
]

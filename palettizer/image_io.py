# palettizer/image_io.py
from __future__ import annotations

import io
from pathlib import Path
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError

from .core_types import U8Grid, assert_u8_grid_rgba

"""
Image codec helpers: bytes or files <-> RGBA uint8 grids.
"""


WIDE_GREY_MODES = ("I;16", "I;16B", "I;16L", "I;16N", "I")


class ImageDecodeError(ValueError):
    """Bytes could not be decoded into an RGBA grid."""


def _check_area(im: Image.Image, max_pixels: Optional[int]) -> None:
    width, height = im.size
    if max_pixels is not None and width * height > max_pixels:
        raise ImageDecodeError(
            f"image is {width}x{height}, above the {max_pixels:,} pixel limit"
        )


def _wide_grey_to_grid(im: Image.Image) -> U8Grid:
    """16-bit (or 32-bit int) grey scaled to 8 bits, rounded, opaque."""
    wide = np.clip(np.asarray(im, dtype=np.int64), 0, 65535)
    grey = ((wide + 128) // 257).astype(np.uint8)
    out = np.empty(grey.shape + (4,), dtype=np.uint8)
    out[..., :3] = grey[..., None]
    out[..., 3] = 255
    return out


def _to_grid(im: Image.Image) -> U8Grid:
    # convert("RGBA") clips these modes at 255 instead of scaling them.
    if im.mode in WIDE_GREY_MODES:
        return _wide_grey_to_grid(im)
    return np.array(im.convert("RGBA"), dtype=np.uint8)


def decode_image(data: bytes, *, max_pixels: Optional[int] = None) -> U8Grid:
    """Sniff the format and decode to an (H, W, 4) uint8 grid."""
    try:
        with Image.open(io.BytesIO(data)) as im:
            _check_area(im, max_pixels)
            return _to_grid(im)
    except ImageDecodeError:
        raise
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as e:
        raise ImageDecodeError(str(e) or type(e).__name__) from e


def encode_png(grid: U8Grid) -> bytes:
    """PNG bytes of an RGBA grid. 0-area grids have no PNG encoding."""
    grid = assert_u8_grid_rgba(grid)
    if grid.shape[0] == 0 or grid.shape[1] == 0:
        raise ValueError("cannot encode a 0-area image as PNG")
    buf = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(grid)).save(buf, format="PNG")
    return buf.getvalue()


def load_image_rgba(path: Path, *, max_pixels: Optional[int] = None) -> U8Grid:
    """Load an image file with Pillow as an RGBA grid."""
    return decode_image(Path(path).read_bytes(), max_pixels=max_pixels)


def save_png_rgba(path: Path, grid: U8Grid) -> Path:
    """Save an RGBA grid as PNG, forcing the .png suffix."""
    path = Path(path)
    if path.suffix.lower() != ".png":
        path = path.with_suffix(".png")
    path.write_bytes(encode_png(grid))
    return path


__all__ = [
    "ImageDecodeError",
    "decode_image",
    "encode_png",
    "load_image_rgba",
    "save_png_rgba",
]

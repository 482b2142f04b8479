# palettizer/__init__.py
"""
palettizer package.

Purpose:
  Recolour an image using only the colours found in a second image.
  See palettize.py for the CLI.

Public API:
  extract_palette : source grid -> Palette (unique opaque colours, canonical order).
  remap           : target grid + Palette -> new grid, alpha preserved.
  nearest_colour  : single-colour match with the first-wins tie-break.
  core_types      : shared type aliases (Color, U8Grid) and the Palette value object.
  image_io        : bytes / files <-> RGBA grids (Pillow).
  config          : Config and TOML / environment loading.
  service         : FastAPI app factory (create_app).
  utils           : shared helpers (formatting, logging).

Quick start:
  from palettizer import extract_palette, remap
  out = remap(target_grid, extract_palette(source_grid))
"""

__version__ = "0.1.0"

# Re-export namespaces for convenience.
from . import core_types
from . import image_io
from . import utils

from .core_types import Color, Palette, U8Grid  # noqa: E402,F401
from .palette import extract_palette, palette_from_colors  # noqa: E402,F401
from .matcher import colour_distance, nearest_colour  # noqa: E402,F401
from .remap import remap, remap_in_place  # noqa: E402,F401

__all__ = [
    "__version__",
    "core_types",
    "image_io",
    "utils",
    "Color",
    "Palette",
    "U8Grid",
    "extract_palette",
    "palette_from_colors",
    "colour_distance",
    "nearest_colour",
    "remap",
    "remap_in_place",
]

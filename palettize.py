#!/usr/bin/env python3
"""
palettize.py
Recolour images using only the colours found in a second "palette" image.

Usage:
  python palettize.py serve CONFIG [--workers N] [--debug]
  python palettize.py remap IMAGE PALETTE [OUTPUT] [--workers N] [--max-pixels N] [--debug]

Commands:
  serve : run the HTTP service (upload form + POST {root}/palettize/).
  remap : recolour a single file offline.

Matching:
  Every pixel takes the palette colour with the smallest |dR|+|dG|+|dB|.
  Ties go to the colour that sorts first by (R, G, B). Alpha is preserved.

Output:
  PNG. If OUTPUT is omitted, writes <stem>_palettized.png next to IMAGE.
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional

from palettizer.config import ConfigError, load_config, with_overrides
from palettizer.image_io import ImageDecodeError, load_image_rgba, save_png_rgba
from palettizer.palette import extract_palette
from palettizer.remap import remap_in_place
from palettizer.utils import (
    colour_usage_report,
    debug_log,
    default_workers,
    error,
    format_seconds_compact,
    format_total_duration_compact,
    key_value_pairs_to_string,
    log,
    print_banner,
    print_config_line,
    warn,
)


def parse_cli_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse CLI arguments.

    Returns:
      argparse.Namespace with:
        command: "serve" | "remap"
        config: Path to TOML config (serve)
        image, palette, output: Paths (remap)
        workers: internal threads for matching
        max_pixels: decoded area cap (remap)
        debug: bool for verbose timings
    """
    parser = argparse.ArgumentParser(
        prog="palettize",
        description="Recolour images to the colours of another image.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("config", type=Path, help="TOML config file")
    serve.add_argument(
        "--workers", type=int, default=None, help="Matching threads per request"
    )
    serve.add_argument("--debug", action="store_true", help="Verbose request details")

    one = sub.add_parser("remap", help="Recolour a single image")
    one.add_argument("image", type=Path, help="Image to recolour")
    one.add_argument("palette", type=Path, help="Image whose colours form the palette")
    one.add_argument("output", type=Path, nargs="?", default=None, help="Output PNG")
    one.add_argument(
        "--workers", type=int, default=default_workers(), help="Matching threads"
    )
    one.add_argument(
        "--max-pixels",
        type=int,
        default=None,
        help="Refuse images with more pixels than this.",
    )
    one.add_argument("--debug", action="store_true", help="Verbose timings")
    return parser.parse_args(argv)


def run_remap(
    image_path: Path,
    palette_path: Path,
    out_path: Optional[Path],
    workers: int,
    max_pixels: Optional[int],
    debug: bool,
) -> Path:
    """Load -> extract palette -> remap -> save -> report."""
    t_start = time.perf_counter()
    if out_path is None:
        out_path = image_path.with_name(f"{image_path.stem}_palettized.png")

    print_banner(image_path.name)

    grid = load_image_rgba(image_path, max_pixels=max_pixels)
    source = load_image_rgba(palette_path, max_pixels=max_pixels)
    height, width = grid.shape[0], grid.shape[1]
    t_loaded = time.perf_counter()

    palette = extract_palette(source)
    if debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Loaded", f"{width}x{height}"),
                    ("Palette source", f"{source.shape[1]}x{source.shape[0]}"),
                    ("Palette colours", len(palette)),
                ]
            )
        )
    if len(palette) == 0:
        warn("palette image has no pixels; every pixel will be black")

    remap_in_place(grid, palette, workers=workers, debug=debug)
    t_mapped = time.perf_counter()

    written = save_png_rgba(out_path, grid)
    t_saved = time.perf_counter()

    log(f"Wrote {written.name} | size={width}x{height} | palette_size={len(palette)}")
    log("Colours used:")
    for hex_code, count in colour_usage_report(grid):
        log(f"  {hex_code}: {count:,}")

    if debug:
        map_secs = t_mapped - t_loaded
        if map_secs > 0:
            rate_mpx_s = (width * height / map_secs) / 1e6
            debug_log(f"throughput {rate_mpx_s:.2f} MPx/s")
        debug_log(
            f"Total {format_total_duration_compact(t_saved - t_start)}  "
            f"(load={format_seconds_compact(t_loaded - t_start)}, "
            f"map={format_seconds_compact(t_mapped - t_loaded)}, "
            f"save={format_seconds_compact(t_saved - t_mapped)})"
        )
    else:
        log(f"Total time {format_total_duration_compact(t_saved - t_start)}")
    return written


def run_serve(config_path: Path, workers: Optional[int], debug: bool) -> None:
    """Load config once, build the app, hand it to uvicorn."""
    import uvicorn

    from palettizer.service import create_app

    config = load_config(config_path)
    config = with_overrides(config, workers=workers, debug=debug or None)
    print_config_line(
        "serve",
        [
            ("Bind", config.bind),
            ("Root", config.index_path),
            ("Workers", config.workers),
            ("Max upload", config.max_upload_bytes),
        ],
        debug=False,
    )
    app = create_app(config)
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level="debug" if config.debug else "info",
    )


# Entry point


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = parse_cli_args(argv)

    if args.command == "serve":
        try:
            run_serve(args.config, args.workers, args.debug)
        except ConfigError as e:
            error(str(e))
            return 2
        return 0

    for path in (args.image, args.palette):
        if not path.exists():
            error(f"not found: {path}")
            return 2
    try:
        run_remap(
            args.image,
            args.palette,
            args.output,
            args.workers,
            args.max_pixels,
            args.debug,
        )
    except ImageDecodeError as e:
        error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

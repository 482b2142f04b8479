# palettizer/utils.py
from __future__ import annotations

"""
Odds and ends shared by the CLI, the remapper and the service: timing text,
worker spans, the colour usage report and the print-based log helpers.
"""

import os
import sys
from typing import Any, Iterable, List, Tuple

import numpy as np

from .core_types import U8Grid, rgb_to_hex


# Durations


def format_seconds_compact(seconds: float) -> str:
    """Stage timing: '12.3ms', '4.567s' or '2m 3.4s'."""
    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f}ms"
    minutes, rest = divmod(seconds, 60.0)
    if not minutes:
        return f"{rest:.3f}s"
    return f"{int(minutes)}m {rest:.1f}s"


def format_total_duration_compact(seconds: float) -> str:
    """Whole-run timing, coarser than format_seconds_compact."""
    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f}ms"
    if seconds < 60.0:
        return f"{seconds:.1f}s"
    minutes, rest = divmod(int(round(seconds)), 60)
    return f"{minutes}m {rest}s"


# Worker spans


def default_workers() -> int:
    """CPU count minus one core per six, at least one."""
    n = os.cpu_count() or 4
    spare = min(4, (n + 5) // 6)
    return max(1, n - spare)


def split_rows_into_parts(height: int, parts: int) -> List[Tuple[int, int]]:
    """Cover [0, height) with at most `parts` half-open spans of equal step."""
    step = -(-height // max(1, int(parts))) or 1
    return [(lo, min(lo + step, height)) for lo in range(0, height, step)]


# Report


def colour_usage_report(grid: U8Grid) -> List[Tuple[str, int]]:
    """(hex, count) for every visible colour, most used first."""
    rgb = grid[..., :3][grid[..., 3] > 0]
    if rgb.size == 0:
        return []
    colours, counts = np.unique(rgb.reshape(-1, 3), axis=0, return_counts=True)
    order = np.argsort(-counts, kind="stable")
    return [(rgb_to_hex(colours[i]), int(counts[i])) for i in order]


# Logging


def _display(value: Any) -> str:
    if isinstance(value, bool):
        return "on" if value else "off"
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, float):
        return f"{value:.3f}".rstrip("0").rstrip(".")
    return str(value)


def key_value_pairs_to_string(
    pairs: Iterable[Tuple[str, Any]], sep: str = "  ", eq: str = ": "
) -> str:
    """'Workers: 4  Debug: off  Bytes: 1,024'"""
    return sep.join(f"{name}{eq}{_display(value)}" for name, value in pairs)


def print_config_line(
    section: str, pairs: Iterable[Tuple[str, Any]], debug: bool
) -> None:
    line = f"[{section}] {key_value_pairs_to_string(pairs)}"
    if debug:
        debug_log(line)
    else:
        log(line)


def print_banner(title: str) -> None:
    print(f"\n=== {title} ===", flush=True)


def log(message: str) -> None:
    print(message, flush=True)


def debug_log(message: str) -> None:
    print(f"[debug] {message}", flush=True)


def warn(message: str) -> None:
    print(f"[warn] {message}", flush=True)


def error(message: str) -> None:
    """Errors go to stderr so piped output stays clean."""
    print(f"[error] {message}", file=sys.stderr, flush=True)


__all__ = [
    "format_seconds_compact",
    "format_total_duration_compact",
    "default_workers",
    "split_rows_into_parts",
    "colour_usage_report",
    "key_value_pairs_to_string",
    "print_config_line",
    "print_banner",
    "log",
    "debug_log",
    "warn",
    "error",
]

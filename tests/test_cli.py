"""Tests for the palettize.py command line."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

import palettize


def write_png(path: Path, rows: list[list[tuple[int, int, int, int]]]) -> Path:
    Image.fromarray(np.array(rows, dtype=np.uint8)).save(path)
    return path


def test_remap_writes_default_output(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    image = write_png(tmp_path / "art.png", [[(10, 10, 10, 255), (250, 250, 250, 128)]])
    palette = write_png(tmp_path / "pal.png", [[(0, 0, 0, 255), (255, 255, 255, 0)]])

    assert palettize.main(["remap", str(image), str(palette), "--workers", "1"]) == 0

    out_path = tmp_path / "art_palettized.png"
    with Image.open(out_path) as im:
        out = np.array(im.convert("RGBA"))
    assert out.tolist() == [[[0, 0, 0, 255], [255, 255, 255, 128]]]

    printed = capsys.readouterr().out
    assert "Wrote art_palettized.png" in printed
    assert "#000000: 1" in printed


def test_remap_missing_input(tmp_path: Path) -> None:
    palette = write_png(tmp_path / "pal.png", [[(0, 0, 0, 255)]])
    assert palettize.main(["remap", str(tmp_path / "nope.png"), str(palette)]) == 2


def test_remap_undecodable_input(tmp_path: Path) -> None:
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"not a png")
    palette = write_png(tmp_path / "pal.png", [[(0, 0, 0, 255)]])
    assert palettize.main(["remap", str(bad), str(palette)]) == 1


def test_serve_with_bad_config(tmp_path: Path) -> None:
    config = tmp_path / "bad.toml"
    config.write_text('bind = "nowhere"\n', encoding="utf-8")
    assert palettize.main(["serve", str(config)]) == 2

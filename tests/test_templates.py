"""Unit tests for the HTML templates."""

from __future__ import annotations

from pathlib import Path

import jinja2
import pytest

from palettizer.config import Config, TemplatePaths
from palettizer.templates import Templates, make_url


def test_make_url() -> None:
    assert str(make_url(text="home", href="/x")) == "<a href=/x>home</a>"
    assert str(make_url(text="<b>", href="/")) == "<a href=/>&lt;b&gt;</a>"


def test_make_url_requires_both_arguments() -> None:
    with pytest.raises(jinja2.TemplateRuntimeError):
        make_url(text="home")
    with pytest.raises(jinja2.TemplateRuntimeError):
        make_url(href="/")


def test_packaged_index_posts_to_palettize_endpoint() -> None:
    html = Templates(Config(root="/pal")).render_index()
    assert 'action="/pal/palettize/"' in html
    assert 'name="image"' in html
    assert 'name="palette"' in html


def test_packaged_error_page_shows_text_and_trace() -> None:
    html = Templates(Config()).render_error("boom <now>", "Traceback: here")
    assert "boom &lt;now&gt;" in html
    assert "Traceback: here" in html
    assert "<a href=/>" in html


def test_custom_templates(tmp_path: Path) -> None:
    index = tmp_path / "index.html"
    index.write_text("root={{ root }} post={{ palettize }}", encoding="utf-8")
    error = tmp_path / "error.html"
    error.write_text("E:{{ text }}", encoding="utf-8")
    config = Config(templates=TemplatePaths(error=error, index=index))
    templates = Templates(config)
    assert templates.render_index() == "root=/ post=/palettize/"
    assert templates.render_error("bad", "") == "E:bad"


def test_broken_error_template_falls_back_to_text(tmp_path: Path) -> None:
    error = tmp_path / "error.html"
    error.write_text("{{ missing_variable }}", encoding="utf-8")
    templates = Templates(Config(templates=TemplatePaths(error=error)))
    out = templates.render_error("bad", "")
    assert out.startswith("couldn't render error template")

# palettizer/templates.py
from __future__ import annotations

"""
HTML templates for the upload form and the error page.

Templates are Jinja2 sources read from the configured paths, or the copies
shipped in palettizer/html/ when a path is not configured.
"""

from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional

import jinja2
from markupsafe import Markup

from .config import Config

ERROR_TEMPLATE = "error"
INDEX_TEMPLATE = "index"


def make_url(text: Optional[str] = None, href: Optional[str] = None) -> Markup:
    """Template helper: {{ url(text="home", href=root) }} -> <a href=...>home</a>."""
    if not isinstance(text, str):
        raise jinja2.TemplateRuntimeError("need string text argument")
    if not isinstance(href, str):
        raise jinja2.TemplateRuntimeError("need string href argument")
    return Markup("<a href={}>{}</a>").format(href, text)


def _read_template(path: Optional[Path], name: str) -> str:
    if path is not None:
        return Path(path).read_text(encoding="utf-8")
    packaged = resources.files("palettizer") / "html" / f"{name}.html"
    return packaged.read_text(encoding="utf-8")


class Templates:
    """Compiled index and error templates plus the shared default context."""

    def __init__(self, config: Config) -> None:
        self.env = jinja2.Environment(
            loader=jinja2.DictLoader(
                {
                    ERROR_TEMPLATE: _read_template(config.templates.error, "error"),
                    INDEX_TEMPLATE: _read_template(config.templates.index, "index"),
                }
            ),
            autoescape=True,
            undefined=jinja2.StrictUndefined,
        )
        self.env.globals["url"] = make_url
        # Parse both up front so a broken template fails at startup.
        self.env.get_template(ERROR_TEMPLATE)
        self.env.get_template(INDEX_TEMPLATE)
        self.default_context: Dict[str, Any] = {
            "root": config.index_path,
            "palettize": config.palettize_endpoint,
        }

    def render(self, name: str, **extra: Any) -> str:
        context = dict(self.default_context)
        context.update(extra)
        return self.env.get_template(name).render(context)

    def render_index(self) -> str:
        return self.render(INDEX_TEMPLATE)

    def render_error(self, text: str, backtrace: str) -> str:
        """Error page; falls back to plain text if the template itself fails."""
        try:
            return self.render(ERROR_TEMPLATE, text=text, backtrace=backtrace)
        except jinja2.TemplateError as e:
            return f"couldn't render error template {e}"


__all__ = ["ERROR_TEMPLATE", "INDEX_TEMPLATE", "make_url", "Templates"]

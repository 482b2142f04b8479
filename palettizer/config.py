# palettizer/config.py
from __future__ import annotations

"""
Service configuration.

A Config is built once at startup and handed to create_app(). Values come
from a TOML file and can be overridden by PALETTIZER_* environment variables:

  root = "/tools/palettizer"
  bind = "127.0.0.1:8000"
  max_upload_bytes = 8000000
  max_pixels = 64000000
  workers = 4
  debug = false

  [templates]
  error = "templates/error.html"
  index = "templates/index.html"
"""

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .utils import default_workers

ENV_PREFIX = "PALETTIZER_"

DEFAULT_BIND = "127.0.0.1:8000"
DEFAULT_MAX_UPLOAD_BYTES = 8_000_000
DEFAULT_MAX_PIXELS = 64_000_000


class ConfigError(ValueError):
    """Configuration could not be read or is invalid."""


@dataclass(frozen=True)
class TemplatePaths:
    """Optional template overrides. None means the packaged default."""

    error: Optional[Path] = None
    index: Optional[Path] = None


@dataclass(frozen=True)
class Config:
    root: str = ""
    host: str = "127.0.0.1"
    port: int = 8000
    templates: TemplatePaths = field(default_factory=TemplatePaths)
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    max_pixels: Optional[int] = DEFAULT_MAX_PIXELS
    workers: int = 1
    debug: bool = False

    @property
    def bind(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def index_path(self) -> str:
        return self.root or "/"

    @property
    def palettize_endpoint(self) -> str:
        return f"{self.root}/palettize/"


def parse_bind(value: str) -> Tuple[str, int]:
    """Split 'HOST:PORT' (IPv6 hosts in brackets) into (host, port)."""
    text = str(value).strip()
    host, sep, port_text = text.rpartition(":")
    if not sep or not host:
        raise ConfigError(f"bind must be 'HOST:PORT', got {value!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_text)
    except ValueError:
        raise ConfigError(f"invalid port in bind {value!r}") from None
    if not 0 <= port <= 65535:
        raise ConfigError(f"port out of range in bind {value!r}")
    return host, port


def normalise_root(value: str) -> str:
    """URL prefix without a trailing slash; '' or '/' mean the site root."""
    root = str(value).strip().rstrip("/")
    if root and not root.startswith("/"):
        root = "/" + root
    return root


def _as_int(name: str, value: Any, minimum: int) -> int:
    try:
        out = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None
    if out < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {out}")
    return out


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    """Flatten PALETTIZER_* variables into the same keys the TOML file uses."""
    out: Dict[str, Any] = {}
    for key in (
        "root",
        "bind",
        "max_upload_bytes",
        "max_pixels",
        "workers",
        "debug",
    ):
        env_key = ENV_PREFIX + key.upper()
        if env_key in env:
            out[key] = env[env_key]
    templates: Dict[str, Any] = {}
    for key in ("error", "index"):
        env_key = f"{ENV_PREFIX}TEMPLATES_{key.upper()}"
        if env_key in env:
            templates[key] = env[env_key]
    if templates:
        out["templates"] = templates
    return out


def config_from_mapping(data: Mapping[str, Any], base_dir: Optional[Path] = None) -> Config:
    """
    Build a Config from a parsed TOML-like mapping.

    Relative template paths resolve against base_dir (the config file's folder).
    """
    host, port = parse_bind(data.get("bind", DEFAULT_BIND))

    raw_templates = data.get("templates") or {}
    if not isinstance(raw_templates, Mapping):
        raise ConfigError("templates must be a table")

    def _template_path(key: str) -> Optional[Path]:
        value = raw_templates.get(key)
        if value in (None, ""):
            return None
        path = Path(str(value)).expanduser()
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        return path

    max_pixels_raw = data.get("max_pixels", DEFAULT_MAX_PIXELS)
    max_pixels = (
        None
        if max_pixels_raw in (None, 0, "0", "")
        else _as_int("max_pixels", max_pixels_raw, 1)
    )
    workers_raw = data.get("workers", 1)
    workers = (
        default_workers()
        if str(workers_raw).strip().lower() == "auto"
        else _as_int("workers", workers_raw, 1)
    )

    return Config(
        root=normalise_root(data.get("root", "")),
        host=host,
        port=port,
        templates=TemplatePaths(
            error=_template_path("error"), index=_template_path("index")
        ),
        max_upload_bytes=_as_int(
            "max_upload_bytes",
            data.get("max_upload_bytes", DEFAULT_MAX_UPLOAD_BYTES),
            1,
        ),
        max_pixels=max_pixels,
        workers=workers,
        debug=_as_bool("debug", data.get("debug", False)),
    )


def load_config(path: Path, env: Optional[Mapping[str, str]] = None) -> Config:
    """Read a TOML config file and apply PALETTIZER_* environment overrides."""
    path = Path(path)
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except OSError as e:
        raise ConfigError(f"could not read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid TOML in {path}: {e}") from e

    overrides = _env_overrides(os.environ if env is None else env)
    if "templates" in overrides:
        merged_templates = dict(data.get("templates") or {})
        merged_templates.update(overrides.pop("templates"))
        data["templates"] = merged_templates
    data.update(overrides)
    return config_from_mapping(data, base_dir=path.parent)


def with_overrides(config: Config, **changes: Any) -> Config:
    """Copy of config with some fields replaced (CLI flags win over the file)."""
    return replace(config, **{k: v for k, v in changes.items() if v is not None})


__all__ = [
    "ENV_PREFIX",
    "ConfigError",
    "TemplatePaths",
    "Config",
    "parse_bind",
    "normalise_root",
    "config_from_mapping",
    "load_config",
    "with_overrides",
]

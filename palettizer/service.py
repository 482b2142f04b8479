# palettizer/service.py
from __future__ import annotations

"""
HTTP boundary.

  GET  {root}            upload form
  POST {root}/palettize/ multipart "image" + "palette" -> image/png

Client mistakes (missing or undecodable fields, oversized bodies) answer with
a short plain-text reason. Anything else is wrapped in AppError and rendered
as the HTML error page with a 500. Unmatched routes render the same page with
"not found".
"""

import time
import traceback
from typing import AsyncIterator, Optional, Tuple, Union

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import FormParser, MultiPartException, MultiPartParser

from .config import Config
from .core_types import U8Grid
from .image_io import ImageDecodeError, decode_image, encode_png
from .palette import extract_palette
from .remap import remap_in_place
from .templates import Templates
from .utils import debug_log, error, format_seconds_compact, key_value_pairs_to_string

IMAGE_FIELD = "image"
PALETTE_FIELD = "palette"

MISSING_FIELD_MESSAGES = {
    IMAGE_FIELD: "need an image",
    PALETTE_FIELD: "need a palette",
}


class AppError(Exception):
    """Server-side failure; rendered as the HTML error page."""


class BadUpload(Exception):
    """Client sent an unusable form; answered with 400 and the message."""


def format_cause_chain(exc: BaseException) -> str:
    """Traceback of exc including every chained cause."""
    return "".join(traceback.format_exception(exc))


async def _field_bytes(value: Union[UploadFile, str]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return await value.read()


async def _read_body_capped(request: Request, limit: int) -> bytes:
    """Buffer the body, giving up with 413 as soon as it passes limit."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise StarletteHTTPException(413, "request body too large")
    buf = bytearray()
    async for chunk in request.stream():
        buf.extend(chunk)
        if len(buf) > limit:
            raise StarletteHTTPException(413, "request body too large")
    return bytes(buf)


async def _replay(body: bytes) -> AsyncIterator[bytes]:
    yield body
    yield b""


async def _parse_form(request: Request, body: bytes) -> FormData:
    """Parse an already-buffered form body the way Request.form() would."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        try:
            return await MultiPartParser(request.headers, _replay(body)).parse()
        except MultiPartException as e:
            raise StarletteHTTPException(400, e.message) from e
    if content_type.startswith("application/x-www-form-urlencoded"):
        return await FormParser(request.headers, _replay(body)).parse()
    return FormData()


def _decode_field(
    data: Optional[bytes], name: str, max_pixels: Optional[int]
) -> U8Grid:
    if data is None:
        raise BadUpload(MISSING_FIELD_MESSAGES[name])
    try:
        return decode_image(data, max_pixels=max_pixels)
    except ImageDecodeError as e:
        raise BadUpload(f"{name} is invalid") from e


def palettize_bytes(
    image_data: Optional[bytes],
    palette_data: Optional[bytes],
    *,
    max_pixels: Optional[int] = None,
    workers: int = 1,
    debug: bool = False,
) -> bytes:
    """Decode both uploads, remap the image onto the palette, return PNG bytes."""
    t0 = time.perf_counter()
    grid = _decode_field(image_data, IMAGE_FIELD, max_pixels)
    source = _decode_field(palette_data, PALETTE_FIELD, max_pixels)
    t1 = time.perf_counter()

    palette = extract_palette(source)
    if debug:
        debug_log(f"{len(palette)} colors")
    remap_in_place(grid, palette, workers=workers, debug=debug)
    t2 = time.perf_counter()

    png = encode_png(grid)
    t3 = time.perf_counter()
    if debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Decode", format_seconds_compact(t1 - t0)),
                    ("Map", format_seconds_compact(t2 - t1)),
                    ("Encode", format_seconds_compact(t3 - t2)),
                    ("Bytes", len(png)),
                ]
            )
        )
    return png


def create_app(config: Config, templates: Optional[Templates] = None) -> FastAPI:
    """Build the FastAPI app around an already-loaded Config."""
    templates = templates if templates is not None else Templates(config)
    app = FastAPI(
        title="palettizer", docs_url=None, redoc_url=None, openapi_url=None
    )
    app.state.config = config
    app.state.templates = templates

    def _error_page(text: str, backtrace: str, status_code: int) -> HTMLResponse:
        return HTMLResponse(
            templates.render_error(text, backtrace), status_code=status_code
        )

    @app.exception_handler(AppError)
    async def _on_app_error(request: Request, exc: AppError) -> HTMLResponse:
        trace = format_cause_chain(exc)
        error(f"{exc}: {trace}")
        return _error_page(str(exc), trace, 500)

    @app.exception_handler(StarletteHTTPException)
    async def _on_http_error(
        request: Request, exc: StarletteHTTPException
    ) -> Response:
        if exc.status_code == 404:
            return _error_page("not found", "", 404)
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    async def index() -> HTMLResponse:
        try:
            return HTMLResponse(templates.render_index())
        except Exception as e:
            raise AppError(f"could not render index: {e}") from e

    async def _read_form(request: Request) -> Tuple[Optional[bytes], Optional[bytes]]:
        body = await _read_body_capped(request, config.max_upload_bytes)
        form = await _parse_form(request, body)
        try:
            fields = {}
            for name, value in form.multi_items():
                if not name:
                    raise BadUpload("need a name")
                fields[name] = await _field_bytes(value)
                if config.debug:
                    debug_log(f"got {name}")
        finally:
            await form.close()
        return fields.get(IMAGE_FIELD), fields.get(PALETTE_FIELD)

    async def palettize(request: Request) -> Response:
        try:
            image_data, palette_data = await _read_form(request)
            png = await run_in_threadpool(
                palettize_bytes,
                image_data,
                palette_data,
                max_pixels=config.max_pixels,
                workers=config.workers,
                debug=config.debug,
            )
        except (BadUpload, StarletteHTTPException):
            raise
        except Exception as e:
            raise AppError(f"palettize failed: {e}") from e
        return Response(content=png, media_type="image/png")

    @app.exception_handler(BadUpload)
    async def _on_bad_upload(request: Request, exc: BadUpload) -> PlainTextResponse:
        return PlainTextResponse(str(exc), status_code=400)

    app.add_api_route(
        config.index_path, index, methods=["GET"], response_class=HTMLResponse
    )
    app.add_api_route(config.palettize_endpoint, palettize, methods=["POST"])
    return app


__all__ = [
    "IMAGE_FIELD",
    "PALETTE_FIELD",
    "AppError",
    "BadUpload",
    "format_cause_chain",
    "palettize_bytes",
    "create_app",
]

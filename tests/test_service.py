"""HTTP surface tests for the FastAPI app."""

from __future__ import annotations

import io

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from palettizer import service
from palettizer.config import Config
from palettizer.image_io import decode_image
from palettizer.service import create_app, palettize_bytes


def png_of(grid: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(grid.astype(np.uint8)).save(buf, format="PNG")
    return buf.getvalue()


TARGET = np.array([[(10, 10, 10, 255), (250, 250, 250, 128)]], dtype=np.uint8)
SOURCE = np.array([[(0, 0, 0, 0), (255, 255, 255, 10)]], dtype=np.uint8)


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app(Config(workers=2)))


def upload(client: TestClient, url: str = "/palettize/", **fields: bytes):
    files = {name: (f"{name}.png", data, "image/png") for name, data in fields.items()}
    return client.post(url, files=files)


def test_index_serves_form(client: TestClient) -> None:
    res = client.get("/")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/html")
    assert 'action="/palettize/"' in res.text


def test_palettize_returns_png(client: TestClient) -> None:
    res = upload(client, image=png_of(TARGET), palette=png_of(SOURCE))
    assert res.status_code == 200
    assert res.headers["content-type"] == "image/png"
    out = decode_image(res.content)
    assert out.tolist() == [[[0, 0, 0, 255], [255, 255, 255, 128]]]


@pytest.mark.parametrize(
    "fields, message",
    [
        ({}, "need an image"),
        ({"palette": png_of(SOURCE)}, "need an image"),
        ({"image": b"nope", "palette": png_of(SOURCE)}, "image is invalid"),
        ({"image": png_of(TARGET)}, "need a palette"),
        ({"image": png_of(TARGET), "palette": b"nope"}, "palette is invalid"),
    ],
)
def test_palettize_client_errors(
    client: TestClient, fields: dict[str, bytes], message: str
) -> None:
    res = upload(client, **fields)
    assert res.status_code == 400
    assert res.headers["content-type"].startswith("text/plain")
    assert res.text == message


def test_plain_form_field_is_treated_as_bytes(client: TestClient) -> None:
    res = client.post(
        "/palettize/",
        data={"image": "hello"},
        files={"palette": ("p.png", png_of(SOURCE), "image/png")},
    )
    assert res.status_code == 400
    assert res.text == "image is invalid"


def test_oversized_upload_rejected() -> None:
    client = TestClient(create_app(Config(max_upload_bytes=64)))
    res = upload(client, image=png_of(TARGET), palette=png_of(SOURCE))
    assert res.status_code == 413


def test_chunked_upload_over_limit_rejected() -> None:
    client = TestClient(create_app(Config(max_upload_bytes=64)))

    def chunks():
        for _ in range(10):
            yield b"x" * 16

    res = client.post(
        "/palettize/",
        content=chunks(),
        headers={"content-type": "multipart/form-data; boundary=x"},
    )
    assert res.status_code == 413
    assert res.text == "request body too large"


def test_chunked_upload_under_limit_is_parsed() -> None:
    client = TestClient(create_app(Config(workers=1)))
    body = png_of(TARGET)
    boundary = "palettizer-boundary"
    payload = (
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="image"; filename="t.png"\r\n'
        "Content-Type: image/png\r\n\r\n"
    ).encode() + body + f"\r\n--{boundary}--\r\n".encode()

    def chunks():
        for i in range(0, len(payload), 32):
            yield payload[i : i + 32]

    res = client.post(
        "/palettize/",
        content=chunks(),
        headers={"content-type": f"multipart/form-data; boundary={boundary}"},
    )
    assert res.status_code == 400
    assert res.text == "need a palette"


def test_pixel_limit_rejects_image() -> None:
    client = TestClient(create_app(Config(max_pixels=1)))
    res = upload(client, image=png_of(TARGET), palette=png_of(SOURCE[:, :1]))
    assert res.status_code == 400
    assert res.text == "image is invalid"


def test_not_found_renders_error_page(client: TestClient) -> None:
    res = client.get("/nowhere")
    assert res.status_code == 404
    assert res.headers["content-type"].startswith("text/html")
    assert "not found" in res.text


def test_internal_failure_renders_error_page(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(grid: np.ndarray) -> bytes:
        raise RuntimeError("encoder exploded")

    monkeypatch.setattr(service, "encode_png", broken)
    res = upload(client, image=png_of(TARGET), palette=png_of(SOURCE))
    assert res.status_code == 500
    assert res.headers["content-type"].startswith("text/html")
    assert "encoder exploded" in res.text
    assert "RuntimeError" in res.text


def test_root_prefix_routes() -> None:
    client = TestClient(create_app(Config(root="/tools")))
    assert client.get("/tools").status_code == 200
    res = upload(client, "/tools/palettize/", image=png_of(TARGET), palette=png_of(SOURCE))
    assert res.status_code == 200
    assert client.get("/").status_code == 404


def test_palettize_bytes_direct() -> None:
    data = palettize_bytes(png_of(TARGET), png_of(SOURCE))
    assert decode_image(data)[0, 1].tolist() == [255, 255, 255, 128]
    with pytest.raises(service.BadUpload):
        palettize_bytes(None, png_of(SOURCE))

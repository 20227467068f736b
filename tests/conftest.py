"""Shared fixtures: in-memory images and a faked upstream origin."""
from __future__ import annotations

import io

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from imagegem.handlers.image_handler import get_fetcher
from imagegem.main import app
from imagegem.services.fetcher import BoundedFetcher

TEST_USER_AGENT = "image-gem-tests/1.0"


def make_image(fmt: str = "JPEG", size: tuple[int, int] = (1000, 800), mode: str = "RGB", color=(200, 30, 30), **save_kwargs) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


def make_animated_gif(size: tuple[int, int] = (60, 40), frames: int = 3) -> bytes:
    colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0)]
    images = [Image.new("RGB", size, colors[i % len(colors)]) for i in range(frames)]
    buffer = io.BytesIO()
    images[0].save(buffer, format="GIF", save_all=True, append_images=images[1:], duration=80, loop=0)
    return buffer.getvalue()


def open_image(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


class FakeOrigin:
    """Records outbound requests and answers with a canned response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status = 200
        self.content_type = "image/jpeg"
        self.body = make_image()
        self.chunked = False
        self.error: Exception | None = None

    def serve(self, body: bytes, content_type: str, status: int = 200) -> None:
        self.body = body
        self.content_type = content_type
        self.status = status

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        headers = {"Content-Type": self.content_type}
        if self.chunked:
            chunks = [self.body[i : i + 1024] for i in range(0, len(self.body), 1024)]
            return httpx.Response(self.status, headers=headers, content=iter(chunks))
        return httpx.Response(self.status, headers=headers, content=self.body)


@pytest.fixture
def origin() -> FakeOrigin:
    return FakeOrigin()


@pytest.fixture
def fetcher_factory(origin):
    def _make(max_bytes: int = 5 * 1024 * 1024) -> BoundedFetcher:
        return BoundedFetcher(
            user_agent=TEST_USER_AGENT,
            max_bytes=max_bytes,
            client=httpx.Client(transport=httpx.MockTransport(origin.handler)),
        )

    return _make


@pytest.fixture
def client(fetcher_factory):
    """TestClient whose outbound fetches hit the fake origin."""
    fetcher = fetcher_factory()
    app.dependency_overrides[get_fetcher] = lambda: fetcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_fetcher, None)
        fetcher.close()

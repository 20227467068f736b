"""Outbound HTTP fetch with a hard ceiling on the body size.

The response body is exposed as a ``BoundedStream``: a raw, non-seekable
file object that counts every byte it hands out and raises
``SizeLimitExceeded`` once the running total passes the ceiling.  The error
is sticky, so a caller that already received part of the body must treat
the whole request as failed.
"""
from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import httpx

from imagegem.config import DEFAULT_MAX_IMAGE_BYTES
from imagegem.errors import ImageGemError

logger = logging.getLogger(__name__)


class UpstreamError(ImageGemError):
    """Raised when the origin cannot be reached or answers with a non-2xx status."""

    def __init__(self, message: str, status: int | None = None):
        if status is not None:
            super().__init__(f"upstream returned {status}: {message}")
        else:
            super().__init__(f"upstream fetch failed: {message}")
        self.status = status


class SizeLimitExceeded(ImageGemError):
    """Raised when the upstream body grows past the configured ceiling."""

    def __init__(self, limit: int):
        super().__init__(f"image exceeds the {limit} byte limit")
        self.limit = limit


class BoundedStream(io.RawIOBase):
    """Byte-counting reader over an iterator of body chunks."""

    def __init__(self, chunks: Iterator[bytes], limit: int) -> None:
        super().__init__()
        self._chunks = chunks
        self._pending = b""
        self._limit = limit
        self._exceeded = False
        self.bytes_read = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._exceeded:
            raise SizeLimitExceeded(self._limit)

        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0

        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        self.bytes_read += size

        if self.bytes_read > self._limit:
            self._exceeded = True
            raise SizeLimitExceeded(self._limit)
        return size


@dataclass
class FetchedImage:
    """Upstream body stream paired with its declared content type."""

    content_type: str
    stream: BoundedStream


class BoundedFetcher:
    """Synchronous HTTP GET wrapper returning size-bounded bodies."""

    def __init__(
        self,
        *,
        user_agent: str,
        max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        timeout: float = 10.0,
        follow_redirects: bool = True,
        client: httpx.Client | None = None,
    ) -> None:
        self._max_bytes = max_bytes
        self._headers = {"User-Agent": user_agent}
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=follow_redirects)

    @contextmanager
    def fetch(self, url: str) -> Iterator[FetchedImage]:
        """GET *url* and yield its bounded body; the response closes on exit."""

        logger.debug("GET %s", url)
        try:
            with self._client.stream("GET", url, headers=self._headers) as resp:
                if not resp.is_success:
                    raise UpstreamError(resp.reason_phrase or "request failed", status=resp.status_code)

                declared = resp.headers.get("Content-Length")
                if declared and declared.isdigit() and int(declared) > self._max_bytes:
                    raise SizeLimitExceeded(self._max_bytes)

                stream = BoundedStream(resp.iter_bytes(), self._max_bytes)
                yield FetchedImage(content_type=resp.headers.get("Content-Type", ""), stream=stream)
                logger.debug("Read %d bytes from %s", stream.bytes_read, url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamError(str(exc) or exc.__class__.__name__) from exc

    def close(self) -> None:
        self._client.close()

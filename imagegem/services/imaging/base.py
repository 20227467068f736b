from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, BinaryIO

from imagegem.errors import ImageGemError
from imagegem.models import ImageFormat


class DecodeError(ImageGemError):
    """Raised when the source bytes cannot be parsed as an image."""


class TransformError(ImageGemError):
    """Raised when an image operation or encoder fails."""


class ImageHandle:
    """Exclusively owned decoded image (all frames for animated sources).

    ``frames`` holds backend-specific frame objects exposing ``size`` and,
    optionally, ``close()``.  Operations replace frames through
    :meth:`replace_frames` so superseded frames are released immediately.
    """

    def __init__(
        self,
        frames: list[Any],
        *,
        source_format: ImageFormat | None,
        durations: list[int] | None = None,
        loop: int | None = None,
        metadata: dict[str, bytes] | None = None,
    ) -> None:
        if not frames:
            raise DecodeError("image has no frames")
        self.frames = frames
        self.source_format = source_format
        self.durations = durations or []
        self.loop = loop
        self.metadata = metadata or {}
        self._closed = False

    @property
    def width(self) -> int:
        return self.frames[0].size[0]

    @property
    def page_height(self) -> int:
        """Height of a single frame."""
        return self.frames[0].size[1]

    def replace_frames(self, frames: list[Any]) -> None:
        keep = {id(frame) for frame in frames}
        for frame in self.frames:
            if id(frame) not in keep:
                _close_frame(frame)
        self.frames = frames

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for frame in self.frames:
            _close_frame(frame)
        self.frames = []

    def __enter__(self) -> "ImageHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _close_frame(frame: Any) -> None:
    close = getattr(frame, "close", None)
    if close is not None:
        close()


class ImageOperations(ABC):
    """Abstract interface for an image codec / operations library."""

    name: str = "abstract"

    @abstractmethod
    def decode(self, stream: BinaryIO, *, all_frames: bool = False) -> ImageHandle:
        """Read *stream* to the end and decode it.

        With *all_frames* every frame of an animated source is decoded,
        otherwise only the first one.  Raises ``DecodeError``.
        """

    @abstractmethod
    def add_alpha(self, handle: ImageHandle) -> ImageHandle:
        """Give every frame an alpha band, opaque everywhere, if it lacks one."""

    @abstractmethod
    def rotate(self, handle: ImageHandle, degrees: int) -> ImageHandle:
        """Rotate clockwise about the center, filling uncovered pixels with zero alpha."""

    @abstractmethod
    def blur(self, handle: ImageHandle, sigma: float) -> ImageHandle:
        ...

    @abstractmethod
    def resize(self, handle: ImageHandle, hscale: float, vscale: float) -> ImageHandle:
        """Scale every frame by *hscale* horizontally and *vscale* vertically."""

    @abstractmethod
    def sharpen(self, handle: ImageHandle, sigma: float, x1: float, m2: float) -> ImageHandle:
        ...

    @abstractmethod
    def strip_metadata(self, handle: ImageHandle) -> ImageHandle:
        """Drop embedded EXIF, ICC and XMP payloads."""

    @abstractmethod
    def encode(self, handle: ImageHandle, fmt: ImageFormat, quality: int | None = None) -> bytes:
        """Encode *handle* as *fmt*; ``quality=None`` keeps the encoder default."""

"""Ordered transform chain applied to a decoded image.

Steps run in a fixed order (rotate, blur, resize, sharpen, strip) and each
one is skipped when its parameter holds the disabled value.  The pipeline
owns the decoded handle and releases it on every exit path.
"""
from __future__ import annotations

import logging
from typing import BinaryIO, Callable

from imagegem.models import ExportResult, TransformRequest
from imagegem.services.export import export_image
from imagegem.services.formats import media_type
from imagegem.services.imaging import ImageHandle, ImageOperations

logger = logging.getLogger(__name__)

SHARPEN_X1 = 0.6
SHARPEN_M2 = 1.0

ANIMATED_CONTENT_TYPES = frozenset({"image/gif"})

Step = Callable[[ImageOperations, ImageHandle, TransformRequest], ImageHandle]


def compute_scale(
    width: int,
    page_height: int,
    target_width: int,
    target_height: int,
    upscale: bool,
) -> tuple[float, float] | None:
    """Return (hscale, vscale) for a resize, or None to leave the image alone.

    A single constrained axis yields a uniform scale.  Unless *upscale* is set
    the image is only ever shrunk; with both axes constrained both factors
    must be <= 1.
    """

    if target_width == 0 and target_height == 0:
        return None

    if target_width == 0:
        scale = target_height / page_height
        return (scale, scale) if upscale or scale <= 1 else None

    if target_height == 0:
        scale = target_width / width
        return (scale, scale) if upscale or scale <= 1 else None

    hscale = target_width / width
    vscale = target_height / page_height
    if upscale or (hscale <= 1 and vscale <= 1):
        return hscale, vscale
    return None


def rotate_step(ops: ImageOperations, handle: ImageHandle, request: TransformRequest) -> ImageHandle:
    if not request.rotate:
        return handle
    handle = ops.add_alpha(handle)
    return ops.rotate(handle, request.rotate)


def blur_step(ops: ImageOperations, handle: ImageHandle, request: TransformRequest) -> ImageHandle:
    if request.blur <= 0:
        return handle
    return ops.blur(handle, request.blur)


def resize_step(ops: ImageOperations, handle: ImageHandle, request: TransformRequest) -> ImageHandle:
    scales = compute_scale(handle.width, handle.page_height, request.width, request.height, request.upscale)
    if scales is None:
        return handle
    return ops.resize(handle, *scales)


def sharpen_step(ops: ImageOperations, handle: ImageHandle, request: TransformRequest) -> ImageHandle:
    if request.sharpen <= 0:
        return handle
    return ops.sharpen(handle, request.sharpen, SHARPEN_X1, SHARPEN_M2)


def strip_step(ops: ImageOperations, handle: ImageHandle, request: TransformRequest) -> ImageHandle:
    if not request.strip_metadata:
        return handle
    return ops.strip_metadata(handle)


STEPS: tuple[Step, ...] = (rotate_step, blur_step, resize_step, sharpen_step, strip_step)


class TransformPipeline:
    def __init__(self, ops: ImageOperations) -> None:
        self._ops = ops

    def decode(self, stream: BinaryIO, content_type: str) -> ImageHandle:
        all_frames = media_type(content_type) in ANIMATED_CONTENT_TYPES
        return self._ops.decode(stream, all_frames=all_frames)

    def run(
        self,
        stream: BinaryIO,
        content_type: str,
        request: TransformRequest,
        accept_header: str | None = None,
    ) -> ExportResult:
        """Decode, transform and encode; exactly one encode call per run."""

        handle = self.decode(stream, content_type)
        try:
            for step in STEPS:
                updated = step(self._ops, handle, request)
                if updated is not handle:
                    handle.close()
                    handle = updated
            logger.debug("Transformed image to %dx%d", handle.width, handle.page_height)
            return export_image(self._ops, handle, request, accept_header)
        finally:
            handle.close()

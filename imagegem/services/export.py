"""Output format resolution and encoder dispatch."""
from __future__ import annotations

import logging

from imagegem.models import ExportResult, ImageFormat, TransformRequest, WebPMode
from imagegem.services.imaging import ImageHandle, ImageOperations

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.PNG: "image/png",
    ImageFormat.WEBP: "image/webp",
    ImageFormat.HEIF: "image/heif",
    ImageFormat.TIFF: "image/tiff",
    ImageFormat.AVIF: "image/avif",
    ImageFormat.JP2K: "image/jp2",
    ImageFormat.GIF: "image/gif",
}

# PNG and TIFF ignore quality.
QUALITY_FORMATS = frozenset(
    {
        ImageFormat.JPEG,
        ImageFormat.WEBP,
        ImageFormat.HEIF,
        ImageFormat.AVIF,
        ImageFormat.JP2K,
        ImageFormat.GIF,
    }
)

# Used when the source format itself has no encoder.
FALLBACK_FORMAT = ImageFormat.PNG


def accepts_webp(accept_header: str | None) -> bool:
    return "image/webp" in (accept_header or "")


def wants_webp(request: TransformRequest, accept_header: str | None) -> bool:
    if request.webp is WebPMode.FORCE:
        return True
    return request.webp is WebPMode.AUTO and accepts_webp(accept_header)


def resolve_format(
    request: TransformRequest,
    accept_header: str | None,
    source_format: ImageFormat | None,
) -> ImageFormat:
    """WebP negotiation beats an explicit format, which beats the source format."""

    if wants_webp(request, accept_header):
        return ImageFormat.WEBP
    if request.format in MEDIA_TYPES:
        return request.format
    if source_format in MEDIA_TYPES:
        return source_format
    return FALLBACK_FORMAT


def effective_quality(fmt: ImageFormat, quality: int | None) -> int | None:
    if fmt not in QUALITY_FORMATS or quality is None:
        return None
    return quality if 1 <= quality <= 100 else None


def export_image(
    ops: ImageOperations,
    handle: ImageHandle,
    request: TransformRequest,
    accept_header: str | None = None,
) -> ExportResult:
    fmt = resolve_format(request, accept_header, handle.source_format)
    quality = effective_quality(fmt, request.quality)
    data = ops.encode(handle, fmt, quality)
    logger.debug("Encoded %s (quality=%s, %d bytes)", fmt.value, quality, len(data))
    return ExportResult(data=data, format=fmt, media_type=MEDIA_TYPES[fmt])

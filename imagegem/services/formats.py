"""Content-type gate applied to upstream responses before any decode."""
from __future__ import annotations

from imagegem.errors import ImageGemError
from imagegem.models import TransformRequest

SVG_CONTENT_TYPE = "image/svg+xml"

SUPPORTED_CONTENT_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/heic",
        "image/heif",
        "image/tiff",
        "image/tif",
        "image/avif",
        "image/jp2",
        "image/j2k",
        SVG_CONTENT_TYPE,
    }
)


class UnsupportedFormatError(ImageGemError):
    """Raised when the upstream content type is not an accepted image type."""

    def __init__(self, content_type: str):
        super().__init__(f"Unsupported image format: {content_type or '(none)'}")
        self.content_type = content_type


def media_type(content_type: str) -> str:
    """Strip parameters and normalize case: ``Image/PNG; q=1`` -> ``image/png``."""
    return content_type.split(";", 1)[0].strip().lower()


def check_content_type(content_type: str) -> str:
    """Return the bare media type, or raise UnsupportedFormatError."""

    bare = media_type(content_type)
    if bare not in SUPPORTED_CONTENT_TYPES:
        raise UnsupportedFormatError(content_type)
    return bare


def is_passthrough(request: TransformRequest, content_type: str) -> bool:
    """True when the upstream bytes should be copied through untouched."""
    return not request.has_transforms or media_type(content_type) == SVG_CONTENT_TYPE

"""Query-string parsing for image requests.

Each logical field may be spelled by several query keys (``h`` or
``height``).  The first key carrying a non-empty value wins; later aliases
are ignored.  Every numeric field is checked against a closed range and any
failure aborts the request with a ``ParameterError`` naming the key.
"""
from __future__ import annotations

import math
import re
from typing import Mapping

from imagegem.config import DEFAULT_MAX_DIMENSION
from imagegem.errors import ImageGemError
from imagegem.models import ImageFormat, TransformRequest, WebPMode


class ParameterError(ImageGemError):
    """Raised when a query parameter cannot be parsed or is out of range."""

    def __init__(self, key: str, value: str, reason: str):
        super().__init__(f"invalid value for {key}: {value!r} ({reason})")
        self.key = key
        self.value = value
        self.reason = reason


HEIGHT_KEYS = ("h", "height")
WIDTH_KEYS = ("w", "width")
ROTATE_KEYS = ("r", "rotate")
QUALITY_KEYS = ("q", "quality")
FORMAT_KEYS = ("f", "format")
SHARPEN_KEYS = ("s", "sharpen")
BLUR_KEYS = ("b", "blur")
UPSCALE_KEYS = ("up", "upscale")
STRIP_KEYS = ("strip",)
WEBP_KEYS = ("webp",)

_INTEGER = re.compile(r"[+-]?[0-9]+\Z")

_FORMAT_ALIASES = {
    "jpeg": ImageFormat.JPEG,
    "jpg": ImageFormat.JPEG,
    "png": ImageFormat.PNG,
    "webp": ImageFormat.WEBP,
    "heif": ImageFormat.HEIF,
    "heic": ImageFormat.HEIF,
    "tiff": ImageFormat.TIFF,
    "tif": ImageFormat.TIFF,
    "avif": ImageFormat.AVIF,
    "jp2k": ImageFormat.JP2K,
    "j2k": ImageFormat.JP2K,
    "gif": ImageFormat.GIF,
}


def parse_transform_request(
    url: str,
    query: Mapping[str, str],
    *,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
) -> TransformRequest:
    """Build a TransformRequest for *url* from raw query parameters."""

    quality = _int_param(query, QUALITY_KEYS, 1, 100)
    return TransformRequest(
        url=url,
        height=_int_param(query, HEIGHT_KEYS, 0, max_dimension) or 0,
        width=_int_param(query, WIDTH_KEYS, 0, max_dimension) or 0,
        rotate=_int_param(query, ROTATE_KEYS, 0, 360) or 0,
        quality=quality,
        format=_format_param(query, FORMAT_KEYS),
        sharpen=_float_param(query, SHARPEN_KEYS, 0.0, 1.0),
        blur=_float_param(query, BLUR_KEYS, 0.0, 1.0),
        upscale=_bool_param(query, UPSCALE_KEYS),
        strip_metadata=_bool_param(query, STRIP_KEYS),
        webp=_webp_param(query, WEBP_KEYS),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _first_present(query: Mapping[str, str], keys: tuple[str, ...]) -> tuple[str, str] | None:
    for key in keys:
        value = _first_value(query, key)
        if value:
            return key, value
    return None


def _first_value(query: Mapping[str, str], key: str) -> str | None:
    # a repeated key resolves to its first occurrence
    getlist = getattr(query, "getlist", None)
    if getlist is not None:
        values = getlist(key)
        return values[0] if values else None
    return query.get(key)


def _int_param(query: Mapping[str, str], keys: tuple[str, ...], low: int, high: int) -> int | None:
    found = _first_present(query, keys)
    if found is None:
        return None
    key, raw = found
    if not _INTEGER.match(raw):
        raise ParameterError(key, raw, "not an integer")
    value = int(raw)
    if not low <= value <= high:
        raise ParameterError(key, raw, f"must be between {low} and {high}")
    return value


def _float_param(query: Mapping[str, str], keys: tuple[str, ...], low: float, high: float) -> float:
    found = _first_present(query, keys)
    if found is None:
        return 0.0
    key, raw = found
    if "_" in raw:
        raise ParameterError(key, raw, "not a number")
    try:
        value = float(raw)
    except ValueError as exc:
        raise ParameterError(key, raw, "not a number") from exc
    if not math.isfinite(value) or not low <= value <= high:
        raise ParameterError(key, raw, f"must be between {low:g} and {high:g}")
    return value


def _format_param(query: Mapping[str, str], keys: tuple[str, ...]) -> ImageFormat:
    found = _first_present(query, keys)
    if found is None:
        return ImageFormat.UNSPECIFIED
    key, raw = found
    try:
        return _FORMAT_ALIASES[raw.strip().lower()]
    except KeyError:
        raise ParameterError(key, raw, "unsupported output format") from None


def _bool_param(query: Mapping[str, str], keys: tuple[str, ...]) -> bool:
    found = _first_present(query, keys)
    return found is not None and found[1].strip().lower() == "true"


def _webp_param(query: Mapping[str, str], keys: tuple[str, ...]) -> WebPMode:
    found = _first_present(query, keys)
    if found is None:
        return WebPMode.OFF
    mode = found[1].strip().lower()
    if mode == WebPMode.FORCE.value:
        return WebPMode.FORCE
    if mode == WebPMode.AUTO.value:
        return WebPMode.AUTO
    return WebPMode.OFF

"""Normalization of the upstream image URL embedded in the request path."""
from __future__ import annotations

import re
from urllib.parse import urlsplit

import httpx

from imagegem.errors import ImageGemError

ALLOWED_SCHEMES = ("http", "https")

# Path routing collapses "https://host" into "https:/host".
_COLLAPSED_SCHEME = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*):/(?!/)")
_HAS_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")


class InvalidURLError(ImageGemError):
    """Raised when the target URL cannot be parsed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"invalid URL {url!r}: {reason}")
        self.url = url
        self.reason = reason


class UnsupportedSchemeError(ImageGemError):
    """Raised when the target URL uses a scheme other than http or https."""

    def __init__(self, url: str, scheme: str):
        super().__init__(f"unsupported URL scheme {scheme!r} in {url!r}")
        self.url = url
        self.scheme = scheme


def normalize_url(raw: str) -> str:
    """Return a fully-qualified fetch URL for *raw*, defaulting to https."""

    url = raw.strip()
    url = _COLLAPSED_SCHEME.sub(r"\1://", url, count=1)
    if not _HAS_SCHEME.match(url):
        url = "https://" + url.lstrip("/")

    try:
        scheme = urlsplit(url).scheme
    except ValueError as exc:
        raise InvalidURLError(url, str(exc)) from exc
    if scheme not in ALLOWED_SCHEMES:
        raise UnsupportedSchemeError(url, scheme)

    # the fetch client must accept it as well
    try:
        httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise InvalidURLError(url, str(exc)) from exc
    return url

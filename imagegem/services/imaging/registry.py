from __future__ import annotations

from functools import lru_cache

from imagegem.config import get_settings

from .base import ImageOperations
from .pillow_backend import PillowOperations

_BACKENDS: dict[str, type[ImageOperations]] = {
    "pillow": PillowOperations,
}


@lru_cache()
def get_operations() -> ImageOperations:
    settings = get_settings()
    backend_key = settings.image_backend.lower()
    if backend_key not in _BACKENDS:
        raise ValueError(f"Unsupported image backend: {backend_key}")
    return _BACKENDS[backend_key](max_pixels=settings.max_source_pixels)

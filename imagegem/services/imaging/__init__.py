from .base import DecodeError, ImageHandle, ImageOperations, TransformError
from .pillow_backend import PillowOperations
from .registry import get_operations

__all__ = [
    "DecodeError",
    "ImageHandle",
    "ImageOperations",
    "PillowOperations",
    "TransformError",
    "get_operations",
]

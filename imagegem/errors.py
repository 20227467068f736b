"""Base exception shared by every request-pipeline failure."""
from __future__ import annotations


class ImageGemError(Exception):
    """Raised for any failure that aborts an image request."""

from __future__ import annotations

from pydantic import BaseModel

from .transform_request import ImageFormat


class ExportResult(BaseModel):
    """Encoded output handed to the response writer."""

    data: bytes
    format: ImageFormat
    media_type: str

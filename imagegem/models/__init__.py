from .export_result import ExportResult
from .transform_request import ImageFormat, TransformRequest, WebPMode

__all__ = [
    "ExportResult",
    "ImageFormat",
    "TransformRequest",
    "WebPMode",
]

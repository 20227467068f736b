from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ImageFormat(str, Enum):
    UNSPECIFIED = "unspecified"
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    HEIF = "heif"
    TIFF = "tiff"
    AVIF = "avif"
    JP2K = "jp2k"
    GIF = "gif"


class WebPMode(str, Enum):
    OFF = "off"
    FORCE = "force"
    AUTO = "auto"


class TransformRequest(BaseModel):
    """Validated description of one image request.

    Zero values mean "disabled" (blur, sharpen, rotate) or "unconstrained"
    (width, height). ``quality`` is ``None`` when the encoder default applies.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    width: int = Field(0, ge=0)
    height: int = Field(0, ge=0)
    rotate: int = Field(0, ge=0, le=360)
    quality: int | None = Field(None, ge=1, le=100)
    format: ImageFormat = ImageFormat.UNSPECIFIED
    sharpen: float = Field(0.0, ge=0.0, le=1.0)
    blur: float = Field(0.0, ge=0.0, le=1.0)
    upscale: bool = False
    strip_metadata: bool = False
    webp: WebPMode = WebPMode.OFF

    @property
    def has_transforms(self) -> bool:
        """True when any parameter differs from its default."""
        return bool(
            self.width
            or self.height
            or self.rotate
            or self.quality is not None
            or self.format is not ImageFormat.UNSPECIFIED
            or self.sharpen
            or self.blur
            or self.upscale
            or self.strip_metadata
            or self.webp is not WebPMode.OFF
        )

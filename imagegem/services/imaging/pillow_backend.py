"""Pillow implementation of the image operations interface.

HEIF/HEIC support comes from ``pillow-heif``; AVIF and JPEG 2000 rely on the
codecs bundled with the Pillow wheels.  Every decoded frame is normalized to
RGB or RGBA so that filters and encoders never see palette or odd modes.
"""
from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from typing import Any, BinaryIO, Iterator

import pillow_heif
from PIL import Image, ImageFilter, ImageSequence, UnidentifiedImageError

from imagegem.models import ImageFormat

from .base import DecodeError, ImageHandle, ImageOperations, TransformError

logger = logging.getLogger(__name__)

pillow_heif.register_heif_opener()

_PIL_FORMATS = {
    "JPEG": ImageFormat.JPEG,
    "MPO": ImageFormat.JPEG,
    "PNG": ImageFormat.PNG,
    "WEBP": ImageFormat.WEBP,
    "HEIF": ImageFormat.HEIF,
    "TIFF": ImageFormat.TIFF,
    "AVIF": ImageFormat.AVIF,
    "JPEG2000": ImageFormat.JP2K,
    "GIF": ImageFormat.GIF,
}

_SAVE_FORMATS = {
    ImageFormat.JPEG: "JPEG",
    ImageFormat.PNG: "PNG",
    ImageFormat.WEBP: "WEBP",
    ImageFormat.HEIF: "HEIF",
    ImageFormat.TIFF: "TIFF",
    ImageFormat.AVIF: "AVIF",
    ImageFormat.JP2K: "JPEG2000",
    ImageFormat.GIF: "GIF",
}

_ANIMATED_FORMATS = frozenset({ImageFormat.GIF, ImageFormat.WEBP, ImageFormat.PNG, ImageFormat.TIFF})
_EXIF_FORMATS = frozenset({ImageFormat.JPEG, ImageFormat.PNG, ImageFormat.WEBP, ImageFormat.HEIF, ImageFormat.AVIF})
_ICC_FORMATS = _EXIF_FORMATS | {ImageFormat.TIFF}

# Keys Pillow keeps in ``Image.info`` for embedded metadata payloads.
_METADATA_KEYS = ("exif", "icc_profile", "xmp", "XML:com.adobe.xmp", "photoshop", "comment")

# Modes whose pixels live in an RGB colour space, so an embedded ICC profile
# still describes them after conversion to RGB/RGBA.
_RGB_SPACE_MODES = frozenset({"RGB", "RGBA", "RGBX", "RGBa", "P", "PA"})

_DECODE_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError, EOFError)


class PillowOperations(ImageOperations):
    name = "pillow"

    def __init__(self, *, max_pixels: int | None = None) -> None:
        if max_pixels is not None:
            Image.MAX_IMAGE_PIXELS = max_pixels

    # ------------------------------------------------------------------
    # Decode
    # ------------------------------------------------------------------

    def decode(self, stream: BinaryIO, *, all_frames: bool = False) -> ImageHandle:
        data = stream.read()
        try:
            with Image.open(io.BytesIO(data)) as img:
                source_format = _PIL_FORMATS.get(img.format or "")
                metadata = {key: img.info[key] for key in ("exif", "icc_profile") if img.info.get(key)}
                if img.mode not in _RGB_SPACE_MODES:
                    metadata.pop("icc_profile", None)
                loop = img.info.get("loop")
                if all_frames:
                    frames, durations = [], []
                    for frame in ImageSequence.Iterator(img):
                        durations.append(int(frame.info.get("duration", 0)))
                        frames.append(_working_copy(frame, force_alpha=True))
                else:
                    img.load()
                    frames, durations = [_working_copy(img)], []
        except _DECODE_ERRORS as exc:
            raise DecodeError(f"failed to decode image: {exc}") from exc

        logger.debug(
            "Decoded %s image %dx%d (%d frame(s))",
            source_format.value if source_format else "unknown",
            frames[0].width,
            frames[0].height,
            len(frames),
        )
        return ImageHandle(
            frames,
            source_format=source_format,
            durations=durations,
            loop=loop,
            metadata=metadata,
        )

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def add_alpha(self, handle: ImageHandle) -> ImageHandle:
        with _operation("add alpha"):
            handle.replace_frames([f if f.mode == "RGBA" else f.convert("RGBA") for f in handle.frames])
        return handle

    def rotate(self, handle: ImageHandle, degrees: int) -> ImageHandle:
        with _operation("rotate"):
            handle.replace_frames(
                [
                    # Pillow rotates counter-clockwise
                    f.rotate(
                        -degrees,
                        resample=Image.Resampling.BICUBIC,
                        expand=False,
                        fillcolor=(0,) * len(f.getbands()),
                    )
                    for f in handle.frames
                ]
            )
        return handle

    def blur(self, handle: ImageHandle, sigma: float) -> ImageHandle:
        with _operation("blur"):
            handle.replace_frames([f.filter(ImageFilter.GaussianBlur(radius=sigma)) for f in handle.frames])
        return handle

    def resize(self, handle: ImageHandle, hscale: float, vscale: float) -> ImageHandle:
        size = (
            max(1, round(handle.width * hscale)),
            max(1, round(handle.page_height * vscale)),
        )
        with _operation("resize"):
            handle.replace_frames([f.resize(size, Image.Resampling.LANCZOS) for f in handle.frames])
        return handle

    def sharpen(self, handle: ImageHandle, sigma: float, x1: float, m2: float) -> ImageHandle:
        # sigma drives the mask radius, x1 the flat-area threshold, m2 the strength
        mask = ImageFilter.UnsharpMask(radius=sigma, percent=round(m2 * 100), threshold=round(x1))
        with _operation("sharpen"):
            handle.replace_frames([f.filter(mask) for f in handle.frames])
        return handle

    def strip_metadata(self, handle: ImageHandle) -> ImageHandle:
        handle.metadata.clear()
        for frame in handle.frames:
            for key in _METADATA_KEYS:
                frame.info.pop(key, None)
        return handle

    # ------------------------------------------------------------------
    # Encode
    # ------------------------------------------------------------------

    def encode(self, handle: ImageHandle, fmt: ImageFormat, quality: int | None = None) -> bytes:
        if fmt not in _SAVE_FORMATS:
            raise TransformError(f"no encoder for format {fmt.value}")

        frames = handle.frames
        if fmt not in _ANIMATED_FORMATS:
            frames = frames[:1]
        if fmt is ImageFormat.JPEG:
            frames = [f.convert("RGB") if f.mode != "RGB" else f for f in frames]
        elif fmt is ImageFormat.GIF:
            # quality maps onto the palette size
            colors = 256 if quality is None else max(2, round(256 * quality / 100))
            with _operation("quantize"):
                frames = [f.quantize(colors=colors) for f in frames]

        params = _save_params(handle, fmt, quality)
        if len(frames) > 1:
            params.update(save_all=True, append_images=frames[1:])
            if fmt in (ImageFormat.GIF, ImageFormat.WEBP, ImageFormat.PNG):
                if handle.durations:
                    params["duration"] = handle.durations[: len(frames)]
                if handle.loop is not None:
                    params["loop"] = handle.loop

        buffer = io.BytesIO()
        with _operation(f"encode {fmt.value}"):
            frames[0].save(buffer, format=_SAVE_FORMATS[fmt], **params)
        return buffer.getvalue()


# ------------------------------------------------------------------
# Helper functions
# ------------------------------------------------------------------

@contextmanager
def _operation(name: str) -> Iterator[None]:
    try:
        yield
    except (OSError, ValueError, KeyError, MemoryError) as exc:
        raise TransformError(f"{name} failed: {exc}") from exc


def _working_copy(img: Image.Image, *, force_alpha: bool = False) -> Image.Image:
    """Return *img* converted to RGB or RGBA; ``info`` is carried over by Pillow."""

    has_alpha = force_alpha or img.mode in ("RGBA", "LA", "PA", "La", "RGBa") or "transparency" in img.info
    target = "RGBA" if has_alpha else "RGB"
    if img.mode == target:
        return img.copy()
    converted = img.convert(target)
    if img.mode not in _RGB_SPACE_MODES:
        converted.info.pop("icc_profile", None)
    return converted


def _save_params(handle: ImageHandle, fmt: ImageFormat, quality: int | None) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if quality is not None:
        if fmt in (ImageFormat.JPEG, ImageFormat.WEBP, ImageFormat.HEIF, ImageFormat.AVIF):
            params["quality"] = quality
        elif fmt is ImageFormat.JP2K:
            # compression ratio: quality 100 is (near) lossless
            params.update(quality_mode="rates", quality_layers=[100.0 / quality])
    if fmt is ImageFormat.GIF:
        params["disposal"] = 2
    if fmt in _EXIF_FORMATS and handle.metadata.get("exif"):
        params["exif"] = handle.metadata["exif"]
    if fmt in _ICC_FORMATS and handle.metadata.get("icc_profile"):
        params["icc_profile"] = handle.metadata["icc_profile"]
    return params

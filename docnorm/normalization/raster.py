"""Raster image buffers and the blob codec around them."""
from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional

import logging

import numpy as np
from PIL import Image

from docnorm.errors import DecodeFailure, UnsupportedImageType

LOGGER = logging.getLogger(__name__)

# Declared type -> Pillow format name
SUPPORTED_TYPES = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}
LOSSY_FORMATS = {"JPEG", "WEBP"}
ENCODE_QUALITY = 95

_SUFFIX_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}
_CHANNEL_MODES = {1: "L", 3: "RGB", 4: "RGBA"}
_GRAY_MODES = {"1", "F"}


@dataclass(slots=True, eq=False)
class RasterImage:
    """Pixel buffer of shape (H, W) for gray or (H, W, C) for RGB/RGBA, dtype uint8."""

    pixels: Optional[np.ndarray]

    def __post_init__(self) -> None:
        pixels = self.pixels
        if pixels is None:
            raise ValueError("RasterImage requires a pixel buffer")
        if pixels.dtype != np.uint8:
            raise ValueError(f"RasterImage pixels must be uint8, got {pixels.dtype}")
        if pixels.ndim == 3 and pixels.shape[2] == 1:
            pixels = pixels[:, :, 0]
        if pixels.ndim == 3 and pixels.shape[2] not in (3, 4):
            raise ValueError(f"Unsupported channel count: {pixels.shape[2]}")
        if pixels.ndim not in (2, 3):
            raise ValueError(f"RasterImage pixels must be 2D or 3D, got ndim={pixels.ndim}")
        if pixels.shape[0] <= 0 or pixels.shape[1] <= 0:
            raise ValueError(f"RasterImage must not be empty, got shape {pixels.shape}")
        self.pixels = np.ascontiguousarray(pixels)

    @property
    def released(self) -> bool:
        return self.pixels is None

    @property
    def height(self) -> int:
        return int(self.array().shape[0])

    @property
    def width(self) -> int:
        return int(self.array().shape[1])

    @property
    def channels(self) -> int:
        pixels = self.array()
        return 1 if pixels.ndim == 2 else int(pixels.shape[2])

    def array(self) -> np.ndarray:
        if self.pixels is None:
            raise ValueError("RasterImage buffer has been released")
        return self.pixels

    def copy(self) -> "RasterImage":
        return RasterImage(self.array().copy())

    def release(self) -> None:
        self.pixels = None


class ImageChain:
    """Sole owner of the rasters produced during one orchestration call.

    Each `advance` hands ownership of a freshly produced raster to the chain
    and releases the one it supersedes. Leaving the context releases whatever
    is still held, on success and on error alike.
    """

    def __init__(self, image: RasterImage) -> None:
        self._current: Optional[RasterImage] = image
        self.released_count = 0

    @property
    def current(self) -> RasterImage:
        if self._current is None:
            raise ValueError("ImageChain is closed")
        return self._current

    def advance(self, image: RasterImage) -> RasterImage:
        previous = self.current
        if image is not previous:
            self._current = image
            previous.release()
            self.released_count += 1
        return image

    def close(self) -> None:
        if self._current is not None:
            self._current.release()
            self.released_count += 1
            self._current = None

    def __enter__(self) -> "ImageChain":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def image_format(content_type: str) -> str:
    try:
        return SUPPORTED_TYPES[content_type.lower()]
    except KeyError:
        raise UnsupportedImageType(
            f"Unsupported image type '{content_type}' (expected one of {', '.join(SUPPORTED_TYPES)})"
        ) from None


def content_type_for(path: Path) -> Optional[str]:
    return _SUFFIX_TYPES.get(path.suffix.lower())


def _to_pixels(image: Image.Image) -> np.ndarray:
    if image.mode in ("L", "RGB", "RGBA"):
        return np.asarray(image, dtype=np.uint8).copy()
    if image.mode == "I" or image.mode.startswith("I;16"):
        # 16-bit gray keeps its high byte, the way an 8-bit canvas would show it
        wide = np.clip(np.asarray(image).astype(np.int64), 0, 65535)
        return (wide >> 8).astype(np.uint8)
    if image.mode in _GRAY_MODES:
        converted = image.convert("L")
    elif "A" in image.getbands() or "transparency" in image.info:
        converted = image.convert("RGBA")
    else:
        converted = image.convert("RGB")
    return np.asarray(converted, dtype=np.uint8).copy()


def decode_image(data: bytes, content_type: str) -> RasterImage:
    """Decode a blob of the declared type into a gray, RGB or RGBA raster."""
    fmt = image_format(content_type)
    if not data:
        raise DecodeFailure("Input image is empty")
    try:
        with Image.open(BytesIO(data), formats=[fmt]) as image:
            image.load()
            pixels = _to_pixels(image)
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeFailure(f"Could not decode input as {content_type}: {exc}") from exc
    LOGGER.debug("Decoded %s image %sx%s", fmt, pixels.shape[1], pixels.shape[0])
    return RasterImage(pixels)


def encode_image(raster: RasterImage, content_type: str) -> bytes:
    """Encode a raster into the declared container; lossy formats use quality 95."""
    fmt = image_format(content_type)
    image = Image.fromarray(raster.array())
    if fmt == "JPEG" and image.mode == "RGBA":
        image = image.convert("RGB")
    save_kwargs = {}
    if fmt in LOSSY_FORMATS:
        save_kwargs["quality"] = ENCODE_QUALITY
    buffer = BytesIO()
    image.save(buffer, format=fmt, **save_kwargs)
    LOGGER.debug("Encoded %sx%s raster as %s (%d bytes)", raster.width, raster.height, fmt, buffer.tell())
    return buffer.getvalue()


def load_image(path: Path) -> RasterImage:
    content_type = content_type_for(path)
    if content_type is None:
        raise UnsupportedImageType(f"Unsupported image file extension: {path.suffix}")
    return decode_image(path.read_bytes(), content_type)

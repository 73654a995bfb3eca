from __future__ import annotations

from io import BytesIO

import cv2
import numpy as np
import pytest
from PIL import Image

from docnorm import vision


@pytest.fixture(scope="session", autouse=True)
def vision_ready():
    return vision.ensure_ready_blocking()


def tilted_page(
    width: int = 1000,
    height: int = 1200,
    page_size: tuple = (600, 848),
    angle: float = 15.0,
    channels: int = 4,
) -> np.ndarray:
    """A bright page with dark text lines, rotated on a dark background."""
    page_w, page_h = page_size
    page = np.full((page_h, page_w), 235, dtype=np.uint8)
    for y in range(80, page_h - 80, 40):
        page[y : y + 6, 60 : page_w - 60] = 40

    canvas = np.full((height, width), 60, dtype=np.uint8)
    center = (width / 2.0, height / 2.0)
    offset_x = int(center[0] - page_w / 2)
    offset_y = int(center[1] - page_h / 2)
    canvas[offset_y : offset_y + page_h, offset_x : offset_x + page_w] = page
    matrix = cv2.getRotationMatrix2D(center, angle, 1.0)
    rotated = cv2.warpAffine(canvas, matrix, (width, height), flags=cv2.INTER_LINEAR, borderValue=60)

    if channels == 1:
        return rotated
    if channels == 3:
        return cv2.cvtColor(rotated, cv2.COLOR_GRAY2RGB)
    return cv2.cvtColor(rotated, cv2.COLOR_GRAY2RGBA)


def horizontal_stripes(width: int = 300, height: int = 200) -> np.ndarray:
    """Text-like image: short horizontal dark bars on white."""
    pixels = np.full((height, width, 3), 255, dtype=np.uint8)
    for y in range(20, height - 20, 16):
        for x in range(20, width - 60, 70):
            pixels[y : y + 5, x : x + 50] = 0
    return pixels


def to_blob(pixels: np.ndarray, fmt: str = "PNG") -> bytes:
    buffer = BytesIO()
    Image.fromarray(pixels).save(buffer, format=fmt)
    return buffer.getvalue()


def from_blob(data: bytes) -> np.ndarray:
    with Image.open(BytesIO(data)) as image:
        return np.asarray(image).copy()


@pytest.fixture
def page_factory():
    return tilted_page


@pytest.fixture
def stripes_factory():
    return horizontal_stripes


@pytest.fixture
def blob_codec():
    return to_blob, from_blob

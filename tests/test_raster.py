from __future__ import annotations

from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from docnorm.errors import DecodeFailure, UnsupportedImageType
from docnorm.normalization.raster import ImageChain, RasterImage, decode_image, encode_image


def test_raster_reports_layout():
    image = RasterImage(np.zeros((12, 34, 4), dtype=np.uint8))

    assert (image.width, image.height, image.channels) == (34, 12, 4)


def test_single_channel_axis_is_squeezed():
    image = RasterImage(np.zeros((5, 6, 1), dtype=np.uint8))

    assert image.channels == 1
    assert image.array().shape == (5, 6)


@pytest.mark.parametrize(
    "pixels",
    [
        np.zeros((0, 5), dtype=np.uint8),
        np.zeros((5, 5, 2), dtype=np.uint8),
        np.zeros((5, 5), dtype=np.float32),
        np.zeros(5, dtype=np.uint8),
    ],
)
def test_invalid_buffers_are_rejected(pixels):
    with pytest.raises(ValueError):
        RasterImage(pixels)


def test_released_buffer_cannot_be_used():
    image = RasterImage(np.zeros((2, 2), dtype=np.uint8))
    image.release()

    assert image.released
    with pytest.raises(ValueError):
        image.array()


def test_chain_releases_superseded_and_final_images():
    first = RasterImage(np.zeros((2, 2), dtype=np.uint8))
    second = RasterImage(np.ones((2, 2), dtype=np.uint8))

    with ImageChain(first) as chain:
        chain.advance(first)
        assert not first.released
        chain.advance(second)
        assert first.released
        assert chain.current is second

    assert second.released
    assert chain.released_count == 2


def test_chain_releases_on_error():
    image = RasterImage(np.zeros((2, 2), dtype=np.uint8))

    with pytest.raises(RuntimeError):
        with ImageChain(image):
            raise RuntimeError("stage blew up")

    assert image.released


@pytest.mark.parametrize("channels, fmt", [(1, "PNG"), (3, "PNG"), (4, "PNG"), (3, "WEBP")])
def test_decode_keeps_channel_layout(blob_codec, channels, fmt):
    to_blob, _ = blob_codec
    shape = (20, 30) if channels == 1 else (20, 30, channels)
    data = to_blob(np.full(shape, 90, dtype=np.uint8), fmt)

    image = decode_image(data, f"image/{fmt.lower()}")

    assert image.channels == channels
    assert (image.width, image.height) == (30, 20)


def test_png_round_trip_is_lossless(blob_codec):
    to_blob, from_blob = blob_codec
    rng = np.random.default_rng(5)
    pixels = rng.integers(0, 256, size=(16, 24, 4), dtype=np.uint8)

    data = encode_image(decode_image(to_blob(pixels), "image/png"), "image/png")

    assert np.array_equal(from_blob(data), pixels)


def test_jpeg_output_drops_alpha(blob_codec):
    _, from_blob = blob_codec
    image = RasterImage(np.full((10, 10, 4), 200, dtype=np.uint8))

    data = encode_image(image, "image/jpeg")

    decoded = from_blob(data)
    assert decoded.shape == (10, 10, 3)
    assert abs(int(decoded.mean()) - 200) <= 2


def test_garbage_is_a_decode_failure():
    with pytest.raises(DecodeFailure):
        decode_image(b"definitely not an image", "image/png")


def test_empty_blob_is_a_decode_failure():
    with pytest.raises(DecodeFailure):
        decode_image(b"", "image/jpeg")


def test_blob_must_match_declared_type(blob_codec):
    to_blob, _ = blob_codec
    data = to_blob(np.zeros((4, 4, 3), dtype=np.uint8), "PNG")

    with pytest.raises(DecodeFailure):
        decode_image(data, "image/jpeg")


def test_unsupported_type_is_rejected():
    with pytest.raises(UnsupportedImageType):
        decode_image(b"%PDF-1.7", "application/pdf")


def test_sixteen_bit_gray_is_scaled_not_clipped():
    gradient = np.tile(np.linspace(0, 65535, 64).astype(np.uint16), (64, 1))
    buffer = BytesIO()
    Image.fromarray(gradient).save(buffer, format="PNG")

    image = decode_image(buffer.getvalue(), "image/png")

    pixels = image.array()
    assert image.channels == 1
    assert pixels[0, 0] == 0
    assert pixels[0, -1] == 255
    assert np.all(np.diff(pixels[0].astype(int)) >= 0)
    assert np.mean(pixels == 255) < 0.05
    assert np.array_equal(pixels[0], (gradient[0] >> 8).astype(np.uint8))

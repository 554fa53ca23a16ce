"""Tests for decoding, resampling and encoding at the pipeline boundary."""

import base64
import struct

import cv2
import numpy as np
import pytest

from doc_normalizer.exceptions import (
    DecodeError,
    DegenerateImageError,
    EncodingError,
)
from doc_normalizer.models import CropBox, DetectionResult, EncodedImage, PixelBuffer, Quadrilateral
from doc_normalizer.processors import (
    crop_region,
    decode_image,
    encode_image,
    resample,
    scale_to_fit,
)
from tests.conftest import encode_png


def _with_exif_orientation(jpeg: bytes, orientation: int) -> bytes:
    """Insert an EXIF APP1 segment holding only the Orientation tag."""
    tiff = (
        b"MM\x00\x2a\x00\x00\x00\x08"      # big-endian header, first IFD at offset 8
        + b"\x00\x01"                        # one entry
        + b"\x01\x12\x00\x03\x00\x00\x00\x01"  # Orientation, SHORT, count 1
        + struct.pack(">H", orientation) + b"\x00\x00"
        + b"\x00\x00\x00\x00"                # no next IFD
    )
    payload = b"Exif\x00\x00" + tiff
    segment = b"\xff\xe1" + struct.pack(">H", len(payload) + 2) + payload

    # Keep the JFIF APP0 segment first when the encoder wrote one
    insert_at = 2
    if jpeg[2:4] == b"\xff\xe0":
        insert_at = 4 + struct.unpack(">H", jpeg[4:6])[0]
    return jpeg[:insert_at] + segment + jpeg[insert_at:]


@pytest.fixture
def red_rgb() -> np.ndarray:
    image = np.zeros((8, 12, 3), dtype=np.uint8)
    image[..., 0] = 255
    return image


class TestDecode:

    def test_png_bytes_keep_channel_order(self, red_rgb):
        buffer = decode_image(encode_png(red_rgb))

        assert (buffer.width, buffer.height) == (12, 8)
        assert buffer.data.shape == (8, 12, 4)
        assert np.all(buffer.data[..., 0] == 255)
        assert np.all(buffer.data[..., 1:3] == 0)
        assert np.all(buffer.data[..., 3] == 255)

    def test_bytearray_and_memoryview(self, red_rgb):
        data = encode_png(red_rgb)
        assert decode_image(bytearray(data)).width == 12
        assert decode_image(memoryview(data)).height == 8

    def test_data_url(self, red_rgb):
        url = "data:image/png;base64," + base64.b64encode(encode_png(red_rgb)).decode("ascii")
        buffer = decode_image(url)
        assert np.all(buffer.data[..., 0] == 255)

    def test_data_url_with_line_breaks(self, red_rgb):
        payload = base64.encodebytes(encode_png(red_rgb)).decode("ascii")
        assert "\n" in payload
        buffer = decode_image("data:image/png;base64,\n" + payload.replace("\n", "\r\n "))
        assert (buffer.width, buffer.height) == (12, 8)

    def test_exif_orientation_applied(self):
        # Stored landscape: dark left quarter, bright elsewhere
        stored = np.full((200, 400, 3), 230, dtype=np.uint8)
        stored[:, :100] = 20
        ok, encoded = cv2.imencode(".jpg", stored, [cv2.IMWRITE_JPEG_QUALITY, 95])
        assert ok

        # Orientation 6: rotate 90 degrees clockwise for display
        buffer = decode_image(_with_exif_orientation(encoded.tobytes(), 6))

        assert (buffer.width, buffer.height) == (200, 400)
        assert buffer.data[:80, :, :3].mean() < 60
        assert buffer.data[120:, :, :3].mean() > 200

    def test_rgba_png_keeps_alpha(self):
        rgba = np.zeros((6, 6, 4), dtype=np.uint8)
        rgba[..., 2] = 200
        rgba[..., 3] = 90
        ok, encoded = cv2.imencode(".png", cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA))
        assert ok
        assert np.array_equal(decode_image(encoded.tobytes()).data, rgba)

    def test_grayscale_array(self):
        buffer = decode_image(np.full((5, 6), 42, dtype=np.uint8))
        assert buffer.data.shape == (5, 6, 4)
        assert np.all(buffer.data[..., :3] == 42)
        assert np.all(buffer.data[..., 3] == 255)

    def test_rgba_array_copied(self):
        rgba = np.zeros((4, 4, 4), dtype=np.uint8)
        rgba[..., 3] = 9
        buffer = decode_image(rgba)
        rgba[...] = 1
        assert np.all(buffer.data[..., 3] == 9)

    def test_pixel_buffer_passthrough(self):
        buffer = PixelBuffer.from_rgba(np.zeros((2, 2, 4), dtype=np.uint8))
        assert decode_image(buffer) is buffer

    @pytest.mark.parametrize("source", [
        b"",
        b"not an image at all",
        "/some/path/page.png",
        "data:image/png;base64,@@@",
        12345,
    ])
    def test_unreadable_sources(self, source):
        with pytest.raises(DecodeError):
            decode_image(source)

    def test_empty_array_is_degenerate(self):
        with pytest.raises(DegenerateImageError):
            decode_image(np.zeros((0, 5, 3), dtype=np.uint8))


class TestPixelBuffer:

    def test_read_only(self):
        buffer = PixelBuffer.from_rgba(np.zeros((3, 3, 4), dtype=np.uint8))
        with pytest.raises(ValueError):
            buffer.data[0, 0, 0] = 1

    def test_zero_size_rejected(self):
        with pytest.raises(DegenerateImageError):
            PixelBuffer(width=0, height=3, data=np.zeros((3, 0, 4), dtype=np.uint8))


class TestResampleAndCrop:

    def test_scale_to_fit(self):
        wide = PixelBuffer.from_rgba(np.zeros((960, 1280, 4), dtype=np.uint8))
        tall = PixelBuffer.from_rgba(np.zeros((1280, 960, 4), dtype=np.uint8))
        small = PixelBuffer.from_rgba(np.zeros((200, 300, 4), dtype=np.uint8))
        assert wide.longer_side == tall.longer_side == 1280
        assert scale_to_fit(wide, 640) == pytest.approx(0.5)
        assert scale_to_fit(tall, 640) == pytest.approx(0.5)
        assert scale_to_fit(small, 640) == 1.0

    def test_resample(self):
        buffer = PixelBuffer.from_rgba(np.full((40, 60, 4), 100, dtype=np.uint8))
        small = resample(buffer, 30, 20)
        assert (small.width, small.height) == (30, 20)
        assert np.all(small.data == 100)

    def test_resample_same_size_returns_input(self):
        buffer = PixelBuffer.from_rgba(np.zeros((4, 4, 4), dtype=np.uint8))
        assert resample(buffer, 4, 4) is buffer

    def test_resample_to_zero_raises(self):
        buffer = PixelBuffer.from_rgba(np.zeros((4, 4, 4), dtype=np.uint8))
        with pytest.raises(DegenerateImageError):
            resample(buffer, 0, 4)

    def test_crop_region(self):
        data = np.arange(5 * 6 * 4, dtype=np.uint8).reshape(5, 6, 4)
        region = crop_region(PixelBuffer.from_rgba(data), CropBox(1, 2, 4, 5))
        assert np.array_equal(region.data, data[2:5, 1:4])


class TestEncode:

    def test_png_lossless(self, red_rgb):
        rgba = cv2.cvtColor(red_rgb, cv2.COLOR_RGB2RGBA)
        data = encode_image(rgba, "png")
        assert data.startswith(b"\x89PNG")
        assert np.array_equal(decode_image(data).data, rgba)

    def test_jpeg_and_webp_signatures(self, red_rgb):
        rgba = cv2.cvtColor(red_rgb, cv2.COLOR_RGB2RGBA)
        assert encode_image(rgba, "jpeg", 0.8).startswith(b"\xff\xd8")
        webp = encode_image(rgba, "webp", 0.8)
        assert webp[:4] == b"RIFF" and webp[8:12] == b"WEBP"

    def test_read_only_input_accepted(self):
        buffer = PixelBuffer.from_rgba(np.zeros((4, 4, 4), dtype=np.uint8))
        assert len(encode_image(buffer.data, "png")) > 0

    def test_unknown_format(self):
        with pytest.raises(EncodingError):
            encode_image(np.zeros((2, 2, 4), dtype=np.uint8), "gif")


def test_encoded_image_data_url():
    result = EncodedImage(
        data=b"abc",
        format="jpeg",
        width=1,
        height=1,
        detection=DetectionResult(found=True, corners=Quadrilateral.from_bounds(0, 0, 1, 1)),
        crop_box=CropBox(0, 0, 1, 1),
    )
    assert result.to_data_url() == "data:image/jpeg;base64,YWJj"
    assert result.to_dict()["corners"] == [(0, 0), (1, 0), (1, 1), (0, 1)]


def test_detection_result_requires_corners_when_found():
    with pytest.raises(ValueError):
        DetectionResult(found=True)
    with pytest.raises(ValueError):
        DetectionResult(found=False, corners=Quadrilateral.from_bounds(0, 0, 1, 1))

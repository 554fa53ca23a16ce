"""Image I/O at the pipeline boundary: decoding, resampling and encoding.

These are the only places where OpenCV is used; every other stage works on
plain numpy arrays.
"""

import base64
import binascii
from typing import Union
from urllib.parse import unquote_to_bytes

import cv2
import numpy as np

from ..exceptions import (
    DecodeError,
    DegenerateImageError,
    EncodingError,
    RenderingContextUnavailableError,
)
from ..models import CropBox, PixelBuffer

ImageSource = Union[bytes, bytearray, memoryview, str, np.ndarray, PixelBuffer]

ENCODER_EXTENSIONS = {
    "webp": ".webp",
    "jpeg": ".jpg",
    "png": ".png",
}


def decode_image(source: ImageSource) -> PixelBuffer:
    """Decode an image source into an RGBA pixel buffer.

    Args:
        source: Encoded file bytes, a ``data:`` URL, an in-memory bitmap
            (uint8 array of shape (H, W), (H, W, 3) RGB or (H, W, 4) RGBA)
            or an existing PixelBuffer

    Returns:
        PixelBuffer with its own copy of the pixels

    Raises:
        DecodeError: If the source is unreadable or of an unsupported type
        DegenerateImageError: If the decoded image has zero width or height
    """
    if isinstance(source, PixelBuffer):
        return source

    if isinstance(source, np.ndarray):
        return _bitmap_to_buffer(source, channel_order="rgb")

    if isinstance(source, str):
        if not source.startswith("data:"):
            raise DecodeError(
                "Image strings must be data: URLs; read files before calling the pipeline",
                processor="decode_image",
            )
        source = _decode_data_url(source)

    if isinstance(source, (bytes, bytearray, memoryview)):
        raw = np.frombuffer(source, dtype=np.uint8)
        if raw.size == 0:
            raise DecodeError("Image data is empty", processor="decode_image")
        try:
            decoded = cv2.imdecode(raw, cv2.IMREAD_UNCHANGED)
            if decoded is not None and (decoded.ndim == 2 or decoded.shape[2] < 4):
                # IMREAD_UNCHANGED ignores the EXIF Orientation tag; IMREAD_COLOR applies it
                decoded = cv2.imdecode(raw, cv2.IMREAD_COLOR)
        except cv2.error as e:
            raise DecodeError(f"Could not decode image: {e}", processor="decode_image") from e
        if decoded is None:
            raise DecodeError(
                "Could not decode image: unrecognized or corrupt data",
                processor="decode_image",
                size_bytes=raw.size,
            )
        return _bitmap_to_buffer(decoded, channel_order="bgr")

    raise DecodeError(
        f"Unsupported image source type: {type(source).__name__}",
        processor="decode_image",
    )


def _decode_data_url(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not sep:
        raise DecodeError("Malformed data URL: missing ','", processor="decode_image")
    if header.endswith(";base64"):
        # Some producers wrap the payload in lines
        payload = "".join(payload.split())
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Malformed base64 payload in data URL: {e}",
                              processor="decode_image") from e
    return unquote_to_bytes(payload)


def _bitmap_to_buffer(image: np.ndarray, channel_order: str) -> PixelBuffer:
    """Convert a decoded or caller-supplied bitmap to an RGBA PixelBuffer."""
    if image.ndim not in (2, 3) or image.shape[0] == 0 or image.shape[1] == 0:
        raise DegenerateImageError(
            f"Image has degenerate shape {image.shape}", processor="decode_image"
        )

    if image.dtype == np.uint16:
        image = (image // 257).astype(np.uint8)
    elif image.dtype != np.uint8:
        raise DecodeError(f"Unsupported pixel type: {image.dtype}", processor="decode_image")

    image = np.ascontiguousarray(image)
    channels = 1 if image.ndim == 2 else image.shape[2]

    if channels == 1:
        rgba = cv2.cvtColor(image.reshape(image.shape[:2]), cv2.COLOR_GRAY2RGBA)
    elif channels == 3:
        code = cv2.COLOR_BGR2RGBA if channel_order == "bgr" else cv2.COLOR_RGB2RGBA
        rgba = cv2.cvtColor(image, code)
    elif channels == 4:
        rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA) if channel_order == "bgr" else image.copy()
    else:
        raise DecodeError(f"Unsupported channel count: {channels}", processor="decode_image")

    return PixelBuffer.from_rgba(rgba)


def resample(buffer: PixelBuffer, width: int, height: int) -> PixelBuffer:
    """Draw a scaled copy of the buffer at ``width`` x ``height``.

    Raises:
        DegenerateImageError: If the target size is empty
        RenderingContextUnavailableError: If the scaled surface cannot be allocated
    """
    if width <= 0 or height <= 0:
        raise DegenerateImageError(
            f"Cannot resample to {width}x{height}", processor="resample"
        )
    if (width, height) == (buffer.width, buffer.height):
        return buffer

    # Area interpolation when shrinking, linear when enlarging
    shrinking = width * height < buffer.width * buffer.height
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
    try:
        scaled = cv2.resize(buffer.data.copy(), (width, height), interpolation=interpolation)
    except (cv2.error, MemoryError) as e:
        raise RenderingContextUnavailableError(
            f"Could not allocate a {width}x{height} drawing surface: {e}",
            processor="resample",
        ) from e
    return PixelBuffer.from_rgba(scaled)


def crop_region(buffer: PixelBuffer, box: CropBox) -> PixelBuffer:
    """Copy the region ``box`` out of the buffer."""
    if box.width <= 0 or box.height <= 0:
        raise DegenerateImageError(
            f"Crop box {box} is empty", processor="crop_region"
        )
    try:
        region = buffer.data[box.y0:box.y1, box.x0:box.x1].copy()
    except MemoryError as e:
        raise RenderingContextUnavailableError(
            f"Could not allocate a {box.width}x{box.height} drawing surface: {e}",
            processor="crop_region",
        ) from e
    return PixelBuffer.from_rgba(region)


def scale_to_fit(buffer: PixelBuffer, max_dimension: int) -> float:
    """Scale factor (never above 1) that fits the longer side within ``max_dimension``."""
    return min(1.0, max_dimension / buffer.longer_side)


def encode_image(rgba: np.ndarray, format_name: str = "webp", quality: float = 0.92) -> bytes:
    """Encode an RGBA array.

    Args:
        rgba: uint8 array of shape (H, W, 4)
        format_name: 'webp', 'jpeg' or 'png'
        quality: Quality in (0, 1] for lossy formats; ignored for PNG

    Returns:
        Encoded image bytes

    Raises:
        EncodingError: If the encoder rejects the image
    """
    if format_name not in ENCODER_EXTENSIONS:
        raise EncodingError(f"Unsupported output format: {format_name}", processor="encode_image")
    if rgba.size == 0:
        raise DegenerateImageError("Cannot encode an empty image", processor="encode_image")

    rgba = np.require(rgba, dtype=np.uint8, requirements=["C", "W"])
    level = int(min(100, max(1, round(quality * 100))))
    if format_name == "jpeg":
        # JPEG has no alpha channel
        image = cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGR)
        params = [cv2.IMWRITE_JPEG_QUALITY, level]
    elif format_name == "webp":
        image = cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA)
        params = [cv2.IMWRITE_WEBP_QUALITY, level]
    else:
        image = cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA)
        params = []

    try:
        ok, encoded = cv2.imencode(ENCODER_EXTENSIONS[format_name], image, params)
    except cv2.error as e:
        raise EncodingError(f"Encoder failed: {e}", processor="encode_image",
                            format=format_name) from e
    if not ok:
        raise EncodingError("Encoder returned no data", processor="encode_image",
                            format=format_name)
    return encoded.tobytes()

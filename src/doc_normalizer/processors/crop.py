"""Cropping to the detected page and contrast normalization."""

import math
from typing import Optional, Tuple

import numpy as np

from .base import BaseProcessor
from .grayscale import luma
from .image_io import crop_region, resample, scale_to_fit
from ..config import ContrastConfig
from ..exceptions import DegenerateImageError
from ..models import CropBox, DetectionResult, PixelBuffer


class CropAndNormalizeProcessor(BaseProcessor):
    """Processor producing the final cropped, contrast-stretched pixels."""

    def crop(self, buffer: PixelBuffer, box: CropBox) -> PixelBuffer:
        """Crop ``buffer`` to ``box`` and fit it within the output size limit."""
        max_dimension = self.get_config_value('output_max_dimension', 2048)
        cropped = crop_and_scale(buffer, box, max_dimension)
        self.save_debug_image('08_cropped', cropped.data)
        return cropped

    def normalize(self, buffer: PixelBuffer) -> Tuple[np.ndarray, bool]:
        """Stretch the contrast of ``buffer``; returns (rgba, applied)."""
        contrast_config = self.get_config_value('contrast', None) or ContrastConfig()
        rgba, applied = stretch_contrast(buffer.data, contrast_config)
        if applied:
            self.save_debug_image('09_contrast_stretched', rgba)
        return rgba, applied

    def process(self, buffer: PixelBuffer, box: CropBox) -> Tuple[np.ndarray, bool]:
        return self.normalize(self.crop(buffer, box))


def compute_crop_box(
    detection: DetectionResult,
    scale: float,
    full_width: int,
    full_height: int,
    margin_ratio: float = 0.08,
) -> CropBox:
    """Map a detection back to full resolution and pad it with a margin.

    Args:
        detection: Result computed on the downscaled copy
        scale: Downscale factor that was applied for detection (<= 1)
        full_width: Width of the full-resolution image
        full_height: Height of the full-resolution image
        margin_ratio: Margin on every side, as a fraction of the page size

    Returns:
        Crop box clamped to the image; the whole image when nothing was found

    Raises:
        DegenerateImageError: If the clamped box is empty
    """
    if not detection.found:
        return CropBox(0, 0, full_width, full_height)

    quad = detection.corners.scaled(1.0 / scale)
    margin_x = quad.width * margin_ratio
    margin_y = quad.height * margin_ratio

    box = CropBox(
        x0=max(0, math.floor(quad.left - margin_x)),
        y0=max(0, math.floor(quad.top - margin_y)),
        x1=min(full_width, math.ceil(quad.right + margin_x)),
        y1=min(full_height, math.ceil(quad.bottom + margin_y)),
    )
    if box.width <= 0 or box.height <= 0:
        raise DegenerateImageError(
            f"Crop box {box} is empty", processor="compute_crop_box",
        )
    return box


def crop_and_scale(buffer: PixelBuffer, box: CropBox, output_max_dimension: int = 2048) -> PixelBuffer:
    """Crop to ``box``, then shrink so the longer side fits ``output_max_dimension``."""
    if (box.x0, box.y0, box.x1, box.y1) == (0, 0, buffer.width, buffer.height):
        region = buffer
    else:
        region = crop_region(buffer, box)

    factor = scale_to_fit(region, output_max_dimension)
    if factor >= 1.0:
        return region

    out_w = max(1, min(output_max_dimension, round(region.width * factor)))
    out_h = max(1, min(output_max_dimension, round(region.height * factor)))
    return resample(region, out_w, out_h)


def luminance_percentiles(rgba: np.ndarray, low_percentile: float = 1.0,
                          high_percentile: float = 99.0) -> Tuple[int, int]:
    """Luminance values at two percentiles of a 256-bin histogram.

    Each percentile is the first luminance level whose cumulative count
    reaches that share of the pixels.
    """
    levels = np.clip(np.rint(luma(rgba)), 0, 255).astype(np.intp)
    histogram = np.bincount(levels.ravel(), minlength=256)
    cumulative = np.cumsum(histogram)
    total = cumulative[-1]

    low_target = max(total * low_percentile / 100.0, 1)
    high_target = max(total * high_percentile / 100.0, 1)
    low = int(np.searchsorted(cumulative, low_target, side="left"))
    high = int(np.searchsorted(cumulative, high_target, side="left"))
    return low, high


def stretch_contrast(rgba: np.ndarray, config: Optional[ContrastConfig] = None) -> Tuple[np.ndarray, bool]:
    """Linearly stretch the percentile luminance range to [0, 255].

    Images whose range already exceeds ``config.max_range`` are returned
    unchanged, as are perfectly flat images (range 0). Alpha is preserved.

    Returns:
        Tuple of (rgba, applied)
    """
    config = config or ContrastConfig()
    low, high = luminance_percentiles(rgba, config.low_percentile, config.high_percentile)
    dynamic_range = high - low
    if dynamic_range > config.max_range or dynamic_range <= 0:
        return rgba, False

    factor = 255.0 / dynamic_range
    out = np.array(rgba, dtype=np.uint8, copy=True)
    channels = out[..., :3].astype(np.float64)
    out[..., :3] = np.clip(np.rint((channels - low) * factor), 0, 255).astype(np.uint8)
    return out, True

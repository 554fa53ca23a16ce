"""Luma reduction of RGBA pixels."""

import numpy as np

from .base import BaseProcessor
from ..exceptions import DegenerateImageError
from ..models import PixelBuffer

LUMA_WEIGHTS = (0.299, 0.587, 0.114)


class GrayscaleProcessor(BaseProcessor):
    """Processor converting a pixel buffer to a luma field."""

    def process(self, buffer: PixelBuffer) -> np.ndarray:
        gray = to_grayscale(buffer)
        self.save_debug_image('01_grayscale', gray)
        return gray


def to_grayscale(buffer: PixelBuffer) -> np.ndarray:
    """Return the luma ``0.299 R + 0.587 G + 0.114 B`` of every pixel; alpha is ignored."""
    if buffer.width == 0 or buffer.height == 0:
        raise DegenerateImageError("Cannot convert an empty image", processor="to_grayscale")
    return luma(buffer.data)


def luma(rgba: np.ndarray) -> np.ndarray:
    """Luma of an (H, W, >=3) array as float64."""
    r = rgba[..., 0].astype(np.float64)
    g = rgba[..., 1].astype(np.float64)
    b = rgba[..., 2].astype(np.float64)
    return LUMA_WEIGHTS[0] * r + LUMA_WEIGHTS[1] * g + LUMA_WEIGHTS[2] * b

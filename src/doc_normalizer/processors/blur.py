"""5x5 Gaussian smoothing."""

import numpy as np

from .base import BaseProcessor

# Outer product of this row with itself is the 5x5 kernel
# [1,4,6,4,1; 4,16,24,16,4; 6,24,36,24,6; 4,16,24,16,4; 1,4,6,4,1] / 256
BINOMIAL_ROW = np.array([1.0, 4.0, 6.0, 4.0, 1.0]) / 16.0
BORDER = 2


class GaussianBlurProcessor(BaseProcessor):
    """Processor smoothing a scalar field before thresholding."""

    def process(self, field: np.ndarray) -> np.ndarray:
        self.validate_field(field)
        blurred = gaussian_blur(field)
        self.save_debug_image('02_gaussian_blur', blurred)
        return blurred


def gaussian_blur(field: np.ndarray) -> np.ndarray:
    """Smooth ``field`` with the fixed 5x5 binomial kernel.

    The kernel is applied as a horizontal then a vertical pass, which is
    exactly the 2-D convolution with the 5x5 matrix. Pixels within 2 of the
    image border are copied from the input unchanged. Fields smaller than
    5x5 are returned as a copy.

    Args:
        field: 2-D scalar field

    Returns:
        New float64 field of the same shape
    """
    src = np.asarray(field, dtype=np.float64)
    out = src.copy()
    height, width = src.shape
    if height < 2 * BORDER + 1 or width < 2 * BORDER + 1:
        return out

    inner_w = width - 2 * BORDER
    inner_h = height - 2 * BORDER

    horizontal = np.zeros((height, inner_w))
    for k, weight in enumerate(BINOMIAL_ROW):
        horizontal += weight * src[:, k:k + inner_w]

    vertical = np.zeros((inner_h, inner_w))
    for k, weight in enumerate(BINOMIAL_ROW):
        vertical += weight * horizontal[k:k + inner_h, :]

    out[BORDER:-BORDER, BORDER:-BORDER] = vertical
    return out

"""3x3 morphological closing of binary masks."""

import numpy as np

from .base import BaseProcessor


class MorphologicalCloseProcessor(BaseProcessor):
    """Processor filling small gaps in a binary mask."""

    def process(self, mask: np.ndarray) -> np.ndarray:
        self.validate_field(mask)
        closed = close_mask(mask)
        self.save_debug_image('04_closed_mask', closed)
        return closed


def _filter_3x3(mask: np.ndarray, reducer) -> np.ndarray:
    """Apply ``reducer`` over each interior pixel's 3x3 neighbourhood.

    Row/column 0 and the last row/column keep their input values.
    """
    out = mask.copy()
    height, width = mask.shape
    if height < 3 or width < 3:
        return out

    result = mask[1:-1, 1:-1].copy()
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dy == 0 and dx == 0:
                continue
            neighbour = mask[1 + dy:height - 1 + dy, 1 + dx:width - 1 + dx]
            reducer(result, neighbour, out=result)
    out[1:-1, 1:-1] = result
    return out


def dilate(mask: np.ndarray) -> np.ndarray:
    """3x3 maximum filter."""
    return _filter_3x3(mask, np.maximum)


def erode(mask: np.ndarray) -> np.ndarray:
    """3x3 minimum filter."""
    return _filter_3x3(mask, np.minimum)


def close_mask(mask: np.ndarray) -> np.ndarray:
    """Morphological closing: dilate into a fresh mask, then erode that mask."""
    return erode(dilate(mask))

"""Canny-style edge detection: Sobel gradients, non-maximum suppression and hysteresis."""

from typing import Callable, Optional, Tuple

import numpy as np

from .base import BaseProcessor

STRONG = 255
WEAK = 128


class EdgeDetectionProcessor(BaseProcessor):
    """Processor turning a closed mask into a thin binary edge map."""

    def process(
        self,
        field: np.ndarray,
        low_ratio: Optional[float] = None,
        high_ratio: Optional[float] = None,
        checkpoint: Optional[Callable[[], None]] = None,
    ) -> np.ndarray:
        """Run gradient, suppression and hysteresis over ``field``.

        Args:
            field: 2-D field; a uint8 mask is converted to float
            low_ratio: Weak threshold as a fraction of the maximum magnitude;
                taken from the config when None
            high_ratio: Strong threshold as a fraction of the maximum magnitude;
                taken from the config when None
            checkpoint: Called between stages and hysteresis passes; may raise
                to abandon the run

        Returns:
            uint8 edge mask with values in {0, 255}
        """
        self.validate_field(field)
        if low_ratio is None:
            low_ratio = self.get_config_value('canny_low_ratio', 0.04)
        if high_ratio is None:
            high_ratio = self.get_config_value('canny_high_ratio', 0.12)

        magnitude, direction = sobel_gradients(field)
        self.save_debug_image('05_gradient_magnitude', magnitude)
        if checkpoint:
            checkpoint()

        thinned = non_max_suppression(magnitude, direction)
        self.save_debug_image('06_non_max_suppressed', thinned)
        if checkpoint:
            checkpoint()

        edges = hysteresis_threshold(thinned, low_ratio, high_ratio, checkpoint=checkpoint)
        self.save_debug_image('07_edges', edges)
        return edges


def sobel_gradients(field: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Sobel gradient magnitude and direction (radians, ``atan2(gy, gx)``).

    Border pixels are left at zero in both outputs.
    """
    src = np.asarray(field, dtype=np.float64)
    height, width = src.shape
    magnitude = np.zeros((height, width))
    direction = np.zeros((height, width))
    if height < 3 or width < 3:
        return magnitude, direction

    def shifted(dy: int, dx: int) -> np.ndarray:
        return src[1 + dy:height - 1 + dy, 1 + dx:width - 1 + dx]

    gx = (
        -shifted(-1, -1) + shifted(-1, 1)
        - 2.0 * shifted(0, -1) + 2.0 * shifted(0, 1)
        - shifted(1, -1) + shifted(1, 1)
    )
    gy = (
        -shifted(-1, -1) - 2.0 * shifted(-1, 0) - shifted(-1, 1)
        + shifted(1, -1) + 2.0 * shifted(1, 0) + shifted(1, 1)
    )

    magnitude[1:-1, 1:-1] = np.hypot(gx, gy)
    direction[1:-1, 1:-1] = np.arctan2(gy, gx)
    return magnitude, direction


def non_max_suppression(magnitude: np.ndarray, direction: np.ndarray) -> np.ndarray:
    """Thin gradient ridges to one pixel.

    The direction is folded into [0, 180) degrees and quantized into four
    bins. A pixel survives when its magnitude is at least that of both
    neighbours in its bin's direction. Borders are zero.
    """
    height, width = magnitude.shape
    out = np.zeros((height, width))
    if height < 3 or width < 3:
        return out

    def shifted(dy: int, dx: int) -> np.ndarray:
        return magnitude[1 + dy:height - 1 + dy, 1 + dx:width - 1 + dx]

    center = magnitude[1:-1, 1:-1]
    angle = (np.degrees(direction[1:-1, 1:-1]) + 180.0) % 180.0

    horizontal = (angle < 22.5) | (angle >= 157.5)
    diagonal_45 = (angle >= 22.5) & (angle < 67.5)
    vertical = (angle >= 67.5) & (angle < 112.5)

    # Neighbour pairs per bin: (left, right), (up-right, down-left),
    # (up, down), (up-left, down-right)
    n1 = np.select(
        [horizontal, diagonal_45, vertical],
        [shifted(0, -1), shifted(-1, 1), shifted(-1, 0)],
        default=shifted(-1, -1),
    )
    n2 = np.select(
        [horizontal, diagonal_45, vertical],
        [shifted(0, 1), shifted(1, -1), shifted(1, 0)],
        default=shifted(1, 1),
    )

    keep = (center >= n1) & (center >= n2)
    out[1:-1, 1:-1] = np.where(keep, center, 0.0)
    return out


def classify_edges(thinned: np.ndarray, low_ratio: float = 0.04,
                   high_ratio: float = 0.12) -> np.ndarray:
    """Tri-level classification: 255 strong, 128 weak, 0 otherwise.

    Thresholds are relative to the maximum magnitude. A field with no
    gradient at all classifies as all zeros.
    """
    edges = np.zeros(thinned.shape, dtype=np.uint8)
    max_magnitude = float(thinned.max()) if thinned.size else 0.0
    if max_magnitude <= 0.0:
        return edges

    high = max_magnitude * high_ratio
    low = max_magnitude * low_ratio
    edges[thinned >= high] = STRONG
    edges[(thinned >= low) & (thinned < high)] = WEAK
    return edges


def _touches_strong(strong: np.ndarray) -> np.ndarray:
    """Interior pixels with at least one strong pixel among their 8 neighbours."""
    height, width = strong.shape
    touching = np.zeros_like(strong)
    inner = touching[1:-1, 1:-1]
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dy == 0 and dx == 0:
                continue
            inner |= strong[1 + dy:height - 1 + dy, 1 + dx:width - 1 + dx]
    return touching


def hysteresis_threshold(
    thinned: np.ndarray,
    low_ratio: float = 0.04,
    high_ratio: float = 0.12,
    checkpoint: Optional[Callable[[], None]] = None,
) -> np.ndarray:
    """Double threshold with weak-to-strong propagation.

    Weak pixels 8-adjacent to a strong pixel are promoted, pass after pass,
    until a full pass promotes nothing. Remaining weak pixels are dropped.

    Returns:
        uint8 mask with values in {0, 255}
    """
    edges = classify_edges(thinned, low_ratio, high_ratio)
    strong = edges == STRONG
    weak = edges == WEAK

    if edges.shape[0] >= 3 and edges.shape[1] >= 3:
        while True:
            promoted = weak & _touches_strong(strong)
            if not promoted.any():
                break
            strong |= promoted
            weak &= ~promoted
            if checkpoint:
                checkpoint()

    return np.where(strong, STRONG, 0).astype(np.uint8)

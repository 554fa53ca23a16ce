"""Page boundary detection from edge density profiles.

A cheap heuristic for roughly axis-aligned pages photographed close to
fronto-parallel: each side of the page is the first row (column), scanning
inward from the image edge, whose edge-pixel count exceeds a fraction of the
image width (height). It does not fit rotated or perspective-distorted
quadrilaterals.
"""

import math
from typing import Optional

import numpy as np

from .base import BaseProcessor
from ..config import ContourConfig
from ..models import DetectionResult, Quadrilateral
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)


class ContourDetectionProcessor(BaseProcessor):
    """Processor locating the page rectangle in an edge mask."""

    def process(self, edges: np.ndarray) -> DetectionResult:
        self.validate_field(edges)
        contour_config = self.get_config_value('contour', None) or ContourConfig()
        return detect_document(edges, contour_config)


def _first_dense(density: np.ndarray, indices: np.ndarray, threshold: float) -> Optional[int]:
    """First index (in scan order) whose density is strictly above threshold."""
    if indices.size == 0:
        return None
    hits = indices[density[indices] > threshold]
    return int(hits[0]) if hits.size else None


def _scan_inward(density: np.ndarray, config: ContourConfig):
    """Scan orders along one axis: from the near edge inward, and from the far edge inward."""
    length = density.size
    start = math.floor(length * config.scan_start_ratio)
    forward = np.arange(start, length * config.scan_limit_ratio).astype(np.intp)

    end = math.floor(length * (1.0 - config.scan_start_ratio))
    end = min(end, length - 1)
    backward = np.arange(end, length * (1.0 - config.scan_limit_ratio), -1).astype(np.intp)
    return forward, backward


def detect_document(edges: np.ndarray, config: Optional[ContourConfig] = None) -> DetectionResult:
    """Find the page rectangle in a binary edge mask.

    Args:
        edges: uint8 edge mask (255 = edge) at detection resolution
        config: Density and plausibility thresholds

    Returns:
        DetectionResult with corners ordered TL, TR, BR, BL, or
        ``found=False`` when a side is missing or the rectangle is implausible
    """
    config = config or ContourConfig()
    height, width = edges.shape
    is_edge = edges == 255

    row_density = is_edge.sum(axis=1)
    col_density = is_edge.sum(axis=0)
    row_thresh = width * config.edge_density_ratio
    col_thresh = height * config.edge_density_ratio

    down, up = _scan_inward(row_density, config)
    rightward, leftward = _scan_inward(col_density, config)

    top = _first_dense(row_density, down, row_thresh)
    bottom = _first_dense(row_density, up, row_thresh)
    left = _first_dense(col_density, rightward, col_thresh)
    right = _first_dense(col_density, leftward, col_thresh)

    if top is None or bottom is None or left is None or right is None:
        logger.debug(
            "No page boundary: top=%s bottom=%s left=%s right=%s", top, bottom, left, right
        )
        return DetectionResult.not_found(width, height)

    crop_w = right - left
    crop_h = bottom - top
    if not is_plausible_page(crop_w, crop_h, width, height, config):
        logger.debug(
            "Rejected page candidate %dx%d in %dx%d image", crop_w, crop_h, width, height
        )
        return DetectionResult.not_found(width, height)

    return DetectionResult(
        found=True,
        corners=Quadrilateral.from_bounds(left, top, right, bottom),
        width=width,
        height=height,
    )


def is_plausible_page(crop_w: float, crop_h: float, width: int, height: int,
                      config: Optional[ContourConfig] = None) -> bool:
    """Check area, minimum side and aspect ratio bounds of a page candidate."""
    config = config or ContourConfig()
    if crop_w <= 0 or crop_h <= 0:
        return False

    area_ratio = (crop_w * crop_h) / float(width * height)
    if area_ratio < config.min_area_ratio or area_ratio > config.max_area_ratio:
        return False

    if crop_w < width * config.min_side_ratio or crop_h < height * config.min_side_ratio:
        return False

    aspect = crop_w / crop_h
    return config.min_aspect_ratio <= aspect <= config.max_aspect_ratio

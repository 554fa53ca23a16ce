"""Data models passed between normalization stages."""

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .exceptions import DegenerateImageError

Number = Union[int, float]


class PipelineState(str, Enum):
    """States of a single normalization run."""
    IDLE = "idle"
    DECODING = "decoding"
    DETECTING_AT_LOW_RES = "detecting_at_low_res"
    MAPPING_TO_FULL_RES = "mapping_to_full_res"
    CROPPING = "cropping"
    NORMALIZING = "normalizing"
    ENCODING = "encoding"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PixelBuffer:
    """Decoded RGBA pixels, shape (height, width, 4), read-only."""

    width: int
    height: int
    data: np.ndarray

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise DegenerateImageError(
                f"Image has degenerate size {self.width}x{self.height}",
                processor="PixelBuffer",
            )
        if self.data.shape != (self.height, self.width, 4) or self.data.dtype != np.uint8:
            raise ValueError(
                f"Pixel data must be uint8 of shape ({self.height}, {self.width}, 4), "
                f"got {self.data.dtype} {self.data.shape}"
            )
        self.data.flags.writeable = False

    @classmethod
    def from_rgba(cls, rgba: np.ndarray) -> "PixelBuffer":
        """Wrap an RGBA array, taking a private copy of the samples."""
        if rgba.ndim != 3 or rgba.shape[2] != 4:
            raise ValueError(f"Expected an (H, W, 4) array, got shape {rgba.shape}")
        height, width = rgba.shape[:2]
        return cls(width=width, height=height, data=np.array(rgba, dtype=np.uint8, copy=True))

    @property
    def longer_side(self) -> int:
        return max(self.width, self.height)


@dataclass(frozen=True)
class Point:
    x: Number
    y: Number

    def scaled(self, factor: float) -> "Point":
        return Point(self.x * factor, self.y * factor)


@dataclass(frozen=True)
class Quadrilateral:
    """Four corners in fixed order: top-left, top-right, bottom-right, bottom-left."""

    corners: Tuple[Point, Point, Point, Point]

    def __post_init__(self):
        if len(self.corners) != 4:
            raise ValueError(f"A quadrilateral needs exactly 4 corners, got {len(self.corners)}")

    @classmethod
    def from_bounds(cls, left: Number, top: Number, right: Number, bottom: Number) -> "Quadrilateral":
        return cls((
            Point(left, top),
            Point(right, top),
            Point(right, bottom),
            Point(left, bottom),
        ))

    @property
    def top_left(self) -> Point:
        return self.corners[0]

    @property
    def top_right(self) -> Point:
        return self.corners[1]

    @property
    def bottom_right(self) -> Point:
        return self.corners[2]

    @property
    def bottom_left(self) -> Point:
        return self.corners[3]

    @property
    def left(self) -> Number:
        return min(self.top_left.x, self.bottom_left.x)

    @property
    def right(self) -> Number:
        return max(self.top_right.x, self.bottom_right.x)

    @property
    def top(self) -> Number:
        return min(self.top_left.y, self.top_right.y)

    @property
    def bottom(self) -> Number:
        return max(self.bottom_left.y, self.bottom_right.y)

    @property
    def width(self) -> Number:
        return self.right - self.left

    @property
    def height(self) -> Number:
        return self.bottom - self.top

    def scaled(self, factor: float) -> "Quadrilateral":
        return Quadrilateral(tuple(p.scaled(factor) for p in self.corners))

    def as_tuples(self) -> List[Tuple[Number, Number]]:
        return [(p.x, p.y) for p in self.corners]


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of page detection; ``found=False`` means use the full image."""

    found: bool
    corners: Optional[Quadrilateral] = None
    width: int = 0
    height: int = 0

    def __post_init__(self):
        if self.found and self.corners is None:
            raise ValueError("A found detection must carry corners")
        if not self.found and self.corners is not None:
            raise ValueError("A detection that was not found cannot carry corners")

    @classmethod
    def not_found(cls, width: int = 0, height: int = 0) -> "DetectionResult":
        return cls(found=False, corners=None, width=width, height=height)


@dataclass(frozen=True)
class CropBox:
    """Half-open pixel box ``[x0, x1) x [y0, y1)`` at full resolution."""

    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0


MIME_TYPES = {
    "webp": "image/webp",
    "jpeg": "image/jpeg",
    "png": "image/png",
}


@dataclass
class EncodedImage:
    """Final re-encoded image plus a summary of how it was produced."""

    data: bytes
    format: str
    width: int
    height: int
    detection: DetectionResult
    crop_box: CropBox
    contrast_stretched: bool = False
    state_history: List[PipelineState] = field(default_factory=list)
    debug_images: Dict[str, np.ndarray] = field(default_factory=dict)

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self.format]

    def to_data_url(self) -> str:
        """Return the image as a base64 ``data:`` URL."""
        payload = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{payload}"

    def to_dict(self) -> dict:
        d = {
            "format": self.format,
            "mime_type": self.mime_type,
            "width": self.width,
            "height": self.height,
            "size_bytes": len(self.data),
            "found": self.detection.found,
            "crop_box": [self.crop_box.x0, self.crop_box.y0, self.crop_box.x1, self.crop_box.y1],
            "contrast_stretched": self.contrast_stretched,
        }
        if self.detection.corners is not None:
            d["corners"] = self.detection.corners.as_tuples()
        return d

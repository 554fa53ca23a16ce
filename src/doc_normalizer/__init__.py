"""Document photo normalization: page detection, cropping and contrast stretching."""

__version__ = "1.0.0"
__author__ = "Document Normalizer Team"

from .cancellation import CancellationToken
from .config import NormalizationOptions
from .models import DetectionResult, EncodedImage, PipelineState, PixelBuffer, Point, Quadrilateral
from .pipeline import DocumentNormalizer, normalize_document_image, normalize_document_image_async

__all__ = [
    "CancellationToken",
    "DetectionResult",
    "DocumentNormalizer",
    "EncodedImage",
    "NormalizationOptions",
    "PipelineState",
    "PixelBuffer",
    "Point",
    "Quadrilateral",
    "normalize_document_image",
    "normalize_document_image_async",
]

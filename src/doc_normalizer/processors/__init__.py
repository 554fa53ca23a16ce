"""Document Normalizer Processors Module.

Each stage of the normalization pipeline is available both as a pure
function and as a processor class that validates input and keeps optional
debug images.
"""

# Base processor
from .base import BaseProcessor

# Image I/O
from .image_io import (
    decode_image,
    encode_image,
    resample,
    crop_region,
    scale_to_fit,
)

# Grayscale
from .grayscale import (
    GrayscaleProcessor,
    to_grayscale,
    luma,
)

# Blur
from .blur import (
    GaussianBlurProcessor,
    gaussian_blur,
)

# Adaptive threshold
from .threshold import (
    AdaptiveThresholdProcessor,
    adaptive_threshold,
    build_integral_image,
    box_mean,
)

# Morphology
from .morphology import (
    MorphologicalCloseProcessor,
    close_mask,
    dilate,
    erode,
)

# Edge detection
from .edges import (
    EdgeDetectionProcessor,
    sobel_gradients,
    non_max_suppression,
    classify_edges,
    hysteresis_threshold,
)

# Page detection
from .contour import (
    ContourDetectionProcessor,
    detect_document,
    is_plausible_page,
)

# Crop and contrast
from .crop import (
    CropAndNormalizeProcessor,
    compute_crop_box,
    crop_and_scale,
    luminance_percentiles,
    stretch_contrast,
)

__all__ = [
    # Base
    "BaseProcessor",

    # Image I/O
    "decode_image",
    "encode_image",
    "resample",
    "crop_region",
    "scale_to_fit",

    # Grayscale
    "GrayscaleProcessor",
    "to_grayscale",
    "luma",

    # Blur
    "GaussianBlurProcessor",
    "gaussian_blur",

    # Adaptive threshold
    "AdaptiveThresholdProcessor",
    "adaptive_threshold",
    "build_integral_image",
    "box_mean",

    # Morphology
    "MorphologicalCloseProcessor",
    "close_mask",
    "dilate",
    "erode",

    # Edge detection
    "EdgeDetectionProcessor",
    "sobel_gradients",
    "non_max_suppression",
    "classify_edges",
    "hysteresis_threshold",

    # Page detection
    "ContourDetectionProcessor",
    "detect_document",
    "is_plausible_page",

    # Crop and contrast
    "CropAndNormalizeProcessor",
    "compute_crop_box",
    "crop_and_scale",
    "luminance_percentiles",
    "stretch_contrast",
]

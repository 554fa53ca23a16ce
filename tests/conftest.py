"""
Pytest configuration and shared fixtures for document normalizer tests.

Provides synthetic page photographs, encoded image bytes and edge masks for
all test modules.
"""

from pathlib import Path
from typing import Dict, Any

import cv2
import numpy as np
import pytest

from doc_normalizer.config import Config, get_default_config
from doc_normalizer.utils.logging_utils import setup_logging

# Page rectangle of the synthetic photograph: (left, top, right, bottom)
PAGE_BOUNDS = (64, 48, 576, 432)


@pytest.fixture
def page_image() -> np.ndarray:
    """640x480 RGB image with a white page on a black background."""
    image = np.zeros((480, 640, 3), dtype=np.uint8)
    left, top, right, bottom = PAGE_BOUNDS
    # Filled rectangle covering x in [64, 576), y in [48, 432)
    cv2.rectangle(image, (left, top), (right - 1, bottom - 1), (255, 255, 255), -1)
    return image


@pytest.fixture
def gray_image() -> np.ndarray:
    """Uniformly gray 100x100 RGB image."""
    return np.full((100, 100, 3), 128, dtype=np.uint8)


@pytest.fixture
def page_png_bytes(page_image: np.ndarray) -> bytes:
    """The synthetic page encoded as PNG."""
    return encode_png(page_image)


@pytest.fixture
def gray_png_bytes(gray_image: np.ndarray) -> bytes:
    """The uniform gray image encoded as PNG."""
    return encode_png(gray_image)


@pytest.fixture
def frame_edges() -> np.ndarray:
    """640x480 edge mask with a one-pixel rectangle outline."""
    edges = np.zeros((480, 640), dtype=np.uint8)
    cv2.rectangle(edges, (60, 50), (580, 430), 255, 1)
    return edges


@pytest.fixture
def sample_config() -> Config:
    """Create a sample configuration for testing."""
    config = get_default_config()
    config.logging.level = "WARNING"
    config.logging.use_rich = False  # Plain output keeps test logs readable
    return config


@pytest.fixture
def sample_config_dict() -> Dict[str, Any]:
    """Create a sample configuration dictionary."""
    return {
        "normalization": {
            "detection_max_dimension": 320,
            "output_max_dimension": 1024,
            "output_format": "JPG",
            "contour": {"edge_density_ratio": 0.05},
            "contrast": {"max_range": 180},
        },
        "logging": {
            "level": "DEBUG",
            "use_rich": False,
        },
        "description": "test configuration",
    }


@pytest.fixture(autouse=True)
def setup_test_logging(sample_config: Config):
    """Setup logging for tests."""
    setup_logging(
        level=sample_config.logging.level.value,
        use_rich=sample_config.logging.use_rich,
        format_style="minimal",
    )


# Helper functions for tests
def encode_png(rgb: np.ndarray) -> bytes:
    """Encode an RGB array as PNG bytes."""
    ok, encoded = cv2.imencode(".png", cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
    assert ok
    return encoded.tobytes()


def decode_to_rgb(data: bytes) -> np.ndarray:
    """Decode image bytes to an RGB array."""
    bgr = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    assert bgr is not None
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


def write_image_file(directory: Path, name: str, rgb: np.ndarray) -> Path:
    """Write an RGB array to ``directory/name`` as PNG."""
    path = directory / name
    path.write_bytes(encode_png(rgb))
    return path

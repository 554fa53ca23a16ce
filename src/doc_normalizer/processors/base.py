"""Base processor class and common utilities for normalization stages."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import numpy as np

from ..exceptions import DegenerateImageError


class BaseProcessor(ABC):
    """Base class for all pipeline stage processors.

    A processor is created per pipeline run, so the debug images it keeps are
    never shared between runs.
    """

    def __init__(self, config: Optional[Any] = None):
        """Initialize processor with optional configuration."""
        self.config = config
        self.debug_images = {}

    @property
    def name(self) -> str:
        return type(self).__name__

    def get_config_value(self, key: str, default: Any) -> Any:
        """Safely get a config value with a default."""
        if self.config is None:
            return default
        return getattr(self.config, key, default)

    @abstractmethod
    def process(self, *args, **kwargs) -> Any:
        """Run the stage. Must be implemented by subclasses."""
        pass

    def validate_field(self, field: np.ndarray) -> None:
        """Validate that the input is a non-empty 2-D array."""
        if field is None:
            raise ValueError("Input cannot be None")
        if not isinstance(field, np.ndarray):
            raise TypeError("Input must be a numpy array")
        if field.ndim != 2:
            raise ValueError(f"Expected a 2-D array, got shape {field.shape}")
        if field.size == 0:
            raise DegenerateImageError("Input cannot be empty", processor=self.name)

    def save_debug_image(self, name: str, image: np.ndarray) -> None:
        """Store a debug image as 8-bit when debug capture is enabled."""
        if not self.get_config_value('save_debug_images', False):
            return
        if image.dtype != np.uint8:
            peak = float(image.max()) if image.size else 0.0
            scaled = image * (255.0 / peak) if peak > 255.0 else image
            image = np.clip(np.rint(scaled), 0, 255).astype(np.uint8)
        self.debug_images[name] = image

    def get_debug_images(self) -> Dict[str, np.ndarray]:
        """Get all stored debug images."""
        return self.debug_images

    def clear_debug_images(self) -> None:
        """Clear stored debug images."""
        self.debug_images = {}

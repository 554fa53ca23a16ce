"""
Custom exceptions for the document normalization pipeline.

Provides a hierarchy of exceptions for the failures that can end a
normalization run: unreadable input, an unavailable drawing surface,
degenerate geometry, serialization failure and cancellation.
"""

from typing import Optional, Any


class DocumentNormalizerError(Exception):
    """Base exception for all document normalizer errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} (Details: {details_str})"
        return self.message


class ConfigurationError(DocumentNormalizerError):
    """Raised when there are configuration-related errors."""
    pass


class ProcessingError(DocumentNormalizerError):
    """Raised when an image processing stage fails."""

    def __init__(self, message: str, processor: Optional[str] = None,
                 stage: Optional[str] = None, **kwargs: Any) -> None:
        details = kwargs
        if processor:
            details["processor"] = processor
        if stage:
            details["stage"] = stage
        super().__init__(message, details)


class DecodeError(ProcessingError):
    """Raised when the input cannot be decoded into pixels."""
    pass


class RenderingContextUnavailableError(ProcessingError):
    """Raised when a scaled or cropped drawing surface cannot be allocated."""
    pass


class DegenerateImageError(ProcessingError):
    """Raised when an image or crop has zero width or height."""
    pass


class EncodingError(ProcessingError):
    """Raised when the final image cannot be serialized."""
    pass


class PipelineCancelledError(DocumentNormalizerError):
    """Raised when a run is abandoned through its cancellation token."""

    def __init__(self, message: str = "Normalization cancelled",
                 stage: Optional[str] = None) -> None:
        super().__init__(message, {"stage": stage} if stage else None)

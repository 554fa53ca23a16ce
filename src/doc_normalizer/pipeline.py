"""Document normalization pipeline.

Detects the page on a downscaled copy of the input, maps the page rectangle
back to full resolution, crops, stretches contrast and re-encodes. Every call
owns all of its buffers, so concurrent calls need no coordination.
"""

import asyncio
import functools
import time
from concurrent.futures import Executor, Future
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from .cancellation import CancellationToken
from .config import NormalizationOptions, load_options
from .exceptions import DocumentNormalizerError, ProcessingError
from .models import DetectionResult, EncodedImage, PipelineState, PixelBuffer
from .processors import (
    AdaptiveThresholdProcessor,
    ContourDetectionProcessor,
    CropAndNormalizeProcessor,
    EdgeDetectionProcessor,
    GaussianBlurProcessor,
    GrayscaleProcessor,
    MorphologicalCloseProcessor,
    compute_crop_box,
    decode_image,
    encode_image,
    resample,
    scale_to_fit,
)
from .processors.image_io import ImageSource
from .utils.logging_utils import get_logger, log_performance, log_stage_timing

logger = get_logger(__name__)

OptionsLike = Union[NormalizationOptions, Dict[str, Any], None]


class _PipelineRun:
    """State machine for one invocation.

    IDLE -> DECODING -> DETECTING_AT_LOW_RES -> MAPPING_TO_FULL_RES ->
    CROPPING -> NORMALIZING -> ENCODING -> DONE, with FAILED reachable from
    any state. There is no retry.
    """

    def __init__(self, options: NormalizationOptions, cancel_token: Optional[CancellationToken] = None):
        self.options = options
        self.cancel_token = cancel_token
        self.state = PipelineState.IDLE
        self.history = [PipelineState.IDLE]

        self.grayscale = GrayscaleProcessor(options)
        self.blur = GaussianBlurProcessor(options)
        self.threshold = AdaptiveThresholdProcessor(options)
        self.closer = MorphologicalCloseProcessor(options)
        self.edge_detector = EdgeDetectionProcessor(options)
        self.contour = ContourDetectionProcessor(options)
        self.cropper = CropAndNormalizeProcessor(options)

    def _checkpoint(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled(self.state.value)

    def _transition(self, state: PipelineState) -> None:
        self._checkpoint()
        logger.debug("Pipeline state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _fail(self) -> None:
        logger.debug("Pipeline state %s -> %s", self.state.value, PipelineState.FAILED.value)
        self.state = PipelineState.FAILED
        self.history.append(PipelineState.FAILED)

    def run(self, image: ImageSource) -> EncodedImage:
        started = time.perf_counter()
        try:
            return self._run(image, started)
        except DocumentNormalizerError:
            failed_in = self.state
            self._fail()
            logger.warning("Normalization failed during %s", failed_in.value)
            raise
        except Exception as e:
            failed_in = self.state
            self._fail()
            raise ProcessingError(
                f"Unexpected failure during {failed_in.value}: {e}",
                stage=failed_in.value,
            ) from e

    def _run(self, image: ImageSource, started: float) -> EncodedImage:
        self._transition(PipelineState.DECODING)
        with log_stage_timing("decode", logger):
            buffer = decode_image(image)

        self._transition(PipelineState.DETECTING_AT_LOW_RES)
        with log_stage_timing("page detection", logger) as stats:
            detection, scale = self._detect(buffer)
            stats["found"] = detection.found

        self._transition(PipelineState.MAPPING_TO_FULL_RES)
        box = compute_crop_box(
            detection,
            scale,
            buffer.width,
            buffer.height,
            margin_ratio=self.options.crop_margin_ratio,
        )

        self._transition(PipelineState.CROPPING)
        with log_stage_timing("crop", logger):
            cropped = self.cropper.crop(buffer, box)
        del buffer

        self._transition(PipelineState.NORMALIZING)
        with log_stage_timing("contrast normalization", logger) as stats:
            rgba, stretched = self.cropper.normalize(cropped)
            stats["applied"] = stretched

        self._transition(PipelineState.ENCODING)
        format_name = self.options.format_name
        with log_stage_timing("encode", logger):
            data = encode_image(rgba, format_name, self.options.output_quality)

        self._transition(PipelineState.DONE)
        elapsed = time.perf_counter() - started
        logger.info(
            "Normalized image to %dx%d %s (page found: %s, contrast stretched: %s)",
            cropped.width, cropped.height, format_name, detection.found, stretched,
        )
        log_performance(logger, "Normalization completed", duration=elapsed,
                        size_bytes=len(data))

        return EncodedImage(
            data=data,
            format=format_name,
            width=cropped.width,
            height=cropped.height,
            detection=detection,
            crop_box=box,
            contrast_stretched=stretched,
            state_history=list(self.history),
            debug_images=self._collect_debug_images(),
        )

    def _detect(self, buffer: PixelBuffer) -> Tuple[DetectionResult, float]:
        """Run the edge pipeline on a downscaled copy.

        The detection-resolution buffers are local to this method and are
        released when it returns.
        """
        scale = scale_to_fit(buffer, self.options.detection_max_dimension)
        small = resample(
            buffer,
            max(1, round(buffer.width * scale)),
            max(1, round(buffer.height * scale)),
        )
        logger.debug("Detecting page at %dx%d (scale %.4f)", small.width, small.height, scale)

        gray = self.grayscale.process(small)
        self._checkpoint()
        blurred = self.blur.process(gray)
        self._checkpoint()
        mask = self.threshold.process(blurred)
        self._checkpoint()
        closed = self.closer.process(mask)
        self._checkpoint()
        edges = self.edge_detector.process(closed.astype(np.float64), checkpoint=self._checkpoint)
        self._checkpoint()
        detection = self.contour.process(edges)

        if detection.found:
            logger.debug("Page corners at detection resolution: %s", detection.corners.as_tuples())
        return detection, scale

    def _collect_debug_images(self) -> Dict[str, np.ndarray]:
        if not self.options.save_debug_images:
            return {}
        collected = {}
        for processor in (self.grayscale, self.blur, self.threshold, self.closer,
                          self.edge_detector, self.cropper):
            collected.update(processor.get_debug_images())
        return collected


class DocumentNormalizer:
    """
    Entry point for document image normalization.

    Usage:
        normalizer = DocumentNormalizer({"output_format": "jpeg"})
        result = normalizer.normalize(image_bytes)
        print(result.detection.found, result.width, result.height)
    """

    def __init__(self, options: OptionsLike = None):
        """
        Initialize the normalizer.

        Args:
            options: NormalizationOptions, a dict of option overrides, or None
                for the defaults.

        Raises:
            ConfigurationError: If the options are invalid.
        """
        self.options = load_options(options)

    def normalize(self, image: ImageSource,
                  cancel_token: Optional[CancellationToken] = None) -> EncodedImage:
        """
        Normalize one image.

        Args:
            image: Encoded bytes, a data: URL, an RGB(A)/grayscale uint8 array
                or a PixelBuffer.
            cancel_token: Optional token checked between stages.

        Returns:
            EncodedImage with the re-encoded bytes and detection summary.

        Raises:
            DecodeError, RenderingContextUnavailableError, DegenerateImageError,
            EncodingError, PipelineCancelledError
        """
        return _PipelineRun(self.options, cancel_token).run(image)

    def submit(self, executor: Executor, image: ImageSource,
               cancel_token: Optional[CancellationToken] = None) -> Future:
        """Schedule :meth:`normalize` on ``executor`` and return its future."""
        return executor.submit(self.normalize, image, cancel_token)

    async def normalize_async(self, image: ImageSource,
                              cancel_token: Optional[CancellationToken] = None,
                              executor: Optional[Executor] = None) -> EncodedImage:
        """Run :meth:`normalize` in a worker thread without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            executor, functools.partial(self.normalize, image, cancel_token)
        )


def normalize_document_image(image: ImageSource, options: OptionsLike = None,
                             cancel_token: Optional[CancellationToken] = None) -> EncodedImage:
    """Normalize a photographed document page. See :meth:`DocumentNormalizer.normalize`."""
    return DocumentNormalizer(options).normalize(image, cancel_token)


async def normalize_document_image_async(image: ImageSource, options: OptionsLike = None,
                                         cancel_token: Optional[CancellationToken] = None,
                                         executor: Optional[Executor] = None) -> EncodedImage:
    """Coroutine form of :func:`normalize_document_image`."""
    return await DocumentNormalizer(options).normalize_async(image, cancel_token, executor)

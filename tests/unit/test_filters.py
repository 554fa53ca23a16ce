"""Tests for the grayscale, blur, threshold and morphology stages."""

import numpy as np
import pytest

from doc_normalizer.config import NormalizationOptions
from doc_normalizer.exceptions import DegenerateImageError
from doc_normalizer.models import PixelBuffer
from doc_normalizer.processors import (
    AdaptiveThresholdProcessor,
    GaussianBlurProcessor,
    GrayscaleProcessor,
    MorphologicalCloseProcessor,
    adaptive_threshold,
    box_mean,
    build_integral_image,
    close_mask,
    dilate,
    erode,
    gaussian_blur,
    to_grayscale,
)


class TestGrayscale:
    """Test luma conversion."""

    def test_luma_weights(self):
        rgba = np.zeros((1, 3, 4), dtype=np.uint8)
        rgba[0, 0, 0] = 255  # red
        rgba[0, 1, 1] = 255  # green
        rgba[0, 2, 2] = 255  # blue
        gray = to_grayscale(PixelBuffer.from_rgba(rgba))

        assert gray.shape == (1, 3)
        assert gray[0, 0] == pytest.approx(0.299 * 255)
        assert gray[0, 1] == pytest.approx(0.587 * 255)
        assert gray[0, 2] == pytest.approx(0.114 * 255)

    def test_alpha_is_ignored(self):
        rgba = np.full((4, 4, 4), 200, dtype=np.uint8)
        rgba[..., 3] = 0
        gray = to_grayscale(PixelBuffer.from_rgba(rgba))
        assert np.allclose(gray, 200.0)

    def test_debug_image_kept_only_when_enabled(self):
        buffer = PixelBuffer.from_rgba(np.full((4, 4, 4), 10, dtype=np.uint8))

        quiet = GrayscaleProcessor(NormalizationOptions())
        quiet.process(buffer)
        assert quiet.get_debug_images() == {}

        verbose = GrayscaleProcessor(NormalizationOptions(save_debug_images=True))
        verbose.process(buffer)
        assert verbose.get_debug_images()["01_grayscale"].dtype == np.uint8
        verbose.clear_debug_images()
        assert verbose.get_debug_images() == {}


class TestGaussianBlur:
    """Test the 5x5 binomial blur."""

    def test_constant_field_unchanged(self):
        field = np.full((20, 30), 77.0)
        assert np.allclose(gaussian_blur(field), field)

    def test_output_within_input_range(self):
        rng = np.random.default_rng(7)
        field = rng.integers(10, 240, size=(40, 50)).astype(np.float64)
        blurred = gaussian_blur(field)

        assert blurred.shape == field.shape
        assert blurred.min() >= field.min()
        assert blurred.max() <= field.max()

    def test_impulse_response_is_binomial_kernel(self):
        field = np.zeros((9, 9))
        field[4, 4] = 256.0
        blurred = gaussian_blur(field)

        row = np.array([1, 4, 6, 4, 1], dtype=np.float64)
        assert np.allclose(blurred[2:7, 2:7], np.outer(row, row))

    def test_border_copied_from_input(self):
        rng = np.random.default_rng(3)
        field = rng.random((12, 12)) * 255
        blurred = gaussian_blur(field)

        assert np.array_equal(blurred[:2, :], field[:2, :])
        assert np.array_equal(blurred[-2:, :], field[-2:, :])
        assert np.array_equal(blurred[:, :2], field[:, :2])
        assert np.array_equal(blurred[:, -2:], field[:, -2:])

    def test_input_not_modified(self):
        field = np.arange(100, dtype=np.float64).reshape(10, 10)
        original = field.copy()
        gaussian_blur(field)
        assert np.array_equal(field, original)

    def test_processor_rejects_non_2d_input(self):
        processor = GaussianBlurProcessor()
        with pytest.raises(ValueError):
            processor.process(np.zeros((4, 4, 3)))
        with pytest.raises(DegenerateImageError):
            processor.process(np.zeros((0, 4)))


class TestAdaptiveThreshold:
    """Test the integral image and the local mean threshold."""

    def test_integral_image(self):
        field = np.arange(12, dtype=np.float64).reshape(3, 4)
        table = build_integral_image(field)

        assert table.shape == (4, 5)
        assert np.all(table[0, :] == 0)
        assert np.all(table[:, 0] == 0)
        assert table[3, 4] == field.sum()
        assert table[2, 3] == field[:2, :3].sum()

    def test_box_mean_matches_brute_force(self):
        rng = np.random.default_rng(11)
        field = rng.random((9, 13)) * 255
        radius = 2
        means = box_mean(field, radius)

        for y in range(field.shape[0]):
            for x in range(field.shape[1]):
                window = field[max(0, y - radius):y + radius + 1, max(0, x - radius):x + radius + 1]
                assert means[y, x] == pytest.approx(window.mean())

    def test_flat_field_is_all_zero(self):
        # Flat regions fall on the 0 side regardless of brightness
        for value in (0.0, 128.0, 255.0):
            mask = adaptive_threshold(np.full((20, 20), value))
            assert np.all(mask == 0)

    def test_polarity_dark_side_of_step_is_255(self):
        """Pin the polarity: ``value > mean - C`` maps to 0, otherwise 255."""
        field = np.zeros((20, 40))
        field[:, 20:] = 200.0
        mask = adaptive_threshold(field, block_radius=7, offset=8.0)

        assert set(np.unique(mask)) == {0, 255}
        assert np.all(mask[:, 19] == 255)
        assert np.all(mask[:, 20] == 0)
        assert np.all(mask[:, 0] == 0)
        assert np.all(mask[:, 39] == 0)

    def test_processor_uses_configured_offset(self):
        field = np.zeros((10, 20))
        field[:, 10:] = 30.0
        # With an offset above the step height nothing is marked
        options = NormalizationOptions(adaptive_threshold_offset=40.0)
        mask = AdaptiveThresholdProcessor(options).process(field)
        assert np.all(mask == 0)

    def test_explicit_arguments_take_precedence(self):
        field = np.zeros((20, 40))
        field[:, 20:] = 200.0
        processor = AdaptiveThresholdProcessor(
            NormalizationOptions(adaptive_threshold_block_radius=7, adaptive_threshold_offset=40.0)
        )

        # Column 15 sees the step only through a radius-7 window
        assert np.all(processor.process(field, block_radius=7, offset=8.0)[:, 15] == 255)
        assert np.all(processor.process(field, block_radius=3, offset=8.0)[:, 15] == 0)
        # The configured offset applies when none is passed
        assert np.all(processor.process(field, block_radius=7)[:, 15] == 0)


class TestMorphology:
    """Test 3x3 dilation, erosion and closing."""

    def test_dilate_and_erode_single_pixel(self):
        mask = np.zeros((7, 7), dtype=np.uint8)
        mask[3, 3] = 255

        grown = dilate(mask)
        assert np.all(grown[2:5, 2:5] == 255)
        assert grown.sum() == 9 * 255
        assert np.all(erode(mask) == 0)

    def test_closing_is_idempotent_on_block(self):
        mask = np.zeros((30, 30), dtype=np.uint8)
        mask[10:20, 8:22] = 255

        closed = close_mask(mask)
        assert np.array_equal(closed, mask)
        assert np.array_equal(close_mask(closed), closed)

    def test_closing_fills_one_pixel_gap(self):
        mask = np.zeros((30, 30), dtype=np.uint8)
        mask[10:20, 10:20] = 255
        mask[14, 14] = 0

        closed = close_mask(mask)
        assert closed[14, 14] == 255
        assert set(np.unique(closed)) <= {0, 255}

    def test_border_kept(self):
        mask = np.zeros((10, 10), dtype=np.uint8)
        mask[0, :] = 255
        mask[:, -1] = 255

        dilated = dilate(mask)
        assert np.array_equal(dilated[0, :], mask[0, :])
        assert np.array_equal(dilated[:, -1], mask[:, -1])

    def test_processor_returns_new_array(self):
        mask = np.zeros((10, 10), dtype=np.uint8)
        mask[3:6, 3:6] = 255
        closed = MorphologicalCloseProcessor().process(mask)
        assert closed is not mask
        assert np.array_equal(closed, mask)

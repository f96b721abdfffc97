"""
Tests for the joint bilateral depth filter and the median pre-filter
"""

import math
import unittest

import numpy as np

from .bilateral import (
    RANGE_SIGMA,
    WeightedAccumulator,
    bilateral_filter,
    bilateral_weight,
    depthmap_bilateral_filter,
    gaussian,
    gaussian_2d,
    map_to_depth_coords
)
from .median import median_filter


def reference_spatial_average(depth, sigma, kernel_size):
    """Gaussian-weighted window average with clamped borders, skipping zeros."""
    h, w = depth.shape
    out = np.zeros((h, w), dtype=np.float64)
    for y in range(h):
        for x in range(w):
            total = 0.0
            weight_sum = 0.0
            for ky in range(-kernel_size, kernel_size + 1):
                for kx in range(-kernel_size, kernel_size + 1):
                    value = depth[min(max(y + ky, 0), h - 1), min(max(x + kx, 0), w - 1)]
                    if value == 0.0:
                        continue
                    weight = math.exp(-(kx * kx + ky * ky) / (2.0 * sigma * sigma))
                    total += value * weight
                    weight_sum += weight
            if weight_sum > 0:
                out[y, x] = total / weight_sum
    return out


class TestWeightingModel(unittest.TestCase):
    """Spatial and photometric gaussian terms"""

    def test_gaussian_peak_and_decay(self):
        self.assertEqual(float(gaussian(0.0, 0.3)), 1.0)
        self.assertAlmostEqual(float(gaussian(0.3, 0.3)), math.exp(-0.5))
        self.assertAlmostEqual(float(gaussian(-0.3, 0.3)), math.exp(-0.5))

    def test_gaussian_2d(self):
        self.assertEqual(float(gaussian_2d(0, 0, 1.0, 1.0)), 1.0)
        self.assertAlmostEqual(float(gaussian_2d(1, 0, 1.0, 1.0)), math.exp(-0.5))
        self.assertAlmostEqual(float(gaussian_2d(1, 1, 1.0, 2.0)), math.exp(-0.5 - 0.125))

    def test_identical_colour_weighted_by_distance_only(self):
        weight = bilateral_weight(1, -1, 1.0, np.zeros(3))
        self.assertAlmostEqual(float(weight), math.exp(-1.0))

    def test_range_term_is_product_over_channels(self):
        weight = bilateral_weight(0, 0, 1.0, [0.1, 0.1])
        self.assertAlmostEqual(float(weight), math.exp(-0.5) ** 2)

    def test_range_sigma_independent_of_spatial_sigma(self):
        self.assertEqual(RANGE_SIGMA, 0.1)
        self.assertAlmostEqual(float(bilateral_weight(0, 0, 100.0, [0.1])), math.exp(-0.5))
        self.assertAlmostEqual(float(bilateral_weight(0, 0, 0.5, [0.1])), math.exp(-0.5))

    def test_strong_edge_attenuates_weight(self):
        weight = bilateral_weight(0, 1, 1.0, [1.0, 1.0, 1.0])
        self.assertGreaterEqual(float(weight), 0.0)
        self.assertLess(float(weight), 1e-60)

    def test_per_pixel_weights(self):
        diffs = np.zeros((2, 3, 3))
        diffs[0, 0] = 0.1
        weights = bilateral_weight(0, 0, 1.0, diffs)
        self.assertEqual(weights.shape, (2, 3))
        self.assertAlmostEqual(float(weights[0, 0]), math.exp(-0.5) ** 3)
        self.assertEqual(float(weights[1, 2]), 1.0)


class TestCoordinateMapper(unittest.TestCase):
    """Guide-space to depth-space mapping"""

    def test_same_resolution_is_identity(self):
        self.assertEqual(map_to_depth_coords(3, 2, 1.0, 1.0, 5, 4), (3, 2))

    def test_half_resolution(self):
        self.assertEqual(map_to_depth_coords(0, 0, 0.5, 0.5, 4, 4), (0, 0))
        self.assertEqual(map_to_depth_coords(4, 6, 0.5, 0.5, 4, 4), (2, 3))
        # 7 * 0.5 rounds up to 4 and is clamped to the last column
        self.assertEqual(map_to_depth_coords(7, 7, 0.5, 0.5, 4, 4), (3, 3))

    def test_never_out_of_range(self):
        for scale, depth_size in ((0.5, 4), (2.0, 16), (8 / 3, 8), (1.0, 8)):
            coords = np.arange(-5, 15)
            dm_x, dm_y = map_to_depth_coords(coords[np.newaxis, :], coords[:, np.newaxis],
                                             scale, scale, depth_size, depth_size)
            self.assertGreaterEqual(dm_x.min(), 0)
            self.assertLess(dm_x.max(), depth_size)
            self.assertGreaterEqual(dm_y.min(), 0)
            self.assertLess(dm_y.max(), depth_size)


class TestWeightedAccumulator(unittest.TestCase):
    """Incremental weighted averaging"""

    def test_scalar_average(self):
        accum = WeightedAccumulator()
        accum.add(2.0, 0.5)
        accum.add(4.0, 1.5)
        self.assertTrue(accum.has_weight())
        self.assertAlmostEqual(accum.normalized(), 3.5)

    def test_no_contribution(self):
        accum = WeightedAccumulator()
        self.assertFalse(accum.has_weight())
        self.assertEqual(accum.normalized(), 0.0)
        self.assertEqual(accum.normalized(fill=-1.0), -1.0)

    def test_array_slots(self):
        accum = WeightedAccumulator((2,))
        accum.add(np.array([1.0, 5.0]), np.array([1.0, 0.0]))
        accum.add(np.array([3.0, 7.0]), np.array([1.0, 0.0]))
        np.testing.assert_array_equal(accum.normalized(), [2.0, 0.0])


class TestBilateralFilter(unittest.TestCase):
    """Filter driver behaviour"""

    def test_single_sample_scenario(self):
        guide = np.full((4, 4), 0.5)
        depth = np.zeros((4, 4), dtype=np.float32)
        depth[1, 1] = 2.0

        out = depthmap_bilateral_filter(depth, guide, sigma=1.0, kernel_size=1)

        self.assertEqual(out[1, 1], 2.0)
        for y, x in ((0, 1), (2, 1), (1, 0), (1, 2)):
            self.assertEqual(out[y, x], 2.0)

        # Every pixel whose window misses (1, 1) has no valid depth
        expected = np.zeros((4, 4), dtype=np.float32)
        expected[0:3, 0:3] = 2.0
        np.testing.assert_array_equal(out, expected)

    def test_output_matches_guide_resolution(self):
        guide = np.random.rand(6, 8, 3)
        depth = np.random.rand(3, 4).astype(np.float32) + 1.0
        out = depthmap_bilateral_filter(depth, guide, 1.0, 1)
        self.assertEqual(out.shape, (6, 8))
        self.assertEqual(out.dtype, np.float32)

    def test_all_sentinel_depth_stays_zero(self):
        guide = np.random.rand(5, 5, 3)
        out = depthmap_bilateral_filter(np.zeros((5, 5)), guide, 2.0, 2)
        np.testing.assert_array_equal(out, np.zeros((5, 5), dtype=np.float32))

    def test_sentinel_holes_do_not_bias_average(self):
        guide = np.full((5, 5, 3), 0.2)
        depth = np.full((5, 5), 4.0)
        depth[::2, ::2] = 0.0
        out = depthmap_bilateral_filter(depth, guide, 1.0, 1)
        np.testing.assert_allclose(out, 4.0, rtol=1e-6)

    def test_zero_kernel_returns_depth(self):
        guide = np.random.rand(4, 5, 3)
        depth = (np.random.rand(4, 5) + 0.5).astype(np.float32)
        out = depthmap_bilateral_filter(depth, guide, 1.0, 0)
        np.testing.assert_array_equal(out, depth)

    def test_uniform_guide_is_spatial_gaussian_average(self):
        depth = np.random.rand(6, 7) + 1.0
        depth[2, 3] = 0.0
        guide = np.full((6, 7, 3), 0.4)
        out = depthmap_bilateral_filter(depth, guide, 1.5, 2)
        np.testing.assert_allclose(out, reference_spatial_average(depth, 1.5, 2), rtol=1e-5)

    def test_edge_preservation(self):
        guide = np.zeros((6, 6, 3))
        guide[:, 3:] = 1.0
        depth = np.full((6, 6), 1.0)
        depth[:, 3:] = 5.0

        out = depthmap_bilateral_filter(depth, guide, 2.0, 2)
        np.testing.assert_allclose(out[:, :3], 1.0, atol=1e-6)
        np.testing.assert_allclose(out[:, 3:], 5.0, atol=1e-6)

        # Without the colour edge the step is smoothed
        blurred = depthmap_bilateral_filter(depth, np.zeros((6, 6, 3)), 2.0, 2)
        self.assertGreater(blurred[0, 2], 1.5)

    def test_half_resolution_depth(self):
        depth = np.arange(1, 17, dtype=np.float32).reshape(4, 4)
        guide = np.random.rand(8, 8, 3)
        out = depthmap_bilateral_filter(depth, guide, 1.0, 3)
        self.assertEqual(out.shape, (8, 8))
        self.assertGreaterEqual(out.min(), 1.0)
        self.assertLessEqual(out.max(), 16.0)

    def test_half_resolution_nearest_upsampling(self):
        depth = np.arange(1, 17, dtype=np.float32).reshape(4, 4)
        out = depthmap_bilateral_filter(depth, np.zeros((8, 8)), 1.0, 0)
        self.assertEqual(out[0, 0], 1.0)
        self.assertEqual(out[2, 4], depth[1, 2])
        self.assertEqual(out[7, 7], 16.0)

    def test_guide_smaller_than_depth(self):
        depth = np.random.rand(9, 9) + 1.0
        out = depthmap_bilateral_filter(depth, np.random.rand(3, 3), 1.0, 2)
        self.assertEqual(out.shape, (3, 3))
        self.assertTrue(np.all(out > 0))

    def test_deterministic(self):
        guide = np.random.rand(7, 9, 3)
        depth = np.random.rand(7, 9)
        depth[depth < 0.3] = 0.0
        first = depthmap_bilateral_filter(depth, guide, 1.2, 2)
        second = depthmap_bilateral_filter(depth, guide, 1.2, 2)
        np.testing.assert_array_equal(first, second)

    def test_workers_match_single_thread(self):
        guide = np.random.rand(11, 9, 3)
        depth = np.random.rand(11, 9)
        depth[depth < 0.3] = 0.0
        single = depthmap_bilateral_filter(depth, guide, 1.0, 2)
        threaded = depthmap_bilateral_filter(depth, guide, 1.0, 2, workers=4)
        np.testing.assert_array_equal(threaded, single)
        # More workers than rows
        tiny = depthmap_bilateral_filter(depth[:2], guide[:2], 1.0, 1, workers=8)
        self.assertEqual(tiny.shape, (2, 9))

    def test_inputs_not_modified(self):
        guide = np.random.rand(5, 5, 3)
        depth = np.random.rand(5, 5)
        guide_copy, depth_copy = guide.copy(), depth.copy()
        out = depthmap_bilateral_filter(depth, guide, 1.0, 1)
        np.testing.assert_array_equal(guide, guide_copy)
        np.testing.assert_array_equal(depth, depth_copy)
        self.assertFalse(np.shares_memory(out, depth))

    def test_single_channel_depth_with_channel_axis(self):
        depth = np.random.rand(4, 4, 1) + 1.0
        out = depthmap_bilateral_filter(depth, np.random.rand(4, 4), 1.0, 1)
        self.assertEqual(out.shape, (4, 4))

    def test_alias(self):
        self.assertIs(bilateral_filter, depthmap_bilateral_filter)

    def test_invalid_arguments(self):
        guide = np.random.rand(4, 4, 3)
        depth = np.random.rand(4, 4)
        with self.assertRaises(ValueError):
            depthmap_bilateral_filter(None, guide, 1.0, 1)
        with self.assertRaises(ValueError):
            depthmap_bilateral_filter(depth, None, 1.0, 1)
        with self.assertRaises(ValueError):
            depthmap_bilateral_filter(np.random.rand(4, 4, 3), guide, 1.0, 1)
        with self.assertRaises(ValueError):
            depthmap_bilateral_filter(np.zeros((0, 4)), guide, 1.0, 1)
        for sigma in (0.0, -1.0, float('nan'), float('inf')):
            with self.assertRaises(ValueError):
                depthmap_bilateral_filter(depth, guide, sigma, 1)
        for kernel_size in (-1, 1.5):
            with self.assertRaises(ValueError):
                depthmap_bilateral_filter(depth, guide, 1.0, kernel_size)
        with self.assertRaises(ValueError):
            depthmap_bilateral_filter(depth, guide, 1.0, 1, workers=0)


class TestMedianFilter(unittest.TestCase):
    """Median pre-filter"""

    def test_patch_median(self):
        patch = np.tile(np.array([1, 1, 1, 1, 9], dtype=np.float32), (5, 1))
        out = median_filter(patch, 5)
        self.assertEqual(out[2, 2], np.median(patch))

    def test_removes_isolated_spike(self):
        image = np.full((7, 7), 2.0)
        image[3, 3] = 50.0
        out = median_filter(image, 3)
        np.testing.assert_array_equal(out, np.full((7, 7), 2.0, dtype=np.float32))

    def test_shape_and_channels_preserved(self):
        image = np.random.rand(6, 5, 3)
        out = median_filter(image, 3)
        self.assertEqual(out.shape, image.shape)
        self.assertEqual(out.dtype, np.float32)
        # channels are filtered independently
        np.testing.assert_allclose(out[..., 1], median_filter(image[..., 1], 3))

    def test_border_replicates_edge(self):
        image = np.zeros((5, 5))
        image[:, 0] = 3.0
        out = median_filter(image, 3)
        np.testing.assert_array_equal(out[:, 0], 3.0)

    def test_fractional_size_is_truncated(self):
        image = np.random.rand(6, 6)
        np.testing.assert_array_equal(median_filter(image, 3.7), median_filter(image, 3))

    def test_input_not_modified(self):
        image = np.random.rand(5, 5).astype(np.float32)
        copy = image.copy()
        out = median_filter(image, 3)
        np.testing.assert_array_equal(image, copy)
        self.assertFalse(np.shares_memory(out, image))

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            median_filter(None, 3)
        with self.assertRaises(ValueError):
            median_filter(np.random.rand(4, 4), 0)
        with self.assertRaises(ValueError):
            median_filter(np.random.rand(4, 4), "3")


if __name__ == '__main__':
    unittest.main()

"""
bilateral.py - Joint bilateral filter for depth maps

Smoothes depth values over regions of similar guide colour while keeping
depth discontinuities that coincide with colour edges. Each neighbour is
weighted by geometric closeness (spatial gaussian) times photometric
closeness (one range gaussian per guide channel). Depth samples equal to 0.0
mean "no depth" and never contribute.

The scan runs in guide-image space, so a lower resolution depth map is
resampled onto the guide grid while it is filtered.

Public API:
    depthmap_bilateral_filter(depth_map, guide_image, sigma, kernel_size, workers=1)
    bilateral_filter  (alias)
    map_to_depth_coords(x, y, scale_x, scale_y, depth_width, depth_height)
    gaussian(x, sigma), gaussian_2d(x, y, sigma_x, sigma_y)
    bilateral_weight(kx, ky, sigma, guide_diffs, range_sigma=RANGE_SIGMA)
    WeightedAccumulator
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from numbers import Integral, Real

import numpy as np

from .base import validate_image

logger = logging.getLogger(__name__)

# Range bandwidth for guide intensities in [0, 1]; independent of the spatial sigma.
RANGE_SIGMA = 0.1

# Reserved depth value for "no estimate".
DEPTH_SENTINEL = 0.0


def gaussian(x, sigma):
    """Zero-mean unnormalized gaussian, 1.0 at x == 0."""
    x = np.asarray(x, dtype=np.float64)
    return np.exp(-(x * x) / (2.0 * sigma * sigma))


def gaussian_2d(x, y, sigma_x, sigma_y):
    """Axis-aligned unnormalized 2D gaussian, 1.0 at the origin."""
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    return np.exp(-((x * x) / (2.0 * sigma_x * sigma_x) + (y * y) / (2.0 * sigma_y * sigma_y)))


def bilateral_weight(kx, ky, sigma, guide_diffs, range_sigma=RANGE_SIGMA):
    """
    Combined weight of a neighbour at spatial offset (kx, ky).

    Args:
        kx, ky: Spatial offset of the neighbour from the filter centre
        sigma: Spatial bandwidth
        guide_diffs: Per-channel guide differences (neighbour - centre); the
            channel axis is the last axis, so a (H, W, C) array yields (H, W) weights
        range_sigma: Photometric bandwidth

    Returns:
        Non-negative weight(s). Neither gaussian is normalized; normalization
        happens in the accumulator.
    """
    diffs = np.asarray(guide_diffs, dtype=np.float64)
    if diffs.ndim == 0:
        diffs = diffs.reshape(1)
    weight = gaussian_2d(kx, ky, sigma, sigma)
    return weight * np.prod(gaussian(diffs, range_sigma), axis=-1)


def map_to_depth_coords(x, y, scale_x, scale_y, depth_width, depth_height):
    """
    Map guide-space pixel coordinates to the nearest depth-map pixel.

    Rounds half up and clamps into [0, depth_width) x [0, depth_height), so the
    result is always a valid index whatever the input. Accepts ints or integer
    arrays (broadcast together).
    """
    dm_x = np.clip(np.floor(scale_x * np.asarray(x, dtype=np.float64) + 0.5), 0, depth_width - 1)
    dm_y = np.clip(np.floor(scale_y * np.asarray(y, dtype=np.float64) + 0.5), 0, depth_height - 1)
    if dm_x.ndim == 0 and dm_y.ndim == 0:
        return int(dm_x), int(dm_y)
    return dm_x.astype(np.intp), dm_y.astype(np.intp)


class WeightedAccumulator:
    """
    Running weighted sum of values.

    Works on scalars (shape ()) or on one slot per output pixel.
    """

    def __init__(self, shape=()):
        self.v = np.zeros(shape, dtype=np.float64)
        self.w = np.zeros(shape, dtype=np.float64)

    def add(self, value, weight):
        self.v += np.asarray(value, dtype=np.float64) * weight
        self.w += weight

    def has_weight(self):
        return self.w > 0

    def normalized(self, fill=0.0):
        """Weighted average where the total weight is positive, `fill` elsewhere."""
        mask = self.has_weight()
        safe_w = np.where(mask, self.w, 1.0)
        out = np.where(mask, self.v / safe_w, fill)
        if out.ndim == 0:
            return float(out)
        return out


def _as_channels(image):
    image = np.asarray(image, dtype=np.float64)
    if image.ndim == 2:
        image = image[:, :, np.newaxis]
    return image


def _validate_params(sigma, kernel_size, workers):
    if isinstance(sigma, bool) or not isinstance(sigma, Real):
        raise ValueError(f"sigma must be a number, got {type(sigma)}")
    if not math.isfinite(sigma) or sigma <= 0:
        raise ValueError(f"sigma must be positive and finite, got {sigma}")
    if isinstance(kernel_size, bool) or not isinstance(kernel_size, Integral):
        raise ValueError(f"kernel_size must be an integer, got {type(kernel_size)}")
    if kernel_size < 0:
        raise ValueError(f"kernel_size must be >= 0, got {kernel_size}")
    if isinstance(workers, bool) or not isinstance(workers, Integral) or workers < 1:
        raise ValueError(f"workers must be a positive integer, got {workers}")


def _filter_rows(depth, guide, sigma, kernel_size, y0, y1):
    """Filter guide rows [y0, y1) and return the (y1 - y0, W) result."""
    h, w = guide.shape[:2]
    dm_h, dm_w = depth.shape
    scale_x = dm_w / w
    scale_y = dm_h / h

    ys = np.arange(y0, y1)[:, np.newaxis]
    xs = np.arange(w)[np.newaxis, :]
    centre = guide[y0:y1]

    accum = WeightedAccumulator((y1 - y0, w))
    for ky in range(-kernel_size, kernel_size + 1):
        ci_y = np.clip(ys + ky, 0, h - 1)
        for kx in range(-kernel_size, kernel_size + 1):
            ci_x = np.clip(xs + kx, 0, w - 1)
            dm_x, dm_y = map_to_depth_coords(ci_x, ci_y, scale_x, scale_y, dm_w, dm_h)

            samples = depth[dm_y, dm_x]
            valid = samples != DEPTH_SENTINEL
            if not valid.any():
                continue

            weight = bilateral_weight(kx, ky, sigma, guide[ci_y, ci_x] - centre)
            accum.add(np.where(valid, samples, 0.0), np.where(valid, weight, 0.0))

    return accum.normalized(fill=DEPTH_SENTINEL)


def depthmap_bilateral_filter(depth_map, guide_image, sigma, kernel_size, workers=1):
    """
    Joint bilateral filter of a depth map guided by a (colour) image.

    Args:
        depth_map: (H_d, W_d) or (H_d, W_d, 1) depth map; 0.0 marks missing
            depth, so valid depths must be non-zero
        guide_image: (H, W) or (H, W, C) guide with intensities in [0, 1];
            may differ in resolution from the depth map
        sigma: Spatial bandwidth in guide pixels (> 0)
        kernel_size: Kernel radius; the window is (2 * kernel_size + 1)^2
        workers: Number of threads, each filtering a band of rows

    Returns:
        New float32 depth map with the guide's (H, W). Pixels whose window holds
        no valid depth stay 0.0.

    Raises:
        ValueError: On absent or malformed images or invalid parameters
    """
    validate_image(depth_map, "depth map", single_channel=True)
    validate_image(guide_image, "guide image")
    _validate_params(sigma, kernel_size, workers)

    depth = np.asarray(depth_map, dtype=np.float64)
    if depth.ndim == 3:
        depth = depth[:, :, 0]
    guide = _as_channels(guide_image)
    h, w = guide.shape[:2]

    logger.debug("Bilateral filter: depth %dx%d, guide %dx%dx%d, sigma=%s, kernel_size=%d",
                 depth.shape[1], depth.shape[0], w, h, guide.shape[2], sigma, kernel_size)

    out = np.zeros((h, w), dtype=np.float32)
    bands = [(int(b[0]), int(b[-1]) + 1) for b in np.array_split(np.arange(h), min(workers, h))]

    if len(bands) == 1:
        out[:, :] = _filter_rows(depth, guide, sigma, kernel_size, 0, h)
        return out

    def run_band(band):
        y0, y1 = band
        out[y0:y1] = _filter_rows(depth, guide, sigma, kernel_size, y0, y1)

    with ThreadPoolExecutor(max_workers=len(bands)) as executor:
        # list() re-raises any worker exception here
        list(executor.map(run_band, bands))

    return out


bilateral_filter = depthmap_bilateral_filter

"""
median.py - Median pre-filter for depth maps

Public API:
    median_filter(image, size)
"""

from numbers import Real

import numpy as np
from scipy import ndimage

from .base import validate_image


def median_filter(image, size):
    """
    Median of the size x size window around every sample.

    Borders are extended with the nearest edge sample. Multi-channel images are
    filtered per channel. Fractional sizes are truncated.

    Args:
        image: (H, W) or (H, W, C) image
        size: Window extent in pixels (>= 1)

    Returns:
        New float32 image with the same shape as the input

    Raises:
        ValueError: If the image is absent or malformed or size is not positive
    """
    if image is None:
        raise ValueError("Null image given")
    validate_image(image)

    if isinstance(size, bool) or not isinstance(size, Real):
        raise ValueError(f"size must be a number, got {type(size)}")
    if not np.isfinite(size) or int(size) < 1:
        raise ValueError(f"size must be >= 1, got {size}")
    extent = int(size)

    data = np.asarray(image, dtype=np.float32)
    footprint = (extent, extent) if data.ndim == 2 else (extent, extent, 1)
    return ndimage.median_filter(data, size=footprint, mode='nearest')

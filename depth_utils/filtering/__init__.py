"""
Depth map filtering: joint bilateral refinement and median pre-filtering
"""

from numbers import Integral, Real

from .base import (
    DepthFilter,
    FilterRegistry,
    apply_filter,
    ensure_float01,
    validate_image
)
from .bilateral import (
    DEPTH_SENTINEL,
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


class BilateralDepthFilter(DepthFilter):
    """
    Joint bilateral depth filter.
    Wraps depthmap_bilateral_filter behind the DepthFilter interface; a guide image is required.
    """

    def __init__(self, sigma: float = 1.0, kernel_size: int = 2, workers: int = 1):
        """
        Args:
            sigma: Spatial bandwidth in guide pixels (default: 1.0)
            kernel_size: Kernel radius (default: 2)
            workers: Number of row-band threads (default: 1)
        """
        super().__init__(sigma=sigma, kernel_size=kernel_size, workers=workers)

    def _validate_params(self):
        sigma = self.params.get('sigma')
        if isinstance(sigma, bool) or not isinstance(sigma, Real) or sigma <= 0:
            raise ValueError(f"sigma must be positive, got {sigma}")
        kernel_size = self.params.get('kernel_size')
        if isinstance(kernel_size, bool) or not isinstance(kernel_size, Integral) or kernel_size < 0:
            raise ValueError(f"kernel_size must be a non-negative integer, got {kernel_size}")

    def __call__(self, depth_map, guide_image=None, **kwargs):
        if guide_image is None:
            raise ValueError("Null guide image given")

        params = self.get_params()
        params.update(kwargs)

        return depthmap_bilateral_filter(
            depth_map,
            guide_image,
            sigma=params['sigma'],
            kernel_size=params['kernel_size'],
            workers=params.get('workers', 1)
        )

    def get_name(self) -> str:
        return 'bilateral'


class MedianDepthFilter(DepthFilter):
    """Median pre-filter; ignores the guide image."""

    def __init__(self, size: int = 3):
        super().__init__(size=size)

    def _validate_params(self):
        size = self.params.get('size')
        if isinstance(size, bool) or not isinstance(size, Real) or size < 1:
            raise ValueError(f"size must be >= 1, got {size}")

    def __call__(self, depth_map, guide_image=None, **kwargs):
        params = self.get_params()
        params.update(kwargs)
        return median_filter(depth_map, params['size'])

    def get_name(self) -> str:
        return 'median'


FilterRegistry.register('bilateral', BilateralDepthFilter)
FilterRegistry.register('median', MedianDepthFilter)

__all__ = [
    'DepthFilter',
    'FilterRegistry',
    'apply_filter',
    'ensure_float01',
    'validate_image',
    'DEPTH_SENTINEL',
    'RANGE_SIGMA',
    'WeightedAccumulator',
    'bilateral_filter',
    'bilateral_weight',
    'depthmap_bilateral_filter',
    'gaussian',
    'gaussian_2d',
    'map_to_depth_coords',
    'median_filter',
    'BilateralDepthFilter',
    'MedianDepthFilter'
]

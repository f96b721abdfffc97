"""
Depth filter base classes and interfaces
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Union
import numpy as np

class DepthFilter(ABC):
    """
    Abstract base class for depth map filters.

    This class defines the interface that all depth filters must implement.
    It provides a consistent API for the different filtering passes so they can
    be chained by the refinement pipeline and created by name from configuration.
    """

    def __init__(self, **kwargs):
        """
        Initialize the filter with parameters.

        Args:
            **kwargs: Filter-specific parameters
        """

        self.params = kwargs
        self._validate_params()

    @abstractmethod
    def __call__(self, depth_map: np.ndarray, guide_image: Optional[np.ndarray] = None,
                 **kwargs) -> np.ndarray:
        """
        Apply the filter to a depth map.

        Args:
            depth_map: Depth map as numpy array (H, W) or (H, W, 1)
            guide_image: Optional guide image (H, W) or (H, W, C)
            **kwargs: Parameter overrides for this specific call

        Returns:
            Freshly allocated filtered depth map
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """
        Return the name of the filter.

        Returns:
            Filter name as string
        """
        pass

    def _validate_params(self):
        """
        Validate the parameters passed to the constructor.
        Override this method in subclasses to add parameter validation.
        """
        pass

    def get_params(self) -> Dict[str, Any]:
        """
        Get the current parameters of the filter.

        Returns:
            Dictionary of parameters
        """
        return self.params.copy()

    def set_params(self, **kwargs):
        """
        Update the parameters of the filter and re-validate them.
        """
        self.params.update(kwargs)
        self._validate_params()

    def __repr__(self) -> str:
        params_str = ', '.join(f'{k}={v}' for k, v in self.params.items())
        return f"{self.__class__.__name__}({params_str})"

class FilterRegistry:
    """
    Registry for depth filters.

    Maintains the available filter classes and provides a factory method to
    create instances of registered filters by name.
    """
    _methods: Dict[str, type] = {}

    @classmethod
    def register(cls, name: str, method_class: type):
        """
        Register a depth filter class.

        Args:
            name: Name to register the filter under
            method_class: Class that inherits from DepthFilter
        """
        if not (isinstance(method_class, type) and issubclass(method_class, DepthFilter)):
            raise ValueError(f"Filter class must inherit from DepthFilter, got {method_class}")
        cls._methods[name] = method_class

    @classmethod
    def create(cls, name: str, **kwargs) -> DepthFilter:
        """
        Create an instance of a registered filter.

        Args:
            name: Name of the registered filter
            **kwargs: Parameters to pass to the filter constructor

        Returns:
            Instance of the filter

        Raises:
            ValueError: If filter name is not registered
        """
        if name not in cls._methods:
            available = ', '.join(cls._methods.keys())
            raise ValueError(f"Unknown depth filter '{name}'. Available filters: {available}")

        return cls._methods[name](**kwargs)

    @classmethod
    def list_methods(cls) -> list:
        """Get a list of all registered filter names."""
        return list(cls._methods.keys())

    @classmethod
    def is_registered(cls, name: str) -> bool:
        """Check if a filter name is registered."""
        return name in cls._methods

def apply_filter(depth_map: np.ndarray,
                 method: Union[str, DepthFilter],
                 guide_image: Optional[np.ndarray] = None,
                 **kwargs) -> np.ndarray:
    """
    Apply a depth filter given either its registered name or an instance.

    Args:
        depth_map: Input depth map
        method: Either a registered filter name or a DepthFilter instance
        guide_image: Guide image, required by guided filters
        **kwargs: Parameters for the filter constructor when a name is given

    Returns:
        Filtered depth map
    """
    if isinstance(method, str):
        depth_filter = FilterRegistry.create(method, **kwargs)
    elif isinstance(method, DepthFilter):
        depth_filter = method
    else:
        raise ValueError(f"Method must be string or DepthFilter instance, got {type(method)}")

    return depth_filter(depth_map, guide_image)

def ensure_float01(image: np.ndarray) -> np.ndarray:
    """
    Convert an image to float64 with intensities in the [0, 1] range.

    Integer images are scaled by the maximum of their dtype; float images with
    values above 1 are assumed to be 8-bit intensities.

    Args:
        image: Input image as numpy array

    Returns:
        New float64 image with values in [0, 1] range
    """
    if np.issubdtype(image.dtype, np.integer):
        return image.astype(np.float64) / float(np.iinfo(image.dtype).max)
    image = image.astype(np.float64)
    if image.size and image.max() > 1.0:
        image /= 255.0
    return image


def validate_image(image: np.ndarray, name: str = "image", single_channel: bool = False) -> None:
    """
    Validate that an image is in the expected format.

    Args:
        image: Input image to validate
        name: Name used in error messages
        single_channel: Require a single channel (H, W) or (H, W, 1) image

    Raises:
        ValueError: If image format is invalid
    """
    if image is None:
        raise ValueError(f"Null {name} given")

    if not isinstance(image, np.ndarray):
        raise ValueError(f"{name} must be numpy array, got {type(image)}")

    if image.ndim not in [2, 3]:
        raise ValueError(f"{name} must be 2D (H, W) or 3D (H, W, C), got {image.ndim}D")

    if image.size == 0:
        raise ValueError(f"{name} cannot be empty")

    if single_channel and image.ndim == 3 and image.shape[2] != 1:
        raise ValueError(f"{name} must have a single channel, got {image.shape[2]}")

    if not (np.issubdtype(image.dtype, np.floating) or np.issubdtype(image.dtype, np.integer)):
        raise ValueError(f"{name} must hold numeric samples, got dtype {image.dtype}")

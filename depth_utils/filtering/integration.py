"""
Integration utilities for depth filtering in the refinement pipeline
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional, Union

import numpy as np
import yaml

from .base import apply_filter

logger = logging.getLogger(__name__)

# CLI argument / YAML key -> parameter name
_ARG_KEYS = {
    'sigma': 'sigma',
    'kernel_size': 'kernel_size',
    'median_size': 'median_size',
    'workers': 'workers',
    'no_bilateral': 'bilateral_enabled'
}
_YAML_KEYS = {
    'bilateral_sigma': ('sigma', float),
    'bilateral_kernel_size': ('kernel_size', int),
    'bilateral_enabled': ('bilateral_enabled', bool),
    'median_size': ('median_size', int),
    'workers': ('workers', int)
}
_TRUE_STRINGS = ('true', '1', 'yes', 'on')
_FALSE_STRINGS = ('false', '0', 'no', 'off')

def default_filter_params() -> Dict[str, Any]:
    return {
        'bilateral_enabled': True,
        'sigma': 1.0,
        'kernel_size': 2,
        'median_size': 0,
        'workers': 1
    }

def prepare_filter_params_from_args(args) -> Dict[str, Any]:
    """
    Collect filter parameters given explicitly on the command line.

    Args:
        args: Parsed command line arguments; unset options are None

    Returns:
        Dictionary holding only the parameters that were given
    """
    params = {}
    for arg_name, key in _ARG_KEYS.items():
        value = getattr(args, arg_name, None)
        if value is None:
            continue
        if arg_name == 'no_bilateral':
            if value:
                params[key] = False
            continue
        params[key] = value
    return params

def prepare_filter_params_from_config(config) -> Dict[str, Any]:
    """
    Prepare filter parameters from a RefineConfig.

    Args:
        config: RefineConfig instance

    Returns:
        Complete dictionary of filter parameters
    """
    defaults = default_filter_params()
    return {
        'bilateral_enabled': config.get_bool('BILATERAL_ENABLED', defaults['bilateral_enabled']),
        'sigma': config.get_float('BILATERAL_SIGMA', defaults['sigma']),
        'kernel_size': config.get_int('BILATERAL_KERNEL_SIZE', defaults['kernel_size']),
        'median_size': config.get_int('MEDIAN_SIZE', defaults['median_size']),
        'workers': config.get_int('WORKERS', defaults['workers'])
    }

def _coerce(value, kind):
    """Convert a YAML value to bool, int or float; raises ValueError if it does not fit."""
    if kind is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(f"expected a boolean, got {value!r}")

    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    if kind is int:
        number = float(value)
        if not number.is_integer():
            raise ValueError(f"expected an integer, got {value!r}")
        return int(number)
    return float(value)

def load_filter_params(params_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load filter parameters from a YAML file.

    Args:
        params_path: Path to a YAML mapping with any of the keys bilateral_sigma,
            bilateral_kernel_size, bilateral_enabled, median_size, workers

    Returns:
        Dictionary holding the parameters found in the file; empty if the file
        could not be read
    """
    try:
        with open(params_path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load filter parameter file {params_path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Filter parameter file {params_path} is not a mapping, ignoring it")
        return {}

    params = {}
    for name, (key, kind) in _YAML_KEYS.items():
        if data.get(name) is None:
            continue
        try:
            params[key] = _coerce(data[name], kind)
        except (ValueError, TypeError) as e:
            logger.warning(f"Ignoring {name} in {params_path}: {e}")
    logger.info(f"Loaded filter parameters from {params_path}: {params}")
    return params

def refine_depth_map(depth_map: np.ndarray,
                     guide_image: Optional[np.ndarray],
                     params: Optional[Dict[str, Any]] = None) -> np.ndarray:
    """
    Run the refinement chain: optional median pre-filter, then the bilateral pass.

    Args:
        depth_map: Input depth map (0.0 marks missing depth)
        guide_image: Guide image, required when the bilateral pass is enabled
        params: Filter parameters (see default_filter_params)

    Returns:
        New refined depth map
    """
    merged = default_filter_params()
    merged.update(params or {})

    depth = depth_map
    if merged['median_size'] and merged['median_size'] > 0:
        depth = apply_filter(depth, 'median', size=merged['median_size'])

    if merged['bilateral_enabled']:
        return apply_filter(
            depth,
            'bilateral',
            guide_image=guide_image,
            sigma=merged['sigma'],
            kernel_size=merged['kernel_size'],
            workers=merged['workers']
        )

    if depth is depth_map:
        depth = np.array(depth_map, dtype=np.float32)
    return depth

def log_filter_config(params: Dict[str, Any], logger=None):
    """
    Log the refinement configuration.

    Args:
        params: Filter parameters dictionary
        logger: Logger instance (optional)
    """
    config_str = "Depth refinement:"
    if params.get('median_size', 0) > 0:
        config_str += f" median(size={params['median_size']})"
    if params.get('bilateral_enabled', True):
        config_str += f" bilateral(sigma={params.get('sigma')}, kernel_size={params.get('kernel_size')}"
        config_str += f", workers={params.get('workers', 1)})"

    if logger:
        logger.info(config_str)
    else:
        print(config_str)

#!/usr/bin/env python3
"""
Depth Map Refinement Script
Refines depth maps with a joint bilateral filter guided by the matching colour
image, optionally after a median pre-filter. Works on a single view or on a
directory of views.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import cv2
import numpy as np

from depth_utils.filtering import ensure_float01
from depth_utils.filtering.integration import (
    load_filter_params,
    log_filter_config,
    prepare_filter_params_from_args,
    prepare_filter_params_from_config,
    refine_depth_map
)
from depth_utils.pipeline import ProgressPrinter, RefineConfig, ViewStatus

GUIDE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tif', '.tiff', '.bmp')

def load_guide_image(guide_path):
    """
    Load a guide image as float RGB (or grayscale) in [0, 1]

    Raises:
        FileNotFoundError: If the image cannot be read
    """
    img = cv2.imread(str(guide_path), cv2.IMREAD_UNCHANGED)
    if img is None:
        raise FileNotFoundError(f"Could not read guide image {guide_path}")

    if img.ndim == 3 and img.shape[2] == 3:
        img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
    elif img.ndim == 3 and img.shape[2] == 4:
        img = cv2.cvtColor(img, cv2.COLOR_BGRA2RGB)

    return ensure_float01(img)

def load_depth_map(depth_path):
    """Load a depth map stored as a numpy array"""
    depth_path = Path(depth_path)
    if not depth_path.exists():
        raise FileNotFoundError(f"Depth map {depth_path} does not exist")
    return np.load(depth_path)

def refine_view(depth_path, guide_path, output_path, params):
    """
    Refine a single depth map and save the result

    Args:
        depth_path: Path to the input depth map (.npy)
        guide_path: Path to the guide image, or None when the bilateral pass is disabled
        output_path: Path for the refined depth map (.npy)
        params: Filter parameters

    Returns:
        bool: True if successful, False otherwise
    """
    try:
        depth = load_depth_map(depth_path)
        guide = load_guide_image(guide_path) if guide_path is not None else None

        refined = refine_depth_map(depth, guide, params)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        np.save(output_path, refined)
        return True

    except (OSError, ValueError) as e:
        print(f"Error processing {depth_path}: {e}")
        return False

def find_guide_image(guide_dir, stem):
    """Find the guide image with the given stem, or None"""
    for ext in GUIDE_EXTENSIONS:
        for candidate in (guide_dir / f"{stem}{ext}", guide_dir / f"{stem}{ext.upper()}"):
            if candidate.exists():
                return candidate
    return None

def find_views(depth_dir, guide_dir):
    """
    Pair every depth map in depth_dir with its guide image

    Returns:
        list: (view_name, depth_path, guide_path or None), sorted by name
    """
    depth_dir = Path(depth_dir)
    guide_dir = Path(guide_dir) if guide_dir else depth_dir

    views = []
    for depth_path in sorted(depth_dir.glob("*.npy"), key=lambda p: p.name):
        views.append((depth_path.stem, depth_path, find_guide_image(guide_dir, depth_path.stem)))
    return views

def refine_directory(depth_dir, guide_dir, output_dir, params, progress_interval=2.0, logs_dir=None,
                     log_level=logging.INFO):
    """
    Refine every depth map in a directory

    Views without a guide image are ignored when the bilateral pass is enabled.
    Guide images are not read when it is disabled.
    A failing view is marked failed and processing continues.

    Returns:
        dict: Summary of processing results
    """
    if not Path(depth_dir).exists():
        raise FileNotFoundError(f"Depth directory '{depth_dir}' does not exist")

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    views = find_views(depth_dir, guide_dir)
    bilateral_enabled = params.get('bilateral_enabled', True)

    successful = 0
    failed = 0
    ignored = 0

    printer = ProgressPrinter([name for name, _, _ in views], interval=progress_interval,
                              logs_dir=logs_dir, log_level=log_level)
    with printer:
        for name, depth_path, guide_path in views:
            if bilateral_enabled and guide_path is None:
                print(f"Warning: No guide image for view {name}, skipping")
                printer.publish(name, ViewStatus.IGNORED)
                ignored += 1
                continue

            printer.publish(name, ViewStatus.IN_PROGRESS)
            view_guide = guide_path if bilateral_enabled else None
            if refine_view(depth_path, view_guide, output_path / f"{name}.npy", params):
                printer.publish(name, ViewStatus.DONE)
                successful += 1
            else:
                printer.publish(name, ViewStatus.FAILED)
                failed += 1

    return {
        'total_views': len(views),
        'successful': successful,
        'failed': failed,
        'ignored': ignored,
        'summary': printer.summary()
    }

def build_parser():
    parser = argparse.ArgumentParser(description='Refine depth maps with a guided bilateral filter')

    single = parser.add_argument_group('single view')
    single.add_argument('--depth', type=str, help='Input depth map (.npy)')
    single.add_argument('--guide', type=str, help='Guide image')
    single.add_argument('--output', type=str, help='Output depth map (.npy)')

    batch = parser.add_argument_group('directory')
    batch.add_argument('--depth-dir', type=str, help='Directory of depth maps (*.npy)')
    batch.add_argument('--guide-dir', type=str, help='Directory of guide images (same stem as depth maps)')
    batch.add_argument('--output-dir', type=str, help='Directory for refined depth maps')

    filters = parser.add_argument_group('filter parameters')
    filters.add_argument('--sigma', type=float, default=None, help='Spatial bandwidth in pixels')
    filters.add_argument('--kernel-size', type=int, default=None, help='Kernel radius')
    filters.add_argument('--median-size', type=int, default=None, help='Median pre-filter size (0 disables)')
    filters.add_argument('--no-bilateral', action='store_true', default=None, help='Only run the median pre-filter')
    filters.add_argument('--workers', type=int, default=None, help='Threads per depth map')
    filters.add_argument('--params', type=str, default=None, help='YAML file with filter parameters')
    filters.add_argument('--config', type=str, default='configs/refine.env', help='Environment config file')

    return parser

def main(argv=None):
    args = build_parser().parse_args(argv)

    config = RefineConfig(args.config)
    log_level = config.get_log_level()
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    params = prepare_filter_params_from_config(config)
    if args.params:
        params.update(load_filter_params(args.params))
    params.update(prepare_filter_params_from_args(args))

    if args.depth:
        if not args.output:
            print("Error: --output is required with --depth")
            return 1
        if params['bilateral_enabled'] and not args.guide:
            print("Error: --guide is required unless --no-bilateral is given")
            return 1

        print("=" * 80)
        print("Single View Depth Refinement")
        print("=" * 80)
        print(f"Depth map: {args.depth}")
        print(f"Guide image: {args.guide}")
        print(f"Output: {args.output}")
        log_filter_config(params)
        print("=" * 80)

        start_time = time.time()
        if not refine_view(args.depth, args.guide if params['bilateral_enabled'] else None, args.output, params):
            print("\nFailed to refine depth map")
            return 1

        print(f"\nRefined depth map in {time.time() - start_time:.2f} seconds")
        print(f"Output saved to: {args.output}")
        return 0

    if not args.depth_dir or not args.output_dir:
        print("Error: give either --depth/--output or --depth-dir/--output-dir")
        return 1

    print("=" * 80)
    print("Depth Map Refinement")
    print("=" * 80)
    print(f"Depth maps: {args.depth_dir}")
    print(f"Guide images: {args.guide_dir or args.depth_dir}")
    print(f"Output: {args.output_dir}")
    log_filter_config(params)
    print("=" * 80)

    start_time = time.time()
    try:
        results = refine_directory(
            args.depth_dir,
            args.guide_dir,
            args.output_dir,
            params,
            progress_interval=config.get_float('PROGRESS_INTERVAL', 2.0),
            logs_dir=config.get_path('LOGS_DIR'),
            log_level=log_level
        )
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    elapsed_time = time.time() - start_time
    print("\n" + "=" * 80)
    print("Refinement Complete!")
    print("=" * 80)
    print(f"Views found: {results['total_views']}")
    print(f"Successful: {results['successful']}")
    print(f"Failed: {results['failed']}")
    print(f"Ignored (no guide image): {results['ignored']}")
    print(f"Time elapsed: {elapsed_time:.2f} seconds")

    return 0 if results['failed'] == 0 else 1

if __name__ == "__main__":
    sys.exit(main())

"""Flood-fill segmentation of edge maps into selectable regions."""
import logging
from datetime import datetime, timezone
from typing import List, Optional
import numpy as np

from regionpaint.edge_classifier import edge_mask
from regionpaint.features import build_region
from regionpaint.raster_ingest import as_rgb_array
from regionpaint.types import (
    MalformedInputError,
    Region,
    RegionSet,
    RegionTooLargeError,
    SegmentationConfig,
)

logger = logging.getLogger(__name__)


def flood_fill(
    visited: bytearray,
    seed: int,
    width: int,
    height: int,
    max_pixels: int
) -> List[int]:
    """
    Collect the 4-connected run of unvisited pixels containing ``seed``.

    Uses an explicit stack instead of recursion so large contiguous areas
    cannot exhaust the call stack. Edge pixels must already be marked in
    ``visited``; every collected pixel is marked as it is discovered.

    Args:
        visited: Bitmap of width * height bytes, non-zero = visited
        seed: Flat address of an unvisited start pixel
        width: Image width
        height: Image height
        max_pixels: Ceiling on the number of collected pixels

    Returns:
        Flat pixel addresses in discovery order

    Raises:
        RegionTooLargeError: If the run holds more than ``max_pixels``
            pixels. The collected pixels stay marked; the unexplored
            frontier is unmarked so later seeds can still reach it.
    """
    pixels: List[int] = []
    stack = [seed]
    visited[seed] = 1
    last_row = (height - 1) * width

    while stack:
        if len(pixels) >= max_pixels:
            for idx in stack:
                visited[idx] = 0
            raise RegionTooLargeError(seed, pixels, max_pixels)

        idx = stack.pop()
        pixels.append(idx)
        x = idx % width

        if x + 1 < width and not visited[idx + 1]:
            visited[idx + 1] = 1
            stack.append(idx + 1)
        if x > 0 and not visited[idx - 1]:
            visited[idx - 1] = 1
            stack.append(idx - 1)
        if idx < last_row and not visited[idx + width]:
            visited[idx + width] = 1
            stack.append(idx + width)
        if idx >= width and not visited[idx - width]:
            visited[idx - width] = 1
            stack.append(idx - width)

    return pixels


def _validate_inputs(edge_image: np.ndarray, normal_image: np.ndarray):
    if edge_image.ndim < 2 or normal_image.ndim < 2:
        raise MalformedInputError("Edge and normal maps must be 2D rasters")

    if edge_image.shape[:2] != normal_image.shape[:2]:
        raise MalformedInputError(
            f"Edge map {edge_image.shape[1]}x{edge_image.shape[0]} and normal map "
            f"{normal_image.shape[1]}x{normal_image.shape[0]} differ in size"
        )

    height, width = edge_image.shape[:2]
    if width == 0 or height == 0:
        raise MalformedInputError(f"Image has zero area: {width}x{height}")


def segment(
    edge_image: np.ndarray,
    normal_image: np.ndarray,
    config: Optional[SegmentationConfig] = None
) -> List[Region]:
    """
    Partition the non-edge pixels of an edge map into regions.

    Pixels are scanned in row-major order; each unvisited pixel seeds a
    flood fill. Runs below ``config.min_region_size`` are dropped as noise
    and their pixels stay visited, so they belong to no region. Region ids
    are assigned 0, 1, 2, ... in discovery order.

    Args:
        edge_image: Edge map (H, W, C), dark lines on a light background
        normal_image: Normal map (H, W, C) of the same size
        config: Segmentation configuration

    Returns:
        Regions ordered by id

    Raises:
        MalformedInputError: If the rasters differ in size or have zero area
        RegionTooLargeError: If a run exceeds the flood-fill ceiling and
            ``config.on_oversize`` is "raise"
    """
    config = config or SegmentationConfig()

    edge_image = np.asarray(edge_image)
    normal_image = np.asarray(normal_image)
    _validate_inputs(edge_image, normal_image)

    edge_rgb = as_rgb_array(edge_image)
    normal_rgb = as_rgb_array(normal_image)
    height, width = edge_rgb.shape[:2]
    total_pixels = width * height

    logger.info(f"Generating regions for {width}x{height} image...")

    # Edge pixels never join a region
    edges = edge_mask(edge_rgb, config.edge_threshold).ravel()
    visited = bytearray(edges.astype(np.uint8).tobytes())
    logger.debug(f"Found {int(edges.sum()):,} edge pixels")

    regions: List[Region] = []
    void_pixels = 0

    for seed in np.flatnonzero(~edges).tolist():
        if visited[seed]:
            continue

        try:
            pixels = flood_fill(
                visited, seed, width, height, config.max_flood_fill_pixels
            )
        except RegionTooLargeError as e:
            if config.on_oversize == "raise":
                raise
            logger.warning(f"{e}; keeping truncated region of {len(e.pixels):,} pixels")
            pixels = e.pixels

        if len(pixels) < config.min_region_size:
            void_pixels += len(pixels)
            continue

        region = build_region(len(regions), pixels, width, normal_rgb)
        regions.append(region)

        if len(regions) % 50 == 0:
            logger.debug(f"  Generated {len(regions)} regions...")

    covered = sum(r.pixel_count for r in regions)
    logger.info(
        f"Generated {len(regions)} regions "
        f"({covered:,} of {total_pixels:,} pixels covered, {void_pixels:,} void)"
    )

    return regions


def create_region_set(
    source_id: str,
    edge_image: np.ndarray,
    normal_image: np.ndarray,
    config: Optional[SegmentationConfig] = None
) -> RegionSet:
    """Segment an image pair into a timestamped RegionSet."""
    regions = segment(edge_image, normal_image, config)
    height, width = np.asarray(edge_image).shape[:2]

    return RegionSet(
        source_id=str(source_id),
        width=width,
        height=height,
        generated_at=datetime.now(timezone.utc).isoformat(),
        regions=tuple(regions),
    )

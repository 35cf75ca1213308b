"""Debug utilities for partition auditing and region overlays."""
import logging
from pathlib import Path
from typing import Iterable, Optional, Union
import numpy as np
from PIL import Image

from regionpaint.color_space import hex_to_rgb
from regionpaint.edge_classifier import edge_mask
from regionpaint.raster_ingest import as_rgb_array
from regionpaint.types import EDGE_THRESHOLD, InvariantViolationError, RegionSet

logger = logging.getLogger(__name__)

OVERLAY_ALPHA = 180
SELECTION_COLOR = (0, 200, 255)
SELECTION_ALPHA = 100


def audit_partition(
    region_set: RegionSet,
    edge_image: Optional[np.ndarray] = None,
    threshold: float = EDGE_THRESHOLD
) -> dict:
    """
    Check that regions partition the image and count uncovered pixels.

    Every pixel must belong to at most one region and no region may
    contain an edge pixel. Pixels that are neither edge nor region are
    "void" (runs dropped as noise).

    Returns:
        Dictionary with region, covered, edge and void pixel counts

    Raises:
        InvariantViolationError: If regions overlap or cover edge pixels
    """
    coverage = np.zeros(region_set.total_pixels, dtype=np.int32)
    for region in region_set.regions:
        np.add.at(coverage, region.pixel_indices.astype(np.int64), 1)

    overlapping = int(np.count_nonzero(coverage > 1))
    if overlapping:
        raise InvariantViolationError(f"{overlapping} pixels belong to more than one region")

    covered = coverage > 0
    stats = {
        "total_regions": len(region_set),
        "total_pixels": region_set.total_pixels,
        "covered_pixels": int(covered.sum()),
        "edge_pixels": 0,
        "void_pixels": int((~covered).sum()),
    }

    if edge_image is not None:
        edges = edge_mask(as_rgb_array(edge_image), threshold).ravel()
        if edges.size != region_set.total_pixels:
            raise ValueError("Edge map does not match region set dimensions")
        if np.any(edges & covered):
            raise InvariantViolationError("Regions contain edge pixels")
        stats["edge_pixels"] = int(edges.sum())
        stats["void_pixels"] = int((~edges & ~covered).sum())

    logger.info(
        f"Partition audit: {stats['total_regions']} regions cover "
        f"{stats['covered_pixels']:,}/{stats['total_pixels']:,} pixels, "
        f"{stats['edge_pixels']:,} edge, {stats['void_pixels']:,} void"
    )
    if stats["void_pixels"]:
        logger.debug(f"{stats['void_pixels']:,} pixels were dropped as noise")

    return stats


def render_region_overlay(region_set: RegionSet, alpha: int = OVERLAY_ALPHA) -> np.ndarray:
    """
    Paint every region in its display color.

    Returns:
        RGBA uint8 array (H, W, 4), transparent where no region is
    """
    overlay = np.zeros((region_set.total_pixels, 4), dtype=np.uint8)
    for region in region_set.regions:
        r, g, b = hex_to_rgb(region.display_color)
        overlay[region.pixel_indices] = (r, g, b, alpha)
    return overlay.reshape(region_set.height, region_set.width, 4)


def render_selection_overlay(
    region_set: RegionSet,
    region_ids: Iterable[int],
    color=SELECTION_COLOR,
    alpha: int = SELECTION_ALPHA
) -> np.ndarray:
    """Highlight the selected regions in a single translucent color."""
    overlay = np.zeros((region_set.total_pixels, 4), dtype=np.uint8)
    for region_id in region_ids:
        region = region_set.region(region_id)
        if region is None:
            logger.warning(f"Selection overlay: unknown region id {region_id}")
            continue
        overlay[region.pixel_indices] = (color[0], color[1], color[2], alpha)
    return overlay.reshape(region_set.height, region_set.width, 4)


def composite_overlay(base: np.ndarray, overlay: np.ndarray) -> np.ndarray:
    """Alpha-composite an RGBA overlay onto an RGB image."""
    base_rgb = as_rgb_array(base).astype(np.float32)
    alpha = overlay[..., 3:4].astype(np.float32) / 255.0
    blended = base_rgb * (1 - alpha) + overlay[..., :3].astype(np.float32) * alpha
    return np.clip(np.round(blended), 0, 255).astype(np.uint8)


def save_overlay(
    overlay: np.ndarray,
    output_path: Union[str, Path],
    base: Optional[np.ndarray] = None
) -> Path:
    """Save an overlay, composited over ``base`` when given."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if base is not None:
        Image.fromarray(composite_overlay(base, overlay)).save(output_path)
    else:
        Image.fromarray(overlay).save(output_path)

    logger.info(f"Region overlay saved to {output_path}")
    return output_path

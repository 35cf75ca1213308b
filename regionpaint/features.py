"""Per-region feature extraction: bounds, normals, colors and display colors."""
import math
from typing import Optional, Sequence, Union
import numpy as np

from regionpaint.color_space import hsl_to_rgb, rgb_to_hex, round_half_up
from regionpaint.types import RGB, BoundingBox, InvariantViolationError, Region

GOLDEN_RATIO_CONJUGATE = 0.618033988749895

# Color sampling caps the number of members read per region
MAX_COLOR_SAMPLES = 100

NEUTRAL_COLOR: RGB = (128, 128, 128)

PixelList = Union[Sequence[int], np.ndarray]


def _as_indices(pixels: PixelList) -> np.ndarray:
    indices = np.asarray(pixels, dtype=np.int64)
    if indices.size == 0:
        raise InvariantViolationError("Cannot extract features from an empty region")
    return indices


def _flat_channels(image: np.ndarray) -> np.ndarray:
    """View an (H, W, C) or (H*W, C) image as (H*W, C)."""
    image = np.asarray(image)
    if image.ndim == 3:
        return image.reshape(-1, image.shape[2])
    if image.ndim == 2:
        return image
    raise ValueError(f"Expected (H, W, C) or (N, C) image, got shape {image.shape}")


def compute_bounds(pixels: PixelList, width: int) -> BoundingBox:
    """Compute the tight bounding box of flat pixel addresses."""
    indices = _as_indices(pixels)
    xs = indices % width
    ys = indices // width
    return BoundingBox(
        min_x=int(xs.min()),
        min_y=int(ys.min()),
        max_x=int(xs.max()),
        max_y=int(ys.max()),
    )


def compute_average_normal(pixels: PixelList, normal_image: np.ndarray) -> RGB:
    """
    Average the normal-map RGB over a region.

    Args:
        pixels: Flat pixel addresses
        normal_image: Normal map (H, W, C) or (H*W, C)

    Returns:
        Per-channel mean rounded to integers, not unit-normalized
    """
    indices = _as_indices(pixels)
    samples = _flat_channels(normal_image)[indices, :3].astype(np.float64)
    mean = samples.mean(axis=0)
    return (
        round_half_up(mean[0]),
        round_half_up(mean[1]),
        round_half_up(mean[2]),
    )


def sample_color(
    pixels: PixelList,
    image: Optional[np.ndarray] = None,
    max_samples: int = MAX_COLOR_SAMPLES
) -> RGB:
    """
    Estimate the mean color of a region.

    Large regions are sampled at an even stride so that at most about
    ``max_samples`` members are read. This is an approximation meant for
    similarity scoring, not for reconstruction.

    Args:
        pixels: Flat pixel addresses
        image: Color image (H, W, C) or (H*W, C); None gives neutral gray
        max_samples: Approximate sample budget

    Returns:
        Rounded mean RGB
    """
    indices = np.asarray(pixels, dtype=np.int64)
    if image is None or indices.size == 0:
        return NEUTRAL_COLOR

    stride = max(1, indices.size // max_samples)
    sampled = indices[::stride]
    colors = _flat_channels(image)[sampled, :3].astype(np.float64)
    mean = colors.mean(axis=0)
    return (
        round_half_up(mean[0]),
        round_half_up(mean[1]),
        round_half_up(mean[2]),
    )


def generate_distinct_color(index: int) -> str:
    """
    Generate a distinct display color for a region id.

    Hue steps by the golden ratio for an even spread; saturation and
    lightness alternate in small tiers so neighbours in id order differ.
    """
    hue = math.modf(index * GOLDEN_RATIO_CONJUGATE)[0] * 360
    saturation = 0.7 + (index % 3) * 0.1
    lightness = 0.5 + (index % 2) * 0.15

    r, g, b = hsl_to_rgb(hue, saturation, lightness)
    return rgb_to_hex(r, g, b)


def build_region(
    region_id: int,
    pixels: PixelList,
    width: int,
    normal_image: np.ndarray
) -> Region:
    """
    Assemble a Region with all its features.

    Raises:
        InvariantViolationError: If the pixel list is empty
    """
    indices = np.asarray(pixels, dtype=np.uint32)
    if indices.size == 0:
        raise InvariantViolationError(f"Region {region_id} has no pixels")

    return Region(
        id=region_id,
        pixel_indices=indices,
        bounds=compute_bounds(indices, width),
        avg_normal=compute_average_normal(indices, normal_image),
        pixel_count=int(indices.size),
        display_color=generate_distinct_color(region_id),
    )

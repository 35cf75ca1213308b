"""Edge classification for black-on-white edge maps."""
from typing import Sequence
import numpy as np

from regionpaint.types import EDGE_THRESHOLD


def is_edge_pixel(rgb: Sequence[int], threshold: float = EDGE_THRESHOLD) -> bool:
    """
    Check if a pixel is an edge based on its grayscale value.

    Edge maps are dark lines on a light background, so a pixel whose
    mean of R, G and B is below the threshold is an edge.

    Args:
        rgb: Pixel sample with at least three channels
        threshold: Grayscale cutoff (0-255)

    Returns:
        True for edge pixels
    """
    gray = (int(rgb[0]) + int(rgb[1]) + int(rgb[2])) / 3
    return gray < threshold


def edge_mask(image: np.ndarray, threshold: float = EDGE_THRESHOLD) -> np.ndarray:
    """
    Classify every pixel of an edge map.

    Args:
        image: Edge map (H, W, C) with C >= 3, values 0-255

    Returns:
        Boolean mask (H, W), True for edge pixels
    """
    # Channel sum against 3 * threshold is the mean rule without a division
    channel_sum = image[..., :3].astype(np.int32).sum(axis=-1)
    return channel_sum < 3 * threshold

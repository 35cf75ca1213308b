"""Pytest configuration and fixtures."""
from datetime import datetime, timezone

import numpy as np
import pytest

from regionpaint.features import build_region
from regionpaint.types import RegionSet

FLAT_NORMAL = (128, 128, 255)


def _edge_image(edges: np.ndarray) -> np.ndarray:
    """Black edges on a white background."""
    image = np.full(edges.shape + (3,), 255, dtype=np.uint8)
    image[edges] = 0
    return image


@pytest.fixture
def make_edge_image():
    """Factory turning a boolean edge mask into an edge-map image."""
    return _edge_image


@pytest.fixture
def make_normals():
    """Factory for a uniform normal map."""
    def _make(height, width, rgb=FLAT_NORMAL):
        return np.full((height, width, 3), rgb, dtype=np.uint8)
    return _make


@pytest.fixture
def cross_edges():
    """5x5 edge mask crossed by one edge row and one edge column through the center."""
    edges = np.zeros((5, 5), dtype=bool)
    edges[2, :] = True
    edges[:, 2] = True
    return edges


@pytest.fixture
def make_region_set():
    """
    Factory building a RegionSet from explicit pixel lists.

    ``blocks`` is a list of (pixel_addresses, avg_normal) pairs; ids follow
    list order.
    """
    def _make(width, height, blocks, source_id="test"):
        normals = np.zeros((height * width, 3), dtype=np.uint8)
        for pixels, normal in blocks:
            normals[np.asarray(pixels)] = normal
        regions = tuple(
            build_region(i, pixels, width, normals)
            for i, (pixels, _) in enumerate(blocks)
        )
        return RegionSet(
            source_id=source_id,
            width=width,
            height=height,
            generated_at=datetime.now(timezone.utc).isoformat(),
            regions=regions,
        )
    return _make


@pytest.fixture
def block_pixels():
    """Factory for the flat addresses of a w x h block at (x0, y0)."""
    def _block(image_width, x0, y0, w, h):
        return [(y0 + dy) * image_width + (x0 + dx) for dy in range(h) for dx in range(w)]
    return _block

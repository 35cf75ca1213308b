"""Pixel ownership index for constant-time hit testing."""
import logging
from typing import Iterable, List, Optional, Tuple
import numpy as np

from regionpaint.types import NO_REGION, Region, RegionSet

logger = logging.getLogger(__name__)


class OwnershipIndex:
    """
    Pixel -> region id lookup table for one RegionSet.

    ``lookup[y * width + x]`` holds the owning region id or NO_REGION for
    edge and void pixels. The array is read-only once built.
    """

    def __init__(self, region_set: RegionSet, lookup: np.ndarray):
        if lookup.shape != (region_set.total_pixels,):
            raise ValueError(
                f"Lookup of shape {lookup.shape} does not match "
                f"{region_set.width}x{region_set.height} image"
            )
        lookup.flags.writeable = False
        self.region_set = region_set
        self.lookup = lookup

    @classmethod
    def build(cls, region_set: RegionSet) -> "OwnershipIndex":
        """Build the index in O(total member pixels)."""
        lookup = np.full(region_set.total_pixels, NO_REGION, dtype=np.int32)

        for region in region_set.regions:
            lookup[region.pixel_indices] = region.id

        logger.debug(
            f"Built ownership index for '{region_set.source_id}' "
            f"({len(region_set)} regions)"
        )
        return cls(region_set, lookup)

    @property
    def width(self) -> int:
        return self.region_set.width

    @property
    def height(self) -> int:
        return self.region_set.height

    def region_id_at(self, x: int, y: int) -> int:
        """Return the owning region id, NO_REGION outside the image or regions."""
        if x < 0 or x >= self.width or y < 0 or y >= self.height:
            return NO_REGION
        return int(self.lookup[y * self.width + x])

    def hit_test(self, x: int, y: int) -> Optional[Region]:
        """Find the region under a pixel coordinate, or None."""
        region_id = self.region_id_at(x, y)
        if region_id == NO_REGION:
            return None
        return self.region_set.regions[region_id]

    def regions_at(self, points: Iterable[Tuple[int, int]]) -> List[Region]:
        """Hit test several points, returning each region once in first-hit order."""
        seen = set()
        hits = []
        for x, y in points:
            region = self.hit_test(x, y)
            if region is not None and region.id not in seen:
                seen.add(region.id)
                hits.append(region)
        return hits

    def as_label_map(self) -> np.ndarray:
        """View the index as an (H, W) label map."""
        return self.lookup.reshape(self.height, self.width)

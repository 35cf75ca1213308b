"""Core types for the region segmentation and paint pipeline."""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
import math
import numpy as np


RGB = Tuple[int, int, int]

# Sentinel stored in the ownership index for pixels owned by no region
NO_REGION = -1

EDGE_THRESHOLD = 200
MIN_REGION_SIZE = 50
MAX_FLOOD_FILL_PIXELS = 5_000_000


@dataclass(frozen=True)
class BoundingBox:
    """Inclusive pixel bounding box."""
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    def contains(self, x: int, y: int) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y


@dataclass(frozen=True)
class HSL:
    """HSL color: hue in degrees [0, 360), saturation and lightness in [0, 1]."""
    h: float
    s: float
    l: float


@dataclass(frozen=True, eq=False)
class Region:
    """Selectable region produced by segmentation."""
    id: int
    pixel_indices: np.ndarray  # uint32 flat addresses y * width + x
    bounds: BoundingBox
    avg_normal: RGB  # Raw normal-map RGB, not unit length
    pixel_count: int
    display_color: str

    def __post_init__(self):
        if self.pixel_indices.flags.writeable:
            self.pixel_indices.flags.writeable = False


@dataclass(frozen=True, eq=False)
class RegionSet:
    """Immutable set of regions generated for one image."""
    source_id: str
    width: int
    height: int
    generated_at: str
    regions: Tuple[Region, ...] = ()

    def __post_init__(self):
        if not isinstance(self.regions, tuple):
            object.__setattr__(self, 'regions', tuple(self.regions))
        for position, region in enumerate(self.regions):
            if region.id != position:
                raise MalformedInputError(
                    f"Region ids must be dense and ordered: found id {region.id} "
                    f"at position {position}"
                )

    @property
    def total_pixels(self) -> int:
        return self.width * self.height

    def __len__(self) -> int:
        return len(self.regions)

    def __iter__(self):
        return iter(self.regions)

    def region(self, region_id: int) -> Optional[Region]:
        """Resolve a region id in O(1); unknown ids give None."""
        if 0 <= region_id < len(self.regions):
            return self.regions[region_id]
        return None

    def selection_stats(self, region_ids: Iterable[int]) -> Tuple[int, int]:
        """Return (region_count, pixel_count) for a selection of region ids."""
        ids = set(region_ids)
        pixel_count = sum(
            r.pixel_count for r in (self.region(i) for i in ids) if r is not None
        )
        return len(ids), pixel_count


@dataclass(frozen=True)
class FeatureVector:
    """Per-region descriptor used only for similarity scoring."""
    region_id: int
    center: Tuple[float, float]
    avg_color: RGB
    normal: Tuple[float, float, float]  # Unit vector
    area: int
    aspect_ratio: float


@dataclass(frozen=True)
class SimilarityWeights:
    """Weights of the four similarity factors."""
    color: float
    normal: float
    size: float
    proximity: float


# Loose ranking mode
RANKING_WEIGHTS = SimilarityWeights(color=0.35, normal=0.30, size=0.15, proximity=0.20)
# Strict smart-group mode, color dominates
SMART_GROUP_WEIGHTS = SimilarityWeights(color=0.45, normal=0.25, size=0.15, proximity=0.15)


@dataclass(frozen=True)
class ScoredRegion:
    """Region paired with its similarity to a seed."""
    region: Region
    score: float
    color_similarity: float


@dataclass
class SegmentationConfig:
    """Configuration for edge-map segmentation."""
    # Gray values below this are edges
    edge_threshold: float = EDGE_THRESHOLD

    # Runs smaller than this are discarded as noise
    min_region_size: int = MIN_REGION_SIZE

    # Safety ceiling for a single flood fill
    max_flood_fill_pixels: int = MAX_FLOOD_FILL_PIXELS

    # "raise" or "truncate"
    on_oversize: str = "raise"

    def __post_init__(self):
        if not 0 <= self.edge_threshold <= 256:
            raise ValueError(f"edge_threshold must be in [0, 256], got {self.edge_threshold}")
        if self.min_region_size < 1:
            raise ValueError(f"min_region_size must be >= 1, got {self.min_region_size}")
        if self.max_flood_fill_pixels < 1:
            raise ValueError(
                f"max_flood_fill_pixels must be >= 1, got {self.max_flood_fill_pixels}"
            )
        if self.on_oversize not in ("raise", "truncate"):
            raise ValueError(f"on_oversize must be 'raise' or 'truncate', got {self.on_oversize!r}")


@dataclass
class BlendConfig:
    """Configuration for paint application and edge feathering."""
    # Lightness
    lightness_preservation: float = 0.85  # 1.0 keeps base lightness exactly
    min_lightness: float = 0.02
    max_lightness: float = 0.98

    # Saturation
    paint_saturation_weight: float = 0.85
    saturation_boost: float = 1.05

    # Hue nudge toward the base hue
    hue_nudge: float = 0.03
    hue_nudge_min_saturation: float = 0.08

    # Normal-map lighting
    light_direction: Tuple[float, float, float] = (0.2, 0.3, 1.0)
    lighting_min: float = 0.8
    lighting_max: float = 1.15
    lighting_steepness: float = 6.0
    lighting_midpoint: float = 0.7
    lighting_desaturation: float = 0.5

    # Edge feathering
    feather_width: float = 0.4
    edge_radius: int = 8

    def __post_init__(self):
        if not 0.0 <= self.lightness_preservation <= 1.0:
            raise ValueError("lightness_preservation must be in [0, 1]")
        if not 0.0 <= self.min_lightness < self.max_lightness <= 1.0:
            raise ValueError("lightness bounds must satisfy 0 <= min < max <= 1")
        if not 0.0 <= self.paint_saturation_weight <= 1.0:
            raise ValueError("paint_saturation_weight must be in [0, 1]")
        if not 0.0 <= self.hue_nudge <= 0.03:
            raise ValueError("hue_nudge must be in [0, 0.03]")
        if self.lighting_min > self.lighting_max:
            raise ValueError("lighting_min must not exceed lighting_max")
        if self.feather_width <= 0:
            raise ValueError("feather_width must be positive")
        if self.edge_radius < 1:
            raise ValueError("edge_radius must be >= 1")
        if math.sqrt(sum(c * c for c in self.light_direction)) == 0:
            raise ValueError("light_direction must be non-zero")

    @classmethod
    def classic(cls) -> "BlendConfig":
        """Plain luminance-preserving blend without easing, boost or hue nudge."""
        return cls(lightness_preservation=1.0, saturation_boost=1.0, hue_nudge=0.0)


@dataclass(frozen=True)
class PaintColor:
    """Named paint color of the default palette."""
    id: str
    name: str
    hex: str


PAINT_PALETTE: List[PaintColor] = [
    PaintColor('terracotta', 'Terracotta', '#E07A5F'),
    PaintColor('sage', 'Sage Green', '#81B29A'),
    PaintColor('mustard', 'Mustard Yellow', '#F2CC8F'),
    PaintColor('ocean', 'Ocean Blue', '#3D5A80'),
    PaintColor('lavender', 'Lavender', '#9B8AA3'),
    PaintColor('cream', 'Cream White', '#F4F1DE'),
]


class RegionPaintError(Exception):
    """Base exception for region segmentation and painting errors."""
    pass


class MalformedInputError(RegionPaintError):
    """Input rasters or documents have the wrong shape or content."""
    pass


class RegionTooLargeError(RegionPaintError):
    """A single flood fill exceeded the configured pixel ceiling."""

    def __init__(self, seed: int, pixels: List[int], limit: int):
        super().__init__(
            f"Flood fill from pixel {seed} exceeded {limit:,} pixels"
        )
        self.seed = seed
        self.pixels = pixels
        self.limit = limit


class InvariantViolationError(RegionPaintError):
    """Internal invariant broken, e.g. an empty region reached feature extraction."""
    pass

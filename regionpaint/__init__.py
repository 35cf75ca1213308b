"""Region segmentation, hit testing, paint blending and smart selection."""
from regionpaint.types import (
    BoundingBox,
    Region,
    RegionSet,
    FeatureVector,
    ScoredRegion,
    SegmentationConfig,
    BlendConfig,
    SimilarityWeights,
    RANKING_WEIGHTS,
    SMART_GROUP_WEIGHTS,
    NO_REGION,
    PAINT_PALETTE,
    RegionPaintError,
    MalformedInputError,
    RegionTooLargeError,
    InvariantViolationError,
)
from regionpaint.segmenter import segment, create_region_set
from regionpaint.ownership import OwnershipIndex
from regionpaint.cache import RegionCache
from regionpaint.color_blend import apply_paint_color, apply_paint_with_edge_fade, compute_edge_distances
from regionpaint.similarity import (
    find_smart_group,
    find_similar_regions,
    find_color_similar_regions,
    group_regions_by_normal,
    rank_similar_regions,
)

__version__ = "0.1.0"

__all__ = [
    "BoundingBox",
    "Region",
    "RegionSet",
    "FeatureVector",
    "ScoredRegion",
    "SegmentationConfig",
    "BlendConfig",
    "SimilarityWeights",
    "RANKING_WEIGHTS",
    "SMART_GROUP_WEIGHTS",
    "NO_REGION",
    "PAINT_PALETTE",
    "RegionPaintError",
    "MalformedInputError",
    "RegionTooLargeError",
    "InvariantViolationError",
    "segment",
    "create_region_set",
    "OwnershipIndex",
    "RegionCache",
    "apply_paint_color",
    "apply_paint_with_edge_fade",
    "compute_edge_distances",
    "find_smart_group",
    "find_similar_regions",
    "find_color_similar_regions",
    "group_regions_by_normal",
    "rank_similar_regions",
]

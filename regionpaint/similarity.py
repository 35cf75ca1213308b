"""Multi-factor region similarity and smart-select grouping."""
import logging
import math
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence
import numpy as np

from regionpaint.color_space import normalize_normal
from regionpaint.features import sample_color
from regionpaint.types import (
    RANKING_WEIGHTS,
    SMART_GROUP_WEIGHTS,
    FeatureVector,
    Region,
    ScoredRegion,
    SimilarityWeights,
)

logger = logging.getLogger(__name__)

MAX_COLOR_DISTANCE = math.sqrt(3 * 255 * 255)

# Smart-group contract constants
SMART_GROUP_MIN_THRESHOLD = 0.75
SMART_GROUP_COLOR_GATE = 0.88
SMART_GROUP_MAX_SELECTIONS = 15
ELBOW_SCAN_LIMIT = 12
ELBOW_RELATIVE_DROP = 0.08
ELBOW_ABSOLUTE_DROP = 0.05
ELBOW_MIN_DROP = 0.05
ELBOW_CUTOFF_FACTOR = 0.98
NO_ELBOW_CUTOFF_FACTOR = 0.92

# Proximity is measured against this fraction of the image diagonal
PROXIMITY_RANGE = 0.3


def extract_features(region: Region, image: Optional[np.ndarray] = None) -> FeatureVector:
    """
    Build the similarity descriptor of a region.

    Args:
        region: Region to describe
        image: Optional color image (H, W, C) or (H*W, C) to sample colors
            from; without it every region gets the same neutral color

    Returns:
        FeatureVector
    """
    bounds = region.bounds
    return FeatureVector(
        region_id=region.id,
        center=bounds.center,
        avg_color=sample_color(region.pixel_indices, image),
        normal=normalize_normal(region.avg_normal),
        area=region.pixel_count,
        aspect_ratio=bounds.width / bounds.height,
    )


def color_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """1 minus the RGB distance scaled by the largest possible distance."""
    distance = math.sqrt(
        (a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2 + (a[2] - b[2]) ** 2
    )
    return 1.0 - distance / MAX_COLOR_DISTANCE


def _normal_dot(a: Sequence[float], b: Sequence[float]) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def calculate_similarity(
    a: FeatureVector,
    b: FeatureVector,
    image_width: int,
    image_height: int,
    weights: SimilarityWeights = RANKING_WEIGHTS
) -> float:
    """
    Score how alike two regions are, 0-1 (higher = more similar).

    Combines color, surface orientation, size (log ratio, so a 10x larger
    region halves the size term) and spatial proximity within 30% of the
    image diagonal. The score is symmetric in ``a`` and ``b``.
    """
    color_sim = color_similarity(a.avg_color, b.avg_color)

    normal_sim = (_normal_dot(a.normal, b.normal) + 1) / 2

    size_ratio = max(a.area, b.area) / max(1, min(a.area, b.area))
    size_sim = 1 / (1 + math.log10(size_ratio))

    dx = a.center[0] - b.center[0]
    dy = a.center[1] - b.center[1]
    distance = math.sqrt(dx * dx + dy * dy)
    diagonal = math.sqrt(image_width * image_width + image_height * image_height)
    proximity_sim = 1 - min(1.0, distance / (diagonal * PROXIMITY_RANGE))

    return (
        weights.color * color_sim
        + weights.normal * normal_sim
        + weights.size * size_sim
        + weights.proximity * proximity_sim
    )


def _score_all(
    seed: Region,
    regions: Sequence[Region],
    image_width: int,
    image_height: int,
    image: Optional[np.ndarray],
    weights: SimilarityWeights
) -> List[ScoredRegion]:
    seed_features = extract_features(seed, image)
    scored = []
    for region in regions:
        features = extract_features(region, image)
        scored.append(ScoredRegion(
            region=region,
            score=calculate_similarity(seed_features, features, image_width, image_height, weights),
            color_similarity=color_similarity(seed_features.avg_color, features.avg_color),
        ))
    # Stable sort keeps input order among equal scores
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored


def rank_similar_regions(
    seed: Region,
    regions: Sequence[Region],
    image_width: int,
    image_height: int,
    image: Optional[np.ndarray] = None,
    weights: SimilarityWeights = RANKING_WEIGHTS
) -> List[ScoredRegion]:
    """Score every region against the seed, most similar first."""
    return _score_all(seed, regions, image_width, image_height, image, weights)


def find_adaptive_threshold(sorted_scores: Sequence[float], min_threshold: float) -> float:
    """
    Find a cutoff at the natural "elbow" of descending scores.

    Among the first scores, the largest relative drop between neighbours
    marks the elbow when it is significant (over 8% relative or 0.05
    absolute) and the score before it clears ``min_threshold``. The cutoff
    then sits just under the pre-drop score; without an elbow it sits
    at 92% of the top score.

    Args:
        sorted_scores: Scores in descending order
        min_threshold: Floor for the returned cutoff

    Returns:
        Cutoff score, never below ``min_threshold``
    """
    if len(sorted_scores) <= 1:
        return min_threshold
    if len(sorted_scores) == 2:
        return max(min_threshold, sorted_scores[1])

    max_relative_drop = 0.0
    elbow_idx = 0

    for i in range(1, min(len(sorted_scores), ELBOW_SCAN_LIMIT)):
        prev = sorted_scores[i - 1]
        curr = sorted_scores[i]

        relative_drop = (prev - curr) / prev if prev > 0 else 0.0
        absolute_drop = prev - curr
        significant = relative_drop > ELBOW_RELATIVE_DROP or absolute_drop > ELBOW_ABSOLUTE_DROP

        if significant and relative_drop > max_relative_drop and prev > min_threshold:
            max_relative_drop = relative_drop
            elbow_idx = i

    if elbow_idx > 0 and max_relative_drop > ELBOW_MIN_DROP:
        return max(min_threshold, sorted_scores[elbow_idx - 1] * ELBOW_CUTOFF_FACTOR)

    return max(min_threshold, sorted_scores[0] * NO_ELBOW_CUTOFF_FACTOR)


def find_smart_group(
    seed: Region,
    regions: Sequence[Region],
    image_width: int,
    image_height: int,
    image: Optional[np.ndarray] = None,
    similarity_threshold: float = SMART_GROUP_MIN_THRESHOLD
) -> List[Region]:
    """
    Select the regions that look like the same material as the seed.

    Candidates must pass a strict color gate before anything else counts;
    survivors are scored with color-heavy weights and cut at an adaptive
    threshold. At most 15 regions are returned and the seed is always
    included.

    Args:
        seed: Clicked region
        regions: All regions of the image (usually including the seed)
        image_width: Image width
        image_height: Image height
        image: Color image used for color sampling
        similarity_threshold: Minimum overall score

    Returns:
        Selected regions, most similar first
    """
    scored = _score_all(seed, regions, image_width, image_height, image, SMART_GROUP_WEIGHTS)
    survivors = [s for s in scored if s.color_similarity >= SMART_GROUP_COLOR_GATE]

    cutoff = find_adaptive_threshold([s.score for s in survivors], similarity_threshold)

    result = [
        s.region for s in survivors if s.score >= cutoff
    ][:SMART_GROUP_MAX_SELECTIONS]

    if not any(r.id == seed.id for r in result):
        result.insert(0, seed)

    logger.debug(
        f"Smart group for region {seed.id}: {len(survivors)} passed color gate, "
        f"cutoff {cutoff:.3f}, selected {len(result)}"
    )
    return result


def find_similar_regions(
    seed: Region,
    regions: Sequence[Region],
    angle_tolerance: float = 25.0
) -> List[Region]:
    """Regions whose surface orientation is within ``angle_tolerance`` degrees of the seed's."""
    cos_threshold = math.cos(math.radians(angle_tolerance))
    seed_normal = normalize_normal(seed.avg_normal)

    return [
        region for region in regions
        if _normal_dot(seed_normal, normalize_normal(region.avg_normal)) >= cos_threshold
    ]


def group_regions_by_normal(
    regions: Sequence[Region],
    angle_tolerance: float = 30.0
) -> Dict[int, List[int]]:
    """
    Greedily group regions by surface orientation.

    Regions are visited in input order; each unassigned region leads a new
    group and absorbs every later unassigned region within the angle
    tolerance. The grouping depends on input order.

    Returns:
        Ordered mapping of leader id -> member ids (leader first)
    """
    cos_threshold = math.cos(math.radians(angle_tolerance))
    normals = [normalize_normal(r.avg_normal) for r in regions]

    groups: Dict[int, List[int]] = OrderedDict()
    assigned = set()

    for i, leader in enumerate(regions):
        if leader.id in assigned:
            continue

        group = [leader.id]
        assigned.add(leader.id)

        for j in range(i + 1, len(regions)):
            other = regions[j]
            if other.id in assigned:
                continue
            if _normal_dot(normals[i], normals[j]) >= cos_threshold:
                group.append(other.id)
                assigned.add(other.id)

        groups[leader.id] = group

    return groups


def find_color_similar_regions(
    seed: Region,
    regions: Sequence[Region],
    image: Optional[np.ndarray] = None,
    color_threshold: float = 0.85
) -> List[Region]:
    """Regions whose sampled color is close to the seed's, ignoring every other factor."""
    seed_color = sample_color(seed.pixel_indices, image)
    return [
        region for region in regions
        if color_similarity(seed_color, sample_color(region.pixel_indices, image)) >= color_threshold
    ]

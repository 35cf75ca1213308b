"""Tests for region similarity scoring and smart grouping."""
import pytest
import numpy as np

from regionpaint.similarity import (
    calculate_similarity,
    color_similarity,
    extract_features,
    find_adaptive_threshold,
    find_color_similar_regions,
    find_similar_regions,
    find_smart_group,
    group_regions_by_normal,
    rank_similar_regions,
)
from regionpaint.types import RANKING_WEIGHTS, SMART_GROUP_WEIGHTS, FeatureVector

FACING_CAMERA = (128, 128, 255)

# Equal per-channel offsets from the seed color; the first four pass the color gate
CANDIDATE_OFFSETS = [13, 18, 26, 28, 102, 115, 128, 153, 178]
SEED_GRAY = 40


@pytest.fixture
def material_scene(make_region_set, block_pixels):
    """
    Ten 4x4 regions in a row on a 400x400 image.

    Region 0 is the seed; the rest get progressively less similar colors.
    """
    width = height = 400
    blocks = [
        (block_pixels(width, 5 * i, 0, 4, 4), FACING_CAMERA)
        for i in range(len(CANDIDATE_OFFSETS) + 1)
    ]
    region_set = make_region_set(width, height, blocks)

    image = np.zeros((height, width, 3), dtype=np.uint8)
    for i, offset in enumerate([0] + CANDIDATE_OFFSETS):
        image[0:4, 5 * i:5 * i + 4] = SEED_GRAY + offset

    return region_set, image


def _features(area=100, color=(100, 100, 100), normal=(0.0, 0.0, 1.0), center=(10.0, 10.0)):
    return FeatureVector(
        region_id=0,
        center=center,
        avg_color=color,
        normal=normal,
        area=area,
        aspect_ratio=1.0,
    )


class TestFeatureExtraction:
    """Test similarity descriptors."""

    def test_descriptor(self, make_region_set, block_pixels):
        """Test center, area, aspect ratio and unit normal."""
        region_set = make_region_set(20, 20, [(block_pixels(20, 2, 4, 6, 3), (255, 128, 128))])
        features = extract_features(region_set.region(0))

        assert features.center == (4.5, 5.0)
        assert features.area == 18
        assert features.aspect_ratio == pytest.approx(2.0)
        assert sum(c * c for c in features.normal) == pytest.approx(1.0)
        assert features.avg_color == (128, 128, 128)

    def test_sampled_color(self, material_scene):
        """Test colors are sampled from the image."""
        region_set, image = material_scene
        assert extract_features(region_set.region(1), image).avg_color == (53, 53, 53)


class TestSimilarityScore:
    """Test the multi-factor score."""

    def test_identical_scores_one(self):
        """Test a region is perfectly similar to itself."""
        a = _features()
        assert calculate_similarity(a, a, 100, 100) == pytest.approx(1.0)

    def test_symmetric(self):
        """Test swapping the arguments does not change the score."""
        rng = np.random.default_rng(1)
        for _ in range(50):
            normals = rng.normal(size=(2, 3))
            normals /= np.linalg.norm(normals, axis=1, keepdims=True)
            a = _features(
                area=int(rng.integers(1, 5000)),
                color=tuple(rng.integers(0, 256, 3).tolist()),
                normal=tuple(normals[0].tolist()),
                center=tuple(rng.uniform(0, 200, 2).tolist()),
            )
            b = _features(
                area=int(rng.integers(1, 5000)),
                color=tuple(rng.integers(0, 256, 3).tolist()),
                normal=tuple(normals[1].tolist()),
                center=tuple(rng.uniform(0, 200, 2).tolist()),
            )
            for weights in (RANKING_WEIGHTS, SMART_GROUP_WEIGHTS):
                assert calculate_similarity(a, b, 200, 200, weights) == pytest.approx(
                    calculate_similarity(b, a, 200, 200, weights)
                )

    def test_size_term(self):
        """Test a tenfold size difference halves the size term."""
        weights = RANKING_WEIGHTS
        same = calculate_similarity(_features(area=100), _features(area=100), 100, 100)
        tenfold = calculate_similarity(_features(area=100), _features(area=1000), 100, 100)
        assert same - tenfold == pytest.approx(weights.size * 0.5)

    def test_distant_regions_lose_proximity(self):
        """Test regions further apart than 30% of the diagonal get no proximity credit."""
        near = calculate_similarity(_features(), _features(center=(12.0, 10.0)), 100, 100)
        far = calculate_similarity(_features(), _features(center=(90.0, 90.0)), 100, 100)
        assert far == pytest.approx(1.0 - RANKING_WEIGHTS.proximity)
        assert near > far

    def test_color_similarity_bounds(self):
        """Test color similarity spans 0 to 1."""
        assert color_similarity((0, 0, 0), (0, 0, 0)) == 1.0
        assert color_similarity((0, 0, 0), (255, 255, 255)) == pytest.approx(0.0)


class TestRanking:
    """Test loose similarity ranking."""

    def test_sorted_descending(self, material_scene):
        """Test the seed ranks first and scores never increase."""
        region_set, image = material_scene
        ranked = rank_similar_regions(region_set.region(0), region_set.regions, 400, 400, image)

        scores = [s.score for s in ranked]
        assert ranked[0].region.id == 0
        assert scores == sorted(scores, reverse=True)
        assert len(ranked) == len(region_set)


class TestAdaptiveThreshold:
    """Test elbow detection."""

    def test_single_score(self):
        """Test one score falls back to the minimum."""
        assert find_adaptive_threshold([0.9], 0.75) == 0.75
        assert find_adaptive_threshold([], 0.75) == 0.75

    def test_two_scores(self):
        """Test two scores cut at the second, floored at the minimum."""
        assert find_adaptive_threshold([0.95, 0.9], 0.75) == 0.9
        assert find_adaptive_threshold([0.95, 0.6], 0.75) == 0.75

    def test_elbow(self):
        """Test a sharp drop puts the cutoff just under the pre-drop score."""
        cutoff = find_adaptive_threshold([0.95, 0.94, 0.93, 0.70, 0.69], 0.75)
        assert cutoff == pytest.approx(0.93 * 0.98)

    def test_no_elbow(self):
        """Test gently falling scores cut at 92% of the top."""
        cutoff = find_adaptive_threshold([0.99, 0.98, 0.97, 0.96], 0.75)
        assert cutoff == pytest.approx(0.99 * 0.92)

    def test_drop_below_minimum_ignored(self):
        """Test drops after scores already under the minimum are not elbows."""
        cutoff = find_adaptive_threshold([0.8, 0.79, 0.70, 0.40], 0.75)
        # 0.79 -> 0.70 is the elbow, 0.70 -> 0.40 starts below the minimum
        assert cutoff == pytest.approx(0.79 * 0.98)

    def test_never_below_minimum(self):
        """Test the cutoff is floored at the minimum."""
        assert find_adaptive_threshold([0.6, 0.59, 0.58], 0.75) == 0.75


class TestSmartGroup:
    """Test smart-select grouping."""

    def test_color_gate_and_cutoff(self, material_scene):
        """Test only same-material regions join the seed."""
        region_set, image = material_scene
        group = find_smart_group(region_set.region(0), region_set.regions, 400, 400, image)

        assert [r.id for r in group] == [0, 1, 2, 3, 4]

    def test_seed_always_included(self, material_scene):
        """Test the seed is returned even when it is not in the candidate list."""
        region_set, image = material_scene
        seed = region_set.region(0)
        others = [r for r in region_set.regions if r.id >= 5]

        group = find_smart_group(seed, others, 400, 400, image)

        assert group == [seed]

    def test_seed_only(self, material_scene):
        """Test a lone seed selects itself."""
        region_set, image = material_scene
        seed = region_set.region(0)
        assert find_smart_group(seed, [seed], 400, 400, image) == [seed]

    def test_selection_cap(self, make_region_set, block_pixels):
        """Test at most 15 regions are selected."""
        # 25 identical regions packed close together on a large image all clear the cutoff
        blocks = [(block_pixels(1000, 3 * i, 0, 2, 2), FACING_CAMERA) for i in range(25)]
        region_set = make_region_set(1000, 1000, blocks)
        seed = region_set.region(0)

        group = find_smart_group(seed, region_set.regions, 1000, 1000)

        assert len(group) == 15
        assert group[0] is seed
        assert [r.id for r in group] == list(range(15))


class TestOrientationGrouping:
    """Test normal-based grouping."""

    @pytest.fixture
    def oriented(self, make_region_set):
        return make_region_set(4, 1, [
            ([0], (128, 128, 255)),   # facing camera
            ([1], (255, 128, 128)),   # facing +X
            ([2], (130, 128, 255)),   # close to region 0
            ([3], (250, 130, 130)),   # close to region 1
        ])

    def test_groups(self, oriented):
        """Test regions with close normals share a group led by the first."""
        groups = group_regions_by_normal(oriented.regions)
        assert list(groups.items()) == [(0, [0, 2]), (1, [1, 3])]

    def test_input_order_sets_leaders(self, oriented):
        """Test reversing the input changes the leaders."""
        groups = group_regions_by_normal(list(reversed(oriented.regions)))
        assert list(groups.items()) == [(3, [3, 1]), (2, [2, 0])]

    def test_find_similar_regions(self, oriented):
        """Test orientation matching against a seed."""
        similar = find_similar_regions(oriented.region(0), oriented.regions)
        assert [r.id for r in similar] == [0, 2]


class TestColorOnlyGrouping:
    """Test color-only grouping."""

    def test_color_threshold(self, material_scene):
        """Test regions within the color threshold are selected regardless of score."""
        region_set, image = material_scene
        similar = find_color_similar_regions(region_set.region(0), region_set.regions, image)

        # 1 - 28/255 = 0.890 passes 0.85, 1 - 102/255 = 0.6 does not
        assert [r.id for r in similar] == [0, 1, 2, 3, 4]

    def test_without_image(self, material_scene):
        """Test every region looks alike when no image is given."""
        region_set, _ = material_scene
        similar = find_color_similar_regions(region_set.region(0), region_set.regions)
        assert len(similar) == len(region_set)

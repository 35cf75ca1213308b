"""Tests for region set documents."""
import json

import pytest
import numpy as np

from regionpaint.segmenter import create_region_set
from regionpaint.serialization import (
    load_region_set,
    mask_filename,
    region_set_from_dict,
    region_set_to_dict,
    save_region_set,
)
from regionpaint.types import MalformedInputError, SegmentationConfig


@pytest.fixture
def region_set(make_edge_image, make_normals):
    rng = np.random.default_rng(9)
    edges = rng.random((12, 16)) < 0.3
    normals = make_normals(12, 16)
    normals[:, 8:] = (200, 128, 200)
    return create_region_set(
        "kitchen",
        make_edge_image(edges),
        normals,
        SegmentationConfig(min_region_size=2)
    )


class TestRoundTrip:
    """Test saving and loading region documents."""

    def test_file_round_trip(self, region_set, tmp_path):
        """Test every field survives a save and load."""
        path = save_region_set(region_set, tmp_path / mask_filename("kitchen"))
        loaded = load_region_set(path)

        assert loaded.source_id == region_set.source_id
        assert (loaded.width, loaded.height) == (region_set.width, region_set.height)
        assert loaded.generated_at == region_set.generated_at
        assert len(loaded) == len(region_set)
        for original, restored in zip(region_set.regions, loaded.regions):
            assert restored.id == original.id
            assert np.array_equal(restored.pixel_indices, original.pixel_indices)
            assert restored.bounds == original.bounds
            assert restored.avg_normal == original.avg_normal
            assert restored.pixel_count == original.pixel_count
            assert restored.display_color == original.display_color

    def test_document_keys(self, region_set):
        """Test the document uses the interchange key names."""
        document = region_set_to_dict(region_set)

        assert set(document) == {"sourceId", "width", "height", "generatedAt", "regions"}
        region = document["regions"][0]
        assert set(region) == {
            "id", "pixelIndices", "bounds", "avgNormal", "pixelCount", "displayColor"
        }
        assert set(region["bounds"]) == {"minX", "minY", "maxX", "maxY"}
        # Must be plain JSON
        json.dumps(document)

    def test_mask_filename(self):
        """Test the per-image document name."""
        assert mask_filename("kitchen") == "masks-kitchen.json"


class TestMalformedDocuments:
    """Test rejection of invalid documents."""

    def test_missing_key(self, region_set):
        """Test documents missing required keys are rejected."""
        document = region_set_to_dict(region_set)
        del document["width"]
        with pytest.raises(MalformedInputError):
            region_set_from_dict(document)

    def test_pixel_outside_image(self, region_set):
        """Test pixel addresses beyond the image are rejected."""
        document = region_set_to_dict(region_set)
        document["regions"][0]["pixelIndices"][0] = 16 * 12
        with pytest.raises(MalformedInputError):
            region_set_from_dict(document)

    def test_pixel_count_mismatch(self, region_set):
        """Test pixelCount must match the listed pixels."""
        document = region_set_to_dict(region_set)
        document["regions"][0]["pixelCount"] += 1
        with pytest.raises(MalformedInputError):
            region_set_from_dict(document)

    def test_non_dense_ids(self, region_set):
        """Test region ids must run 0, 1, 2, ... in order."""
        document = region_set_to_dict(region_set)
        document["regions"][0]["id"] = 99
        with pytest.raises(MalformedInputError):
            region_set_from_dict(document)

    def test_empty_region(self, region_set):
        """Test regions without pixels are rejected."""
        document = region_set_to_dict(region_set)
        document["regions"][0]["pixelIndices"] = []
        document["regions"][0]["pixelCount"] = 0
        with pytest.raises(MalformedInputError):
            region_set_from_dict(document)

    def test_invalid_json(self, tmp_path):
        """Test unparsable files are reported as malformed."""
        path = tmp_path / "masks-bad.json"
        path.write_text("{not json")
        with pytest.raises(MalformedInputError):
            load_region_set(path)

    def test_missing_file(self, tmp_path):
        """Test missing documents raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_region_set(tmp_path / "masks-none.json")

"""JSON documents for region sets, one file per image."""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Union
import numpy as np

from regionpaint.types import (
    BoundingBox,
    MalformedInputError,
    Region,
    RegionPaintError,
    RegionSet,
)

logger = logging.getLogger(__name__)

_REGION_SET_KEYS = ("sourceId", "width", "height", "generatedAt", "regions")
_REGION_KEYS = ("id", "pixelIndices", "bounds", "avgNormal", "pixelCount", "displayColor")
_BOUNDS_KEYS = ("minX", "minY", "maxX", "maxY")


def mask_filename(source_id: str) -> str:
    """File name of the region document for an image."""
    return f"masks-{source_id}.json"


def region_to_dict(region: Region) -> Dict[str, Any]:
    bounds = region.bounds
    return {
        "id": region.id,
        "pixelIndices": region.pixel_indices.tolist(),
        "bounds": {
            "minX": bounds.min_x,
            "minY": bounds.min_y,
            "maxX": bounds.max_x,
            "maxY": bounds.max_y,
        },
        "avgNormal": list(region.avg_normal),
        "pixelCount": region.pixel_count,
        "displayColor": region.display_color,
    }


def region_set_to_dict(region_set: RegionSet) -> Dict[str, Any]:
    """Flatten a RegionSet into a JSON-compatible document."""
    return {
        "sourceId": region_set.source_id,
        "width": region_set.width,
        "height": region_set.height,
        "generatedAt": region_set.generated_at,
        "regions": [region_to_dict(r) for r in region_set.regions],
    }


def _require(document: Dict[str, Any], keys, what: str):
    if not isinstance(document, dict):
        raise MalformedInputError(f"{what} must be an object")
    missing = [k for k in keys if k not in document]
    if missing:
        raise MalformedInputError(f"{what} is missing keys: {', '.join(missing)}")


def region_from_dict(data: Dict[str, Any], total_pixels: int) -> Region:
    _require(data, _REGION_KEYS, "Region")
    _require(data["bounds"], _BOUNDS_KEYS, f"Bounds of region {data['id']}")

    pixels = np.asarray(data["pixelIndices"], dtype=np.int64)
    if pixels.ndim != 1 or pixels.size == 0:
        raise MalformedInputError(f"Region {data['id']} has no pixels")
    if pixels.min() < 0 or pixels.max() >= total_pixels:
        raise MalformedInputError(f"Region {data['id']} has pixels outside the image")
    if pixels.size != data["pixelCount"]:
        raise MalformedInputError(
            f"Region {data['id']} lists {pixels.size} pixels but pixelCount is {data['pixelCount']}"
        )

    normal = data["avgNormal"]
    if len(normal) != 3:
        raise MalformedInputError(f"Region {data['id']} avgNormal must have 3 channels")

    b = data["bounds"]
    return Region(
        id=int(data["id"]),
        pixel_indices=pixels.astype(np.uint32),
        bounds=BoundingBox(int(b["minX"]), int(b["minY"]), int(b["maxX"]), int(b["maxY"])),
        avg_normal=(int(normal[0]), int(normal[1]), int(normal[2])),
        pixel_count=int(data["pixelCount"]),
        display_color=str(data["displayColor"]),
    )


def region_set_from_dict(document: Dict[str, Any]) -> RegionSet:
    """
    Rebuild a RegionSet from its document.

    Raises:
        MalformedInputError: If keys are missing, pixels fall outside the
            image or region ids are not dense
    """
    _require(document, _REGION_SET_KEYS, "Region document")

    width = int(document["width"])
    height = int(document["height"])
    if width <= 0 or height <= 0:
        raise MalformedInputError(f"Image has zero area: {width}x{height}")

    regions = tuple(region_from_dict(r, width * height) for r in document["regions"])

    return RegionSet(
        source_id=str(document["sourceId"]),
        width=width,
        height=height,
        generated_at=str(document["generatedAt"]),
        regions=regions,
    )


def save_region_set(region_set: RegionSet, path: Union[str, Path]) -> Path:
    """Write a RegionSet document to disk."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(region_set_to_dict(region_set), f)
    except (IOError, OSError) as e:
        raise RegionPaintError(f"Failed to write region document {path}: {e}") from e

    logger.info(f"Saved {len(region_set)} regions to {path}")
    return path


def load_region_set(path: Union[str, Path]) -> RegionSet:
    """
    Read a RegionSet document.

    Raises:
        FileNotFoundError: If file doesn't exist
        MalformedInputError: If the document is not valid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Region document not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"Invalid JSON in {path}: {e}") from e
    except (IOError, OSError) as e:
        raise RegionPaintError(f"Failed to read region document {path}: {e}") from e

    return region_set_from_dict(document)

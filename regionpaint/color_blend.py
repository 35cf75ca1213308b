"""Paint application that keeps the photographed shading of a surface."""
import logging
import math
from typing import Dict, Iterable, Mapping, Optional, Sequence, Union
import numpy as np
from scipy.ndimage import distance_transform_edt

from regionpaint.color_space import (
    clamp_channel,
    hex_to_rgb,
    hsl_to_rgb,
    normalize_normal,
    rgb_to_hsl,
)
from regionpaint.raster_ingest import as_rgb_array
from regionpaint.types import RGB, HSL, BlendConfig, MalformedInputError, Region, RegionSet

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = BlendConfig()

ColorLike = Union[str, Sequence[int]]


def smoothstep(edge0: float, edge1: float, x: float) -> float:
    """Hermite interpolation between 0 and 1 over [edge0, edge1]."""
    if edge1 == edge0:
        return 0.0 if x < edge0 else 1.0
    t = min(1.0, max(0.0, (x - edge0) / (edge1 - edge0)))
    return t * t * (3.0 - 2.0 * t)


def blend_colors(base: Sequence[int], overlay: Sequence[int], alpha: float) -> RGB:
    """Linear blend of two colors, alpha = weight of the overlay."""
    alpha = min(1.0, max(0.0, alpha))
    return (
        clamp_channel(base[0] * (1 - alpha) + overlay[0] * alpha),
        clamp_channel(base[1] * (1 - alpha) + overlay[1] * alpha),
        clamp_channel(base[2] * (1 - alpha) + overlay[2] * alpha),
    )


def _ease_lightness(lightness: float, preservation: float) -> float:
    # Hermite weight: 0 at mid-gray, 1 at black and white
    t = abs(lightness - 0.5) * 2.0
    pull = t * t * (3.0 - 2.0 * t)
    softened = 0.5 + (lightness - 0.5) * (1.0 - 0.25 * pull)
    return preservation * lightness + (1.0 - preservation) * softened


def _nudge_hue(paint: HSL, base: HSL, config: BlendConfig) -> float:
    if config.hue_nudge <= 0 or base.s <= config.hue_nudge_min_saturation:
        return paint.h
    delta = (base.h - paint.h + 180.0) % 360.0 - 180.0
    return (paint.h + delta * config.hue_nudge * min(1.0, base.s)) % 360.0


def lighting_factor(normal: Sequence[int], config: Optional[BlendConfig] = None) -> float:
    """
    Lightness multiplier for a normal-map sample.

    The dot product between the surface normal and a soft light from the
    camera side goes through a logistic response, giving a factor between
    ``config.lighting_min`` and ``config.lighting_max``.
    """
    config = config or _DEFAULT_CONFIG
    nx, ny, nz = normalize_normal(normal)
    lx, ly, lz = config.light_direction
    length = math.sqrt(lx * lx + ly * ly + lz * lz)

    dot = (nx * lx + ny * ly + nz * lz) / length
    response = 1.0 / (1.0 + math.exp(-config.lighting_steepness * (dot - config.lighting_midpoint)))
    return config.lighting_min + (config.lighting_max - config.lighting_min) * response


def apply_paint_color(
    base: Sequence[int],
    paint: Sequence[int],
    normal: Optional[Sequence[int]] = None,
    config: Optional[BlendConfig] = None
) -> RGB:
    """
    Repaint a pixel while keeping its shadows and highlights.

    The result takes its hue and most of its saturation from the paint and
    its lightness from the base pixel, so photographed texture survives
    the color change.

    Args:
        base: Original pixel RGB
        paint: Paint RGB
        normal: Optional normal-map RGB at the same pixel
        config: Blend configuration

    Returns:
        Painted RGB, every channel in [0, 255]
    """
    config = config or _DEFAULT_CONFIG
    base_hsl = rgb_to_hsl(base[0], base[1], base[2])
    paint_hsl = rgb_to_hsl(paint[0], paint[1], paint[2])

    lightness = _ease_lightness(base_hsl.l, config.lightness_preservation)

    weight = config.paint_saturation_weight
    saturation = paint_hsl.s * weight + base_hsl.s * (1.0 - weight)
    saturation = min(1.0, saturation * config.saturation_boost)

    hue = _nudge_hue(paint_hsl, base_hsl, config)

    if normal is not None:
        factor = lighting_factor(normal, config)
        lightness *= factor
        saturation *= max(0.0, 1.0 - config.lighting_desaturation * abs(factor - 1.0))

    # Clamp applies to the lit lightness
    lightness = min(config.max_lightness, max(config.min_lightness, lightness))

    return hsl_to_rgb(hue, saturation, lightness)


def apply_paint_with_edge_fade(
    base: Sequence[int],
    paint: Sequence[int],
    edge_distance: float,
    normal: Optional[Sequence[int]] = None,
    config: Optional[BlendConfig] = None
) -> RGB:
    """
    Paint a pixel, fading toward the base color near the region boundary.

    ``edge_distance`` is the normalized distance from
    :func:`compute_edge_distances`; 0 at the boundary, 1 deep inside.
    """
    config = config or _DEFAULT_CONFIG
    painted = apply_paint_color(base, paint, normal, config)
    alpha = smoothstep(0.0, config.feather_width, edge_distance)
    return blend_colors(base, painted, alpha)


def painted_mask(region_set: RegionSet, region_ids: Iterable[int]) -> np.ndarray:
    """Flat boolean mask of all pixels belonging to the given regions."""
    mask = np.zeros(region_set.total_pixels, dtype=bool)
    for region_id in region_ids:
        region = region_set.region(region_id)
        if region is not None:
            mask[region.pixel_indices] = True
    return mask


def compute_edge_distances(
    region: Region,
    width: int,
    height: int,
    painted: np.ndarray,
    radius: int = 8
) -> np.ndarray:
    """
    Distance from each member pixel to the nearest unpainted pixel.

    Pixels of other painted regions count as painted, so adjacent regions
    in different colors meet without a gap. Pixels outside the image count
    as unpainted. Distances are Euclidean, searched within ``radius`` and
    normalized by it.

    Args:
        region: Region whose members are measured
        width: Image width
        height: Image height
        painted: Boolean mask (H*W or H x W) of currently painted pixels
        radius: Search radius in pixels

    Returns:
        Float array aligned with ``region.pixel_indices``, values in [0, 1]
    """
    mask = np.asarray(painted, dtype=bool).reshape(height, width)
    indices = region.pixel_indices.astype(np.int64)
    xs = indices % width
    ys = indices // width

    # Window covers every member's neighbourhood plus a ring that is always unpainted
    pad = radius + 1
    x0 = int(xs.min()) - pad
    y0 = int(ys.min()) - pad
    x1 = int(xs.max()) + pad + 1
    y1 = int(ys.max()) + pad + 1

    window = np.zeros((y1 - y0, x1 - x0), dtype=bool)
    sx0, sy0 = max(x0, 0), max(y0, 0)
    sx1, sy1 = min(x1, width), min(y1, height)
    window[sy0 - y0:sy1 - y0, sx0 - x0:sx1 - x0] = mask[sy0:sy1, sx0:sx1]
    window[ys - y0, xs - x0] = True
    window[0, :] = False
    window[-1, :] = False
    window[:, 0] = False
    window[:, -1] = False

    distances = distance_transform_edt(window)[ys - y0, xs - x0]
    return np.minimum(distances, radius) / radius


def _as_paint_rgb(color: ColorLike) -> RGB:
    if isinstance(color, str):
        return hex_to_rgb(color)
    return int(color[0]), int(color[1]), int(color[2])


def paint_image(
    image: np.ndarray,
    normal_image: Optional[np.ndarray],
    region_set: RegionSet,
    applied_colors: Mapping[int, ColorLike],
    feather: bool = False,
    config: Optional[BlendConfig] = None
) -> np.ndarray:
    """
    Render paint for every region in ``applied_colors``.

    Args:
        image: Base photograph (H, W, C)
        normal_image: Optional normal map of the same size
        region_set: Regions of the image
        applied_colors: Region id -> paint color (hex string or RGB)
        feather: Fade paint in over a band at region boundaries
        config: Blend configuration

    Returns:
        New HxWx3 uint8 image

    Raises:
        ValueError: If the image does not match the region set dimensions
        MalformedInputError: If the normal map does not match them
    """
    config = config or _DEFAULT_CONFIG
    base = as_rgb_array(image).reshape(-1, 3)
    if base.shape[0] != region_set.total_pixels:
        raise ValueError(
            f"Image has {base.shape[0]} pixels, region set expects {region_set.total_pixels}"
        )

    normals = None
    if normal_image is not None:
        normal_rgb = as_rgb_array(normal_image)
        if normal_rgb.shape[:2] != (region_set.height, region_set.width):
            raise MalformedInputError(
                f"Normal map {normal_rgb.shape[1]}x{normal_rgb.shape[0]} does not match "
                f"{region_set.width}x{region_set.height} regions"
            )
        normals = normal_rgb.reshape(-1, 3)

    result = base.copy()
    painted = painted_mask(region_set, applied_colors.keys()) if feather else None

    for region_id, color in applied_colors.items():
        region = region_set.region(region_id)
        if region is None:
            logger.warning(f"Skipping unknown region id {region_id}")
            continue

        paint = _as_paint_rgb(color)
        indices = region.pixel_indices
        distances = (
            compute_edge_distances(
                region, region_set.width, region_set.height, painted, config.edge_radius
            )
            if feather else None
        )
        memo: Dict[tuple, RGB] = {}

        for i, pixel in enumerate(indices.tolist()):
            base_rgb = tuple(base[pixel].tolist())
            normal_rgb = tuple(normals[pixel].tolist()) if normals is not None else None

            key = (base_rgb, normal_rgb)
            painted_rgb = memo.get(key)
            if painted_rgb is None:
                painted_rgb = apply_paint_color(base_rgb, paint, normal_rgb, config)
                memo[key] = painted_rgb

            if distances is not None:
                alpha = smoothstep(0.0, config.feather_width, float(distances[i]))
                painted_rgb = blend_colors(base_rgb, painted_rgb, alpha)

            result[pixel] = painted_rgb

    logger.info(f"Painted {len(applied_colors)} regions")
    return result.reshape(region_set.height, region_set.width, 3)

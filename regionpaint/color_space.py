"""Color-space conversions shared by feature extraction and paint blending."""
import math
import re
from typing import Sequence, Tuple

from regionpaint.types import HSL, RGB

_HEX_PATTERN = re.compile(r'^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$', re.IGNORECASE)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return int(math.floor(value + 0.5))


def clamp_channel(value: float) -> int:
    """Round and clamp a channel value into [0, 255]."""
    return min(255, max(0, round_half_up(value)))


def rgb_to_hsl(r: float, g: float, b: float) -> HSL:
    """
    Convert RGB (0-255) to HSL.

    Returns:
        HSL with hue in degrees [0, 360), saturation and lightness in [0, 1]
    """
    r /= 255.0
    g /= 255.0
    b /= 255.0

    max_c = max(r, g, b)
    min_c = min(r, g, b)
    l = (max_c + min_c) / 2

    h = 0.0
    s = 0.0

    if max_c != min_c:
        d = max_c - min_c
        s = d / (2 - max_c - min_c) if l > 0.5 else d / (max_c + min_c)

        if max_c == r:
            h = ((g - b) / d + (6 if g < b else 0)) / 6
        elif max_c == g:
            h = ((b - r) / d + 2) / 6
        else:
            h = ((r - g) / d + 4) / 6

    return HSL(h=(h * 360) % 360, s=s, l=l)


def _hue_to_rgb(p: float, q: float, t: float) -> float:
    if t < 0:
        t += 1
    if t > 1:
        t -= 1
    if t < 1 / 6:
        return p + (q - p) * 6 * t
    if t < 1 / 2:
        return q
    if t < 2 / 3:
        return p + (q - p) * (2 / 3 - t) * 6
    return p


def hsl_to_rgb_float(h: float, s: float, l: float) -> Tuple[float, float, float]:
    """Convert HSL to unrounded RGB channels in [0, 1]."""
    h = (h % 360) / 360

    if s == 0:
        return l, l, l

    q = l * (1 + s) if l < 0.5 else l + s - l * s
    p = 2 * l - q
    return (
        _hue_to_rgb(p, q, h + 1 / 3),
        _hue_to_rgb(p, q, h),
        _hue_to_rgb(p, q, h - 1 / 3),
    )


def hsl_to_rgb(h: float, s: float, l: float) -> RGB:
    """Convert HSL to RGB channels rounded into [0, 255]."""
    r, g, b = hsl_to_rgb_float(h, s, l)
    return clamp_channel(r * 255), clamp_channel(g * 255), clamp_channel(b * 255)


def is_hex_color(value: str) -> bool:
    """Check for a "#rrggbb" string (hash optional)."""
    return _HEX_PATTERN.match(value.strip()) is not None


def hex_to_rgb(hex_color: str) -> RGB:
    """Parse '#rrggbb' (hash optional); malformed strings give black."""
    match = _HEX_PATTERN.match(hex_color.strip())
    if not match:
        return 0, 0, 0
    return (
        int(match.group(1), 16),
        int(match.group(2), 16),
        int(match.group(3), 16),
    )


def rgb_to_hex(r: int, g: int, b: int) -> str:
    """Format RGB channels as a lowercase '#rrggbb' string."""
    return '#' + ''.join(f'{clamp_channel(c):02x}' for c in (r, g, b))


def normalize_normal(rgb: Sequence[float]) -> Tuple[float, float, float]:
    """
    Decode a normal-map RGB sample to a unit vector.

    Normal maps encode XYZ as RGB, each channel mapped from [0, 255] to
    [-1, 1]. A zero-length vector maps to the camera axis (0, 0, 1).
    """
    x = rgb[0] / 255 * 2 - 1
    y = rgb[1] / 255 * 2 - 1
    z = rgb[2] / 255 * 2 - 1

    length = math.sqrt(x * x + y * y + z * z)
    if length == 0:
        return 0.0, 0.0, 1.0

    return x / length, y / length, z / length

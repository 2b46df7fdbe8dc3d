"""Luminance-weighted RGB distance and HSL helpers.

Distances weight each channel by its Rec. 709 luminance coefficient, so a
step in green counts far more than the same step in blue.
"""

from __future__ import annotations

import math

import numpy as np

PR = 0.2126
PG = 0.7152
PB = 0.0722

MAX_DIST = math.sqrt(PR * 255 * 255 + PG * 255 * 255 + PB * 255 * 255)

# Hue group assigned to colors with R == G == B.
GRAY_GROUP = -1

RGB = tuple[int, int, int]


def color_key(r: int, g: int, b: int) -> int:
    """Pack an RGB triple into a 24-bit integer key."""
    return r + g * 256 + b * 65536


def key_to_rgb(key: int) -> RGB:
    """Unpack a key produced by color_key."""
    b, rem = divmod(int(key), 65536)
    g, r = divmod(rem, 256)
    return (r, g, b)


def keys_of(rgb: np.ndarray) -> np.ndarray:
    """Vectorised color_key over an (..., 3) array."""
    rgb = rgb.astype(np.int64)
    return rgb[..., 0] + rgb[..., 1] * 256 + rgb[..., 2] * 65536


def dist_sq(r0: float, g0: float, b0: float, r1: float, g1: float, b1: float) -> float:
    """Weighted squared distance, used for nearest-color search."""
    rd = r1 - r0
    gd = g1 - g0
    bd = b1 - b0
    return PR * rd * rd + PG * gd * gd + PB * bd * bd


def color_dist(rgb0: RGB, rgb1: RGB) -> float:
    """Weighted distance normalised to [0, 1]."""
    return math.sqrt(dist_sq(*rgb0, *rgb1)) / MAX_DIST


def color_dist_many(rgb: RGB, candidates: np.ndarray) -> np.ndarray:
    """color_dist from one color to every row of an (N, 3) array."""
    diff = candidates.astype(np.float64) - np.asarray(rgb, dtype=np.float64)
    sq = PR * diff[:, 0] ** 2 + PG * diff[:, 1] ** 2 + PB * diff[:, 2] ** 2
    return np.sqrt(sq) / MAX_DIST


def luminance(r: float, g: float, b: float) -> float:
    """Weighted luminance of channels already scaled to [0, 1]."""
    return math.sqrt(PR * r * r + PG * g * g + PB * b * b)


def rgb_to_hsl(r: int, g: int, b: int) -> tuple[float, float, float]:
    """Convert 8-bit RGB to (hue, saturation, luminance), all in [0, 1].

    Hue and saturation follow the usual HSL definitions. The lightness slot
    carries the weighted luminance instead of (max + min) / 2.
    """
    rf, gf, bf = r / 255, g / 255, b / 255
    hi = max(rf, gf, bf)
    lo = min(rf, gf, bf)
    light = (hi + lo) / 2
    if hi == lo:
        h = s = 0.0
    else:
        d = hi - lo
        s = d / (2 - hi - lo) if light > 0.5 else d / (hi + lo)
        if hi == rf:
            h = (gf - bf) / d + (6 if gf < bf else 0)
        elif hi == gf:
            h = (bf - rf) / d + 2
        else:
            h = (rf - gf) / d + 4
        h /= 6
    return h, s, luminance(rf, gf, bf)


def hue_group(hue: float, groups: int) -> int:
    """Bucket a hue in [0, 1] into one of `groups` equal slices.

    Slice 0 is centred on hue 0 and wraps around to include hues just
    below 1.0.
    """
    seg = 1 / groups
    half = seg / 2
    if hue >= 1 - half or hue <= half:
        return 0
    for i in range(1, groups):
        mid = i * seg
        if mid - half <= hue <= mid + half:
            return i
    return 0


def hue_group_of(r: int, g: int, b: int, groups: int) -> int:
    if r == g == b:
        return GRAY_GROUP
    return hue_group(rgb_to_hsl(r, g, b)[0], groups)

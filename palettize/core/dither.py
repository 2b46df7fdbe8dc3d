"""Error-diffusion and ordered dithering onto a fixed palette."""

from __future__ import annotations

import logging
import math

import numpy as np

from palettize.core.config import DitherKernel, parse_kernel
from palettize.core.errors import UnknownKernelError
from palettize.core.image import Image
from palettize.core.metric import color_dist
from palettize.core.palette import NearestColorIndex

logger = logging.getLogger(__name__)

# (weight, dx, dy); dx is mirrored on right-to-left rows.
KERNELS: dict[DitherKernel, tuple[tuple[float, int, int], ...]] = {
    DitherKernel.FLOYD_STEINBERG: (
        (7 / 16, 1, 0),
        (3 / 16, -1, 1),
        (5 / 16, 0, 1),
        (1 / 16, 1, 1),
    ),
    DitherKernel.FALSE_FLOYD_STEINBERG: (
        (3 / 8, 1, 0),
        (3 / 8, 0, 1),
        (2 / 8, 1, 1),
    ),
    DitherKernel.STUCKI: (
        (8 / 42, 1, 0),
        (4 / 42, 2, 0),
        (2 / 42, -2, 1),
        (4 / 42, -1, 1),
        (8 / 42, 0, 1),
        (4 / 42, 1, 1),
        (2 / 42, 2, 1),
        (1 / 42, -2, 2),
        (2 / 42, -1, 2),
        (4 / 42, 0, 2),
        (2 / 42, 1, 2),
        (1 / 42, 2, 2),
    ),
    DitherKernel.ATKINSON: (
        (1 / 8, 1, 0),
        (1 / 8, 2, 0),
        (1 / 8, -1, 1),
        (1 / 8, 0, 1),
        (1 / 8, 1, 1),
        (1 / 8, 0, 2),
    ),
    DitherKernel.JARVIS: (
        (7 / 48, 1, 0),
        (5 / 48, 2, 0),
        (3 / 48, -2, 1),
        (5 / 48, -1, 1),
        (7 / 48, 0, 1),
        (5 / 48, 1, 1),
        (3 / 48, 2, 1),
        (1 / 48, -2, 2),
        (3 / 48, -1, 2),
        (5 / 48, 0, 2),
        (3 / 48, 1, 2),
        (1 / 48, 2, 2),
    ),
    DitherKernel.BURKES: (
        (8 / 32, 1, 0),
        (4 / 32, 2, 0),
        (2 / 32, -2, 1),
        (4 / 32, -1, 1),
        (8 / 32, 0, 1),
        (4 / 32, 1, 1),
        (2 / 32, 2, 1),
    ),
    DitherKernel.SIERRA: (
        (5 / 32, 1, 0),
        (3 / 32, 2, 0),
        (2 / 32, -2, 1),
        (4 / 32, -1, 1),
        (5 / 32, 0, 1),
        (4 / 32, 1, 1),
        (2 / 32, 2, 1),
        (2 / 32, -1, 2),
        (3 / 32, 0, 2),
        (2 / 32, 1, 2),
    ),
    DitherKernel.TWO_SIERRA: (
        (4 / 16, 1, 0),
        (3 / 16, 2, 0),
        (1 / 16, -2, 1),
        (2 / 16, -1, 1),
        (3 / 16, 0, 1),
        (2 / 16, 1, 1),
        (1 / 16, 2, 1),
    ),
    DitherKernel.SIERRA_LITE: (
        (2 / 4, 1, 0),
        (1 / 4, -1, 1),
        (1 / 4, 0, 1),
    ),
}

THRESHOLD_MAPS: dict[DitherKernel, tuple[tuple[int, ...], ...]] = {
    DitherKernel.ORDERED2: (
        (1, 3),
        (4, 2),
    ),
    DitherKernel.ORDERED3: (
        (3, 7, 4),
        (6, 1, 9),
        (2, 8, 5),
    ),
    DitherKernel.ORDERED4: (
        (1, 9, 3, 11),
        (13, 5, 15, 7),
        (4, 12, 2, 10),
        (16, 8, 14, 6),
    ),
    DitherKernel.ORDERED8: (
        (1, 49, 13, 61, 4, 52, 16, 64),
        (33, 17, 45, 29, 36, 20, 48, 32),
        (9, 57, 5, 53, 12, 60, 8, 56),
        (41, 25, 37, 21, 44, 28, 40, 24),
        (3, 51, 15, 63, 2, 50, 14, 62),
        (35, 19, 47, 31, 34, 18, 46, 30),
        (11, 59, 7, 55, 10, 58, 6, 54),
        (43, 27, 39, 23, 42, 26, 38, 22),
    ),
}


def clamp8(value: float) -> int:
    """Floor and clamp to the byte range."""
    if value < 0:
        return 0
    if value > 255:
        return 255
    return math.floor(value)


def _diffusion_kernel(name: DitherKernel | str | None) -> tuple[tuple[float, int, int], ...]:
    kernel = parse_kernel(name)
    if kernel is None or kernel not in KERNELS:
        raise UnknownKernelError(f"Unknown dithering kernel: {name}")
    return KERNELS[kernel]


def _threshold_map(name: DitherKernel | str | None) -> np.ndarray:
    kernel = parse_kernel(name)
    if kernel is None or kernel not in THRESHOLD_MAPS:
        raise UnknownKernelError(f"Unknown dithering kernel: {name}")
    return np.array(THRESHOLD_MAPS[kernel], dtype=np.float64)


def error_diffusion(
    image: Image,
    index: NearestColorIndex,
    kernel: DitherKernel | str,
    serpentine: bool = False,
    delta: float = 0.0,
) -> Image:
    """Dither an image by pushing each pixel's quantization error forward.

    Pixels are visited row by row; with `serpentine` odd rows run right to
    left and the kernel is mirrored so error always lands on pixels not yet
    visited. When `delta` > 0, pixels whose chosen color is within `delta`
    (normalised distance) of the working value do not propagate error.

    Returns a new image; `image` is left untouched.
    """
    ds = _diffusion_kernel(kernel)
    w, h = image.width, image.height
    work = image.pixels[..., :3].astype(np.int32).tolist()
    alpha = image.pixels[..., 3].tolist()
    out = np.zeros((h, w, 4), dtype=np.uint8)
    pal = index.palette
    logger.debug("error diffusion %dx%d kernel=%s serpentine=%s", w, h, kernel, serpentine)

    for y in range(h):
        rtl = serpentine and y % 2 == 1
        xs = range(w - 1, -1, -1) if rtl else range(w)
        direction = -1 if rtl else 1
        row = work[y]
        for x in xs:
            a = alpha[y][x]
            if a == 0:
                continue
            r1, g1, b1 = row[x]
            r2, g2, b2 = pal[index.nearest_index(r1, g1, b1)]
            out[y, x] = (r2, g2, b2, a)

            if delta and color_dist((r1, g1, b1), (r2, g2, b2)) < delta:
                continue

            er, eg, eb = r1 - r2, g1 - g2, b1 - b2
            for weight, dx, dy in ds:
                nx = x + dx * direction
                ny = y + dy
                if 0 <= nx < w and ny < h:
                    px = work[ny][nx]
                    px[0] = clamp8(px[0] + er * weight)
                    px[1] = clamp8(px[1] + eg * weight)
                    px[2] = clamp8(px[2] + eb * weight)

    return Image(w, h, out)


def channel_depth(palette_rgb: np.ndarray, cells: int) -> np.ndarray:
    """Per-channel step size for ordered dithering.

    The largest gap between consecutive palette values in each channel
    (at least 1), divided by the number of threshold map cells.
    """
    depth = np.ones(3, dtype=np.float64)
    for c in range(3):
        values = np.sort(palette_rgb[:, c].astype(np.float64))
        if values.size > 1:
            depth[c] = max(1.0, float(np.diff(values).max()))
    return depth / cells


def ordered_dither(image: Image, index: NearestColorIndex, kernel: DitherKernel | str) -> Image:
    """Perturb each pixel by a tiled threshold map, then map to the palette.

    Each output pixel depends only on its own value and position. The map
    phase is anchored so pixel (0, 0) reads map[0][0]; schemes that advance
    the map counters before the first read are shifted one cell in x and y.
    """
    tmap = _threshold_map(kernel)
    map_h, map_w = tmap.shape
    cells = map_w * map_h
    depth = channel_depth(index.palette.as_array(), cells)

    w, h = image.width, image.height
    reps = (h // map_h + 1, w // map_w + 1)
    offsets = (np.tile(tmap, reps)[:h, :w] - cells / 3)[..., None] * depth

    src = image.pixels
    perturbed = np.clip(np.floor(src[..., :3].astype(np.float64) + offsets), 0, 255)
    perturbed = perturbed.astype(np.uint8).reshape(-1, 3)

    out = np.zeros((h, w, 4), dtype=np.uint8)
    flat_src = src.reshape(-1, 4)
    opaque = flat_src[:, 3] != 0
    if np.any(opaque):
        slots = index.nearest_indices(perturbed[opaque])
        dst = out.reshape(-1, 4)
        dst[opaque, :3] = index.palette.slot_table()[slots]
        dst[opaque, 3] = flat_src[opaque, 3]
    return Image(w, h, out)

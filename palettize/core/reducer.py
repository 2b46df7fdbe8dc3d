"""Plain nearest-color remapping, without dithering."""

from __future__ import annotations

import numpy as np

from palettize.core.image import Image
from palettize.core.metric import keys_of
from palettize.core.palette import NearestColorIndex, Palette


def reduce_image(image: Image, index: NearestColorIndex) -> Image:
    """Map every opaque pixel to its nearest palette color.

    Transparent pixels become (0, 0, 0, 0); opaque ones keep their alpha.
    """
    out = np.zeros(image.pixels.shape, dtype=np.uint8)
    flat = image.pixels.reshape(-1, 4)
    opaque = flat[:, 3] != 0
    if np.any(opaque):
        slots = index.nearest_indices(flat[opaque, :3])
        lut = index.palette.slot_table()
        dst = out.reshape(-1, 4)
        dst[opaque, :3] = lut[slots]
        dst[opaque, 3] = flat[opaque, 3]
    return Image(image.width, image.height, out)


def image_to_indices(image: Image, palette: Palette) -> list[int | None]:
    """Translate a palette-colored image into slot indices.

    Transparent pixels, and any color not in the palette, give None.
    """
    flat = image.pixels.reshape(-1, 4)
    keys = keys_of(flat[:, :3]).tolist()
    alpha = flat[:, 3].tolist()
    return [
        palette.index_of(key) if a != 0 else None
        for key, a in zip(keys, alpha)
    ]


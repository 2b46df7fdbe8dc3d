"""Quantizer engine: sample images, lock a palette, remap images onto it.

Typical use::

    q = Quantizer(QuantizerConfig(colors=16))
    q.sample(img)
    out = q.reduce(img, kernel="FloydSteinberg")

The palette is built lazily on the first reduce call (or explicitly with
build_palette). Once built the engine is locked and refuses new samples.
An instance is not safe to share between threads without external locking.
"""

from __future__ import annotations

import logging

from palettize.core.builder import PaletteBuilder
from palettize.core.config import DitherKernel, QuantizerConfig, parse_kernel
from palettize.core.dither import error_diffusion, ordered_dither
from palettize.core.errors import AlreadyLockedError, EmptyPaletteError
from palettize.core.histogram import Histogram, HueStats
from palettize.core.image import Image
from palettize.core.metric import RGB
from palettize.core.palette import NearestColorIndex, Palette
from palettize.core.reducer import image_to_indices, reduce_image

logger = logging.getLogger(__name__)

_DEFAULT = object()


class Quantizer:
    def __init__(self, config: QuantizerConfig | None = None) -> None:
        self.config = config or QuantizerConfig()
        cfg = self.config
        hue_stats = HueStats(cfg.hue_groups, cfg.min_hue_cols) if cfg.min_hue_cols else None
        self.histogram = Histogram(
            method=cfg.method,
            box_size=cfg.box_size,
            box_pxls=cfg.box_pxls,
            sample_bits=cfg.sample_bits,
            hue_stats=hue_stats,
        )
        self._palette = Palette(cfg.palette or ())
        self.index = NearestColorIndex(self._palette, cfg.cache_limit)
        self._locked = False
        logger.debug(
            "quantizer init colors=%d method=%s box=%dx%d box_pxls=%d kernel=%s",
            cfg.colors, cfg.method.value, cfg.box_size[0], cfg.box_size[1],
            cfg.box_pxls, cfg.dither_kernel.value if cfg.dither_kernel else None,
        )

    @property
    def locked(self) -> bool:
        return self._locked

    def sample(self, image: Image) -> None:
        """Add an image's colors to the histogram."""
        if self._locked:
            raise AlreadyLockedError(
                "Cannot sample additional images, palette already assembled."
            )
        self.histogram.accumulate(image)

    def build_palette(self, no_sort: bool = False) -> None:
        """Reduce the histogram to a palette and lock the engine.

        Does nothing if already locked. Raises EmptyHistogramError when there
        is nothing to build from.
        """
        if self._locked:
            return
        PaletteBuilder(self.config, self.histogram, self._palette, self.index).build(no_sort)
        self._locked = True

    def _ensure_palette(self) -> None:
        if not self._locked:
            if not len(self.histogram) and not len(self._palette):
                raise EmptyPaletteError("Palette is empty; call sample() before reducing.")
            self.build_palette()
        if not len(self._palette):
            raise EmptyPaletteError("Palette is empty.")

    def palette(self) -> list[RGB | None]:
        """The locked palette, building it if needed.

        Indexed like reduce(..., ret="index"): a fixed palette pruned
        without re-indexing keeps None in its dropped slots.
        """
        self.build_palette()
        return list(self._palette.slots)

    def palette_rgba(self) -> bytes:
        """The palette as a flat RGBA byte string, one 4-byte entry per slot.

        Live colors have alpha 255; dropped slots are all zero.
        """
        out = bytearray()
        for rgb in self.palette():
            out.extend((*rgb, 255) if rgb is not None else (0, 0, 0, 0))
        return bytes(out)

    def nearest_index(self, r: int, g: int, b: int) -> int | None:
        return self.index.nearest_index(r, g, b)

    def nearest_color(self, r: int, g: int, b: int) -> RGB | None:
        return self.index.nearest_color(r, g, b)

    def reduce(
        self,
        image: Image,
        ret: str = "image",
        kernel: DitherKernel | str | None | object = _DEFAULT,
        serpentine: bool | None = None,
    ) -> Image | list[int | None]:
        """Remap an image, dithering with the configured kernel by default.

        `kernel` overrides the configured one; pass "None" to disable
        dithering. `ret` is "image" for an Image or "index" for a list of
        palette indices (None for transparent pixels).
        """
        if kernel is _DEFAULT:
            kernel = self.config.dither_kernel
        kernel = parse_kernel(kernel)
        if serpentine is None:
            serpentine = self.config.serpentine

        if ret == "index":
            return self.reduce_to_index(image, kernel, serpentine)
        if ret != "image":
            raise ValueError(f"Unsupported return type: {ret}")
        return self._remap(image, kernel, serpentine)

    def _remap(self, image: Image, kernel: DitherKernel | None, serpentine: bool) -> Image:
        if kernel is None:
            return self.reduce_image(image)
        if kernel.is_ordered:
            return self.dither_ordered(image, kernel)
        return self.dither(image, kernel, serpentine)

    def reduce_image(self, image: Image) -> Image:
        self._ensure_palette()
        logger.debug("reduce image %dx%d", image.width, image.height)
        return reduce_image(image, self.index)

    def reduce_to_index(
        self,
        image: Image,
        kernel: DitherKernel | str | None = None,
        serpentine: bool = False,
    ) -> list[int | None]:
        out = self._remap(image, parse_kernel(kernel), serpentine)
        return image_to_indices(out, self._palette)

    def dither(
        self,
        image: Image,
        kernel: DitherKernel | str | None = None,
        serpentine: bool | None = None,
    ) -> Image:
        """Error-diffusion dither; kernel and serpentine default to the config."""
        kernel = kernel or self.config.dither_kernel
        if serpentine is None:
            serpentine = self.config.serpentine
        self._ensure_palette()
        return error_diffusion(image, self.index, kernel, serpentine, self.config.dither_delta)

    def dither_ordered(self, image: Image, kernel: DitherKernel | str) -> Image:
        self._ensure_palette()
        return ordered_dither(image, self.index, kernel)

"""Color frequency statistics gathered from sample images.

Two strategies are supported:

- global: every opaque pixel counts towards its color.
- spatial: the image is cut into boxes and a color only enters the global
  histogram once it is locally frequent within some box. This drops noise
  while keeping small flat regions (icons, UI chrome) that would never win a
  global popularity contest.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from palettize.core.config import Method
from palettize.core.image import Image
from palettize.core.metric import GRAY_GROUP, hue_group_of, key_to_rgb, keys_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Box:
    x: int
    y: int
    w: int
    h: int


def make_boxes(width: int, height: int, box_w: int, box_h: int) -> Iterator[Box]:
    """Partition width x height into a row-major grid of boxes.

    Boxes on the right and bottom edges are truncated.
    """
    for y in range(0, height, box_h):
        for x in range(0, width, box_w):
            yield Box(x, y, min(box_w, width - x), min(box_h, height - y))


@dataclass
class _HueGroupStats:
    num: int = 0
    cols: list[int] = field(default_factory=list)


class HueStats:
    """Track how often each hue group occurs while sampling.

    Each group remembers the first `min_cols` colors it saw. Groups that end
    up with no more than `min_cols` pixels are considered starved and their
    remembered colors are injected back so the palette keeps some trace of
    rare hues.
    """

    def __init__(self, num_groups: int, min_cols: int) -> None:
        self.num_groups = num_groups
        self.min_cols = min_cols
        self.stats = {g: _HueGroupStats() for g in range(GRAY_GROUP, num_groups)}

    def check(self, keys: np.ndarray) -> None:
        """Record a 1D array of color keys in scan order."""
        if keys.size == 0:
            return
        uniq, inverse = np.unique(keys, return_inverse=True)
        uniq_groups = np.array(
            [hue_group_of(*key_to_rgb(k), self.num_groups) for k in uniq],
            dtype=np.int64,
        )
        groups = uniq_groups[inverse]
        for g in np.unique(uniq_groups):
            gr = self.stats[int(g)]
            positions = np.flatnonzero(groups == g)
            room = self.min_cols - gr.num
            if room > 0:
                gr.cols.extend(int(k) for k in keys[positions[:room]])
            gr.num += int(positions.size)

    def starved_keys(self) -> list[int]:
        """Remembered keys of every starved group, in group order."""
        out: list[int] = []
        for g in range(GRAY_GROUP, self.num_groups):
            gr = self.stats[g]
            if gr.num <= self.min_cols:
                out.extend(gr.cols)
        return out

    def inject_counts(self, counts: dict[int, int]) -> None:
        for key in self.starved_keys():
            counts[key] = counts.get(key, 0) + 1

    def inject_keys(self, keys: list[int]) -> list[int]:
        seen = set(keys)
        out = list(keys)
        for key in self.starved_keys():
            if key not in seen:
                seen.add(key)
                out.append(key)
        return out


class Histogram:
    """Accumulates ColorKey -> count over any number of sample images."""

    def __init__(
        self,
        method: Method = Method.SPATIAL,
        box_size: tuple[int, int] = (64, 64),
        box_pxls: int = 2,
        sample_bits: int = 8,
        hue_stats: HueStats | None = None,
    ) -> None:
        self.method = Method(method)
        self.box_size = box_size
        self.box_pxls = box_pxls
        self.shift = 8 - sample_bits
        self.hue_stats = hue_stats
        self.counts: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self.counts)

    def __contains__(self, key: int) -> bool:
        return key in self.counts

    def _opaque_keys(self, pixels: np.ndarray) -> np.ndarray:
        """Keys of the opaque pixels of an (..., 4) block, in scan order."""
        flat = pixels.reshape(-1, 4)
        rgb = flat[flat[:, 3] != 0, :3]
        if self.shift > 0:
            rgb = (rgb >> self.shift) << self.shift
        return keys_of(rgb)

    def accumulate(self, image: Image) -> None:
        logger.debug(
            "sample %dx%d method=%s", image.width, image.height, self.method.value
        )
        if self.method == Method.GLOBAL:
            self._accumulate_global(image)
        else:
            self._accumulate_spatial(image)
        logger.debug("sample done, %d colors", len(self.counts))

    def _accumulate_global(self, image: Image) -> None:
        keys = self._opaque_keys(image.pixels)
        if self.hue_stats:
            self.hue_stats.check(keys)
        uniq, n = np.unique(keys, return_counts=True)
        counts = self.counts
        for key, cnt in zip(uniq.tolist(), n.tolist()):
            counts[key] = counts.get(key, 0) + cnt

    def _accumulate_spatial(self, image: Image) -> None:
        box_w, box_h = self.box_size
        area = box_w * box_h
        counts = self.counts
        for box in make_boxes(image.width, image.height, box_w, box_h):
            effc = max(math.floor((box.w * box.h) / area + 0.5) * self.box_pxls, 2)
            block = image.pixels[box.y : box.y + box.h, box.x : box.x + box.w]
            keys = self._opaque_keys(block)
            if self.hue_stats:
                self.hue_stats.check(keys)
            uniq, n = np.unique(keys, return_counts=True)
            for key, cnt in zip(uniq.tolist(), n.tolist()):
                # Known colors keep counting; new ones must reach effc in this box.
                if key in counts:
                    counts[key] += cnt
                elif cnt >= effc:
                    counts[key] = cnt
        if self.hue_stats:
            self.hue_stats.inject_counts(counts)

    def sorted_keys(self) -> list[int]:
        """Keys by descending count, ties by ascending key."""
        counts = self.counts
        return sorted(counts, key=lambda k: (-counts[k], k))

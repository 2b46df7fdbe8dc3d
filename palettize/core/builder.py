"""Histogram to palette reduction.

Candidates are histogram colors sorted by popularity. A fresh palette is
built by repeatedly merging candidates that sit closer than a growing
distance threshold until at most `colors` remain. A pre-supplied palette
that is too large is instead pruned down to the entries the sampled colors
actually map to.
"""

from __future__ import annotations

import logging

import numpy as np

from palettize.core.config import Method, QuantizerConfig
from palettize.core.errors import EmptyHistogramError
from palettize.core.histogram import Histogram
from palettize.core.metric import RGB, color_dist_many, key_to_rgb
from palettize.core.palette import NearestColorIndex, Palette

logger = logging.getLogger(__name__)


def select_candidates(histogram: Histogram, method: Method, init_colors: int) -> list[int]:
    """Pick the candidate keys the reduction starts from.

    The global method keeps the `init_colors` most frequent keys plus any
    keys tied with the last one kept.
    """
    keys = histogram.sorted_keys()
    if method != Method.GLOBAL or len(keys) <= init_colors:
        return keys

    counts = histogram.counts
    freq = counts[keys[init_colors - 1]]
    pos = init_colors
    while pos < len(keys) and counts[keys[pos]] == freq:
        pos += 1
    return keys[:pos]


def merge_similar(candidates: list[RGB], colors: int, init_dist: float, dist_incr: float) -> list[RGB]:
    """Merge nearby colors until no more than `colors` remain.

    Each pass walks the surviving colors in order and removes every later
    color closer than the current threshold. The threshold grows by
    `init_dist` while far from the target and by `dist_incr` once within
    three times of it. If the last pass overshoots, its most distinct
    removals are put back.
    """
    n = len(candidates)
    if n <= colors:
        return list(candidates)

    rgb = np.array(candidates, dtype=np.float64)
    alive = np.ones(n, dtype=bool)
    remaining = n
    thold = init_dist
    removed: list[tuple[int, float]] = []

    while remaining > colors:
        removed = []
        logger.debug("merge pass remaining=%d thold=%.4f", remaining, thold)
        for i in range(n):
            if not alive[i]:
                continue
            dists = color_dist_many(candidates[i], rgb[i + 1 :])
            hits = np.flatnonzero(alive[i + 1 :] & (dists < thold))
            for off in hits.tolist():
                j = i + 1 + off
                alive[j] = False
                removed.append((j, float(dists[off])))
            remaining -= hits.size
        thold += init_dist if remaining > colors * 3 else dist_incr

    if remaining < colors:
        # Restore the removals that were furthest from their survivor.
        removed.sort(key=lambda item: -item[1])
        for j, _dist in removed[: colors - remaining]:
            alive[j] = True

    return [candidates[i] for i in range(n) if alive[i]]


class PaletteBuilder:
    """Turns a histogram into a locked palette."""

    def __init__(
        self,
        config: QuantizerConfig,
        histogram: Histogram,
        palette: Palette,
        index: NearestColorIndex,
    ) -> None:
        self.config = config
        self.histogram = histogram
        self.palette = palette
        self.index = index

    def build(self, no_sort: bool = False) -> None:
        cfg = self.config
        if 0 < len(self.palette) <= cfg.colors:
            logger.debug("build skipped, fixed palette of %d fits", len(self.palette))
            return

        keys = select_candidates(self.histogram, cfg.method, cfg.init_colors)
        if cfg.method == Method.GLOBAL and self.histogram.hue_stats:
            keys = self.histogram.hue_stats.inject_keys(keys)
        if not keys:
            raise EmptyHistogramError("Nothing has been sampled, palette cannot be built.")

        logger.debug(
            "build start candidates=%d colors=%d existing=%d",
            len(keys), cfg.colors, len(self.palette),
        )
        candidates = [key_to_rgb(k) for k in keys]
        if len(self.palette) > cfg.colors:
            self._prune_to_usage(candidates)
        else:
            merged = merge_similar(candidates, cfg.colors, cfg.init_dist, cfg.dist_incr)
            self.palette.replace(merged)
            self.index.reset()

        if not no_sort and cfg.reindex_allowed:
            self.palette.sort_perceptual(cfg.hue_groups)
            self.index.reset()
        logger.debug("build done palette=%d", len(self.palette))

    def _prune_to_usage(self, candidates: list[RGB]) -> None:
        """Keep the first `colors` distinct slots the candidates map to."""
        target = self.config.colors
        keep: set[int] = set()
        for rgb in candidates:
            idx = self.index.nearest_index(*rgb)
            keep.add(idx)
            if len(keep) == target:
                break
        self.palette.prune(keep, compact=self.config.reindex_allowed)
        self.index.reset()

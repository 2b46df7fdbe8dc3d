"""Palette storage and nearest-color lookup.

A Palette is a list of slots, each an RGB triple or None once pruned, plus a
reverse index from ColorKey to slot. The reverse index is rebuilt from
scratch on every structural change, so slot numbers are only stable between
mutations.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Sequence

import numpy as np

from palettize.core.metric import RGB, color_key, dist_sq, hue_group_of, rgb_to_hsl
from palettize.utils.cache import MemoCache


class Palette:
    def __init__(self, colors: Iterable[Sequence[int]] = ()) -> None:
        self._slots: list[RGB | None] = [_as_rgb(c) for c in colors]
        self._keyidx: dict[int, int] = {}
        self._rebuild_index()

    def _rebuild_index(self) -> None:
        self._keyidx = {}
        for i, rgb in enumerate(self._slots):
            if rgb is not None:
                self._keyidx.setdefault(color_key(*rgb), i)

    def __len__(self) -> int:
        """Number of live (unpruned) colors."""
        return sum(1 for rgb in self._slots if rgb is not None)

    def __getitem__(self, idx: int) -> RGB | None:
        return self._slots[idx]

    def __iter__(self) -> Iterator[RGB]:
        return iter(self.colors)

    @property
    def slots(self) -> list[RGB | None]:
        """Slot list including pruned holes. Treat as read-only."""
        return self._slots

    @property
    def colors(self) -> list[RGB]:
        """Live colors in slot order."""
        return [rgb for rgb in self._slots if rgb is not None]

    def index_of(self, key: int) -> int | None:
        """Exact ReverseIndex lookup."""
        return self._keyidx.get(key)

    def as_array(self) -> np.ndarray:
        """Live colors as an (N, 3) uint8 array."""
        return np.array(self.colors, dtype=np.uint8).reshape(-1, 3)

    def slot_table(self) -> np.ndarray:
        """(slots, 3) uint8 table indexed by slot, zeros in pruned slots."""
        table = np.zeros((max(len(self._slots), 1), 3), dtype=np.uint8)
        for i, rgb in enumerate(self._slots):
            if rgb is not None:
                table[i] = rgb
        return table

    def replace(self, colors: Iterable[Sequence[int]]) -> None:
        self._slots = [_as_rgb(c) for c in colors]
        self._rebuild_index()

    def prune(self, keep: set[int], compact: bool) -> None:
        """Drop every slot not in `keep`.

        With `compact` the remaining colors are renumbered from 0, otherwise
        the dropped slots are left as holes.
        """
        self._slots = [rgb if i in keep else None for i, rgb in enumerate(self._slots)]
        if compact:
            self._slots = [rgb for rgb in self._slots if rgb is not None]
        self._rebuild_index()

    def sort_perceptual(self, hue_groups: int) -> None:
        """Order by hue group, then luminance, then saturation, all descending.

        Grays sit in a group below every hue and therefore end up last.
        """
        live = self.colors

        def sort_key(rgb: RGB) -> tuple[int, float, float]:
            _h, s, lum = rgb_to_hsl(*rgb)
            return (-hue_group_of(*rgb, hue_groups), -round(lum, 2), -round(s, 2))

        self._slots = sorted(live, key=sort_key)
        self._rebuild_index()


def _as_rgb(color: Sequence[int]) -> RGB:
    r, g, b = (int(c) for c in color[:3])
    return (r, g, b)


class NearestColorIndex:
    """Nearest-palette lookup with a bounded memo of resolved misses.

    The memo belongs to this instance; it is cleared whenever the palette
    changes and never evicts while the palette is stable.
    """

    def __init__(self, palette: Palette, cache_limit: int = 200_000) -> None:
        self.palette = palette
        self.cache: MemoCache[int, int] = MemoCache(cache_limit)

    def reset(self) -> None:
        self.cache.clear()

    def nearest_index(self, r: int, g: int, b: int) -> int | None:
        key = color_key(r, g, b)
        idx = self.palette.index_of(key)
        if idx is not None:
            return idx
        idx = self.cache.get(key)
        if idx is not None:
            return idx

        best = None
        best_dist = float("inf")
        for i, rgb in enumerate(self.palette.slots):
            if rgb is None:
                continue
            d = dist_sq(r, g, b, *rgb)
            if d < best_dist:
                best_dist = d
                best = i

        if best is not None:
            self.cache.put(key, best)
        return best

    def nearest_color(self, r: int, g: int, b: int) -> RGB | None:
        idx = self.nearest_index(r, g, b)
        if idx is None:
            return None
        return self.palette[idx]

    def nearest_indices(self, rgb: np.ndarray) -> np.ndarray:
        """Resolve an (N, 3) array of colors to slot indices.

        Each distinct color goes through nearest_index once.
        """
        if rgb.shape[0] == 0:
            return np.zeros(0, dtype=np.int64)
        uniq, inverse = np.unique(rgb.reshape(-1, 3), axis=0, return_inverse=True)
        resolved = np.array(
            [self.nearest_index(int(r), int(g), int(b)) for r, g, b in uniq],
            dtype=np.int64,
        )
        return resolved[inverse.reshape(-1)]

"""Quantizer configuration and option enums."""

from __future__ import annotations

import hashlib
import operator
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Mapping

from palettize.core.errors import UnknownKernelError
from palettize.core.metric import RGB

_INT_FIELDS = (
    "colors",
    "init_colors",
    "hue_groups",
    "min_hue_cols",
    "box_pxls",
    "sample_bits",
    "cache_limit",
)


def _as_int(name: str, value: Any) -> int:
    """Accept ints (and numpy integers), reject floats, bools and strings."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    try:
        return operator.index(value)
    except TypeError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


class Method(str, Enum):
    GLOBAL = "global"  # top colors by global population
    SPATIAL = "spatial"  # population threshold within boxes


class DitherKernel(str, Enum):
    FLOYD_STEINBERG = "FloydSteinberg"
    FALSE_FLOYD_STEINBERG = "FalseFloydSteinberg"
    STUCKI = "Stucki"
    ATKINSON = "Atkinson"
    JARVIS = "Jarvis"
    BURKES = "Burkes"
    SIERRA = "Sierra"
    TWO_SIERRA = "TwoSierra"
    SIERRA_LITE = "SierraLite"
    ORDERED2 = "Ordered2"
    ORDERED3 = "Ordered3"
    ORDERED4 = "Ordered4"
    ORDERED8 = "Ordered8"

    @property
    def is_ordered(self) -> bool:
        return self.value.startswith("Ordered")


def parse_kernel(name: DitherKernel | str | None) -> DitherKernel | None:
    """Resolve a kernel name.

    None and the string "None" both mean no dithering.
    """
    if name is None or name == "None" or name == "":
        return None
    if isinstance(name, DitherKernel):
        return name
    try:
        return DitherKernel(name)
    except ValueError:
        raise UnknownKernelError(f"Unknown dithering kernel: {name}") from None


@dataclass(frozen=True)
class QuantizerConfig:
    """Options for a Quantizer. Immutable and validated on construction."""

    method: Method = Method.SPATIAL
    colors: int = 256  # 1 to 256
    init_colors: int = 4096
    init_dist: float = 0.01
    dist_incr: float = 0.005
    hue_groups: int = 10
    min_hue_cols: int = 0  # 0 disables hue retention
    box_size: tuple[int, int] = (64, 64)
    box_pxls: int = 2
    sample_bits: int = 8  # 1 to 8
    dither_kernel: DitherKernel | None = None
    serpentine: bool = False
    dither_delta: float = 0.0  # 0 to 1
    cache_limit: int = 200_000
    palette: tuple[RGB, ...] | None = None
    reindex: bool | None = None  # None: only when no fixed palette

    def __post_init__(self) -> None:
        # Coerce loose inputs (strings, lists) on the frozen instance.
        set_ = object.__setattr__
        set_(self, "method", Method(self.method))
        set_(self, "dither_kernel", parse_kernel(self.dither_kernel))
        for name in _INT_FIELDS:
            set_(self, name, _as_int(name, getattr(self, name)))
        set_(self, "box_size", tuple(_as_int("box_size", v) for v in self.box_size))
        if self.palette is not None:
            set_(
                self,
                "palette",
                tuple(tuple(_as_int("palette", c) for c in rgb) for rgb in self.palette),
            )
        self._validate()

    def _validate(self) -> None:
        if not 1 <= self.colors <= 256:
            raise ValueError(f"colors must be in 1..256, got {self.colors}")
        if self.init_colors < 1:
            raise ValueError(f"init_colors must be >= 1, got {self.init_colors}")
        if not 0 < self.init_dist <= 1:
            raise ValueError(f"init_dist must be in (0, 1], got {self.init_dist}")
        if not 0 < self.dist_incr <= 1:
            raise ValueError(f"dist_incr must be in (0, 1], got {self.dist_incr}")
        if self.hue_groups < 1:
            raise ValueError(f"hue_groups must be >= 1, got {self.hue_groups}")
        if self.min_hue_cols < 0:
            raise ValueError(f"min_hue_cols must be >= 0, got {self.min_hue_cols}")
        if len(self.box_size) != 2 or min(self.box_size) < 1:
            raise ValueError(f"box_size must be two positive ints, got {self.box_size}")
        if self.box_pxls < 1:
            raise ValueError(f"box_pxls must be >= 1, got {self.box_pxls}")
        if not 1 <= self.sample_bits <= 8:
            raise ValueError(f"sample_bits must be in 1..8, got {self.sample_bits}")
        if not 0.0 <= self.dither_delta <= 1.0:
            raise ValueError(f"dither_delta must be in [0, 1], got {self.dither_delta}")
        if self.cache_limit < 0:
            raise ValueError(f"cache_limit must be >= 0, got {self.cache_limit}")
        if self.palette is not None:
            if not self.palette:
                raise ValueError("palette must not be empty")
            for rgb in self.palette:
                if len(rgb) != 3 or not all(0 <= c <= 255 for c in rgb):
                    raise ValueError(f"Invalid palette color: {rgb}")

    @property
    def reindex_allowed(self) -> bool:
        if self.reindex is None:
            return self.palette is None
        return self.reindex

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> QuantizerConfig:
        """Build a config from a plain dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ValueError(f"Unknown option(s): {', '.join(unknown)}")
        return cls(**options)

    def hash(self) -> str:
        """Deterministic hash for cache keying."""
        kernel = self.dither_kernel.value if self.dither_kernel else None
        data = (
            f"{self.method.value}:{self.colors}:{self.init_colors}:"
            f"{self.init_dist}:{self.dist_incr}:{self.hue_groups}:"
            f"{self.min_hue_cols}:{self.box_size}:{self.box_pxls}:"
            f"{self.sample_bits}:{kernel}:{self.serpentine}:"
            f"{self.dither_delta}:{self.cache_limit}:{self.palette}:{self.reindex}"
        )
        return hashlib.md5(data.encode()).hexdigest()[:12]

"""Tests for the quantizer engine lifecycle and dispatch."""

import numpy as np
import pytest

from palettize.core.config import DitherKernel, Method, QuantizerConfig
from palettize.core.errors import (
    AlreadyLockedError,
    EmptyHistogramError,
    EmptyPaletteError,
    UnknownKernelError,
)
from palettize.core.image import Image
from palettize.core.quantizer import Quantizer

BLACK = (0, 0, 0)
WHITE = (255, 255, 255)
RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)


def _rgb_quad():
    """2x2: red, green / blue, transparent."""
    data = bytes([
        255, 0, 0, 255, 0, 255, 0, 255,
        0, 0, 255, 255, 0, 0, 0, 0,
    ])
    return Image.from_bytes(2, 2, data)


def _random_image(seed, width=10, height=10, levels=None):
    rng = np.random.default_rng(seed)
    if levels is None:
        rgb = rng.integers(0, 256, (height, width, 3), dtype=np.uint8)
    else:
        rgb = rng.choice(np.array(levels, dtype=np.uint8), (height, width, 3))
    return Image.from_array(rgb)


def _gray_rows(rows):
    arr = np.zeros((len(rows), len(rows[0]), 4), dtype=np.uint8)
    for y, row in enumerate(rows):
        for x, v in enumerate(row):
            arr[y, x] = (v, v, v, 255)
    return Image.from_array(arr)


class TestScenarios:
    def test_three_opaque_colors_two_slots(self):
        q = Quantizer(QuantizerConfig(method=Method.GLOBAL, colors=2))
        img = _rgb_quad()
        q.sample(img)
        out = q.reduce(img)

        assert q.palette() == [GREEN, RED]
        assert out.pixel(0, 0) == (255, 0, 0, 255)
        assert out.pixel(1, 0) == (0, 255, 0, 255)
        # Blue is perceptually closer to red than to green.
        assert out.pixel(0, 1) == (255, 0, 0, 255)
        assert out.pixel(1, 1) == (0, 0, 0, 0)

    def test_index_mode(self):
        q = Quantizer(QuantizerConfig(method=Method.GLOBAL, colors=2))
        img = _rgb_quad()
        q.sample(img)
        assert q.reduce(img, ret="index") == [1, 0, 1, None]

    @pytest.mark.parametrize("kernel", [k for k in DitherKernel if not k.is_ordered])
    def test_flat_image_dither_equals_reduce(self, kernel):
        arr = np.zeros((10, 10, 3), dtype=np.uint8)
        arr[...] = (100, 150, 200)
        img = Image.from_array(arr)
        q = Quantizer(QuantizerConfig(method=Method.GLOBAL, colors=4))
        q.sample(img)
        assert np.array_equal(q.dither(img, kernel).pixels, q.reduce_image(img).pixels)

    def test_serpentine_changes_result(self):
        cfg = dict(colors=2, palette=[BLACK, WHITE])
        img = _gray_rows([[0, 0, 0], [100, 60, 100]])
        plain = Quantizer(QuantizerConfig(**cfg)).reduce(img, kernel="FloydSteinberg")
        serp = Quantizer(QuantizerConfig(**cfg)).reduce(
            img, kernel="FloydSteinberg", serpentine=True
        )
        assert not np.array_equal(plain.pixels, serp.pixels)
        for out in (plain, serp):
            colors = {tuple(px[:3]) for px in out.pixels.reshape(-1, 4).tolist()}
            assert colors <= {BLACK, WHITE}


class TestLifecycle:
    def test_sample_after_lock_fails(self):
        q = Quantizer(QuantizerConfig(method=Method.GLOBAL))
        q.sample(_rgb_quad())
        q.build_palette()
        assert q.locked
        with pytest.raises(AlreadyLockedError):
            q.sample(_rgb_quad())

    def test_implicit_lock_on_reduce(self):
        q = Quantizer(QuantizerConfig(method=Method.GLOBAL))
        q.sample(_rgb_quad())
        q.reduce(_rgb_quad())
        with pytest.raises(AlreadyLockedError):
            q.sample(_rgb_quad())

    def test_build_twice_is_idempotent(self):
        q = Quantizer(QuantizerConfig(method=Method.GLOBAL, colors=4))
        q.sample(_random_image(1))
        q.build_palette()
        first = q.palette()
        q.build_palette()
        assert q.palette() == first

    def test_build_with_nothing_sampled(self):
        with pytest.raises(EmptyHistogramError):
            Quantizer().build_palette()

    def test_reduce_with_nothing_sampled(self):
        with pytest.raises(EmptyPaletteError):
            Quantizer().reduce(_rgb_quad())

    def test_fixed_palette_needs_no_samples(self):
        q = Quantizer(QuantizerConfig(colors=4, palette=[BLACK, WHITE]))
        out = q.reduce(_gray_rows([[10, 240]]))
        assert out.pixel(0, 0)[:3] == BLACK
        assert out.pixel(1, 0)[:3] == WHITE
        assert q.palette() == [BLACK, WHITE]

    def test_oversized_fixed_palette_pruned(self):
        q = Quantizer(QuantizerConfig(
            method=Method.GLOBAL, colors=2, palette=[BLACK, WHITE, RED, BLUE]
        ))
        q.sample(Image.from_array(np.array([[RED, RED, BLUE]], dtype=np.uint8)))
        assert q.palette() == [None, None, RED, BLUE]
        # Slot indices of the fixed palette survive pruning; green lands on blue.
        assert q.reduce(_rgb_quad(), ret="index") == [2, 3, 3, None]

    def test_indices_address_returned_palette(self):
        q = Quantizer(QuantizerConfig(
            method=Method.GLOBAL, colors=2, palette=[BLACK, WHITE, RED, BLUE]
        ))
        img = Image.from_array(np.array([[RED, RED, BLUE]], dtype=np.uint8))
        q.sample(img)
        out = q.reduce(img)
        palette = q.palette()
        for x, idx in enumerate(q.reduce(img, ret="index")):
            assert palette[idx] == out.pixel(x, 0)[:3]

    def test_palette_rgba_keeps_slot_offsets(self):
        q = Quantizer(QuantizerConfig(
            method=Method.GLOBAL, colors=2, palette=[BLACK, WHITE, RED, BLUE]
        ))
        q.sample(Image.from_array(np.array([[RED, RED, BLUE]], dtype=np.uint8)))
        assert q.palette_rgba() == bytes(
            [0, 0, 0, 0, 0, 0, 0, 0, 255, 0, 0, 255, 0, 0, 255, 255]
        )

    def test_multiple_samples_accumulate(self):
        q = Quantizer(QuantizerConfig(method=Method.GLOBAL))
        q.sample(_rgb_quad())
        q.sample(_rgb_quad())
        assert sum(q.histogram.counts.values()) == 6


class TestPaletteBounds:
    @pytest.mark.parametrize("colors", [1, 2, 5, 16])
    def test_global(self, colors):
        q = Quantizer(QuantizerConfig(method=Method.GLOBAL, colors=colors))
        q.sample(_random_image(7))
        assert len(q.palette()) == min(colors, len(q.histogram))

    @pytest.mark.parametrize("colors", [3, 8, 64])
    def test_spatial(self, colors):
        q = Quantizer(QuantizerConfig(colors=colors, box_size=(16, 16)))
        q.sample(_random_image(11, 16, 16, levels=[0, 128, 255]))
        assert len(q.histogram) > 0
        assert len(q.palette()) == min(colors, len(q.histogram))


class TestOutputs:
    def test_alpha_preserved_everywhere(self):
        rng = np.random.default_rng(5)
        arr = rng.integers(0, 256, (6, 6, 4), dtype=np.uint8)
        arr[0, :, 3] = 0
        img = Image.from_array(arr)
        q = Quantizer(QuantizerConfig(method=Method.GLOBAL, colors=4))
        q.sample(img)
        for kernel in ("None", "FloydSteinberg", "Ordered4"):
            out = q.reduce(img, kernel=kernel)
            transparent = arr[..., 3] == 0
            assert not out.pixels[transparent].any()
            assert np.array_equal(out.pixels[~transparent, 3], arr[~transparent, 3])

    def test_deterministic_runs(self):
        results = []
        for _ in range(2):
            img = _random_image(9, 12, 12)
            q = Quantizer(QuantizerConfig(
                method=Method.GLOBAL, colors=8, dither_kernel="FloydSteinberg"
            ))
            q.sample(img)
            results.append(q.reduce(img).to_bytes())
        assert results[0] == results[1]

    def test_default_kernel_from_config(self):
        img = _gray_rows([[0, 0, 0], [100, 60, 100]])
        q = Quantizer(QuantizerConfig(
            colors=2, palette=[BLACK, WHITE], dither_kernel="FloydSteinberg"
        ))
        out = q.reduce(img)
        assert [out.pixel(x, 1)[:3] for x in range(3)] == [BLACK, BLACK, WHITE]
        plain = q.reduce(img, kernel="None")
        assert [plain.pixel(x, 1)[:3] for x in range(3)] == [BLACK, BLACK, BLACK]

    def test_ordered_dispatch(self):
        img = _gray_rows([[128] * 4] * 4)
        q = Quantizer(QuantizerConfig(colors=2, palette=[BLACK, WHITE]))
        via_reduce = q.reduce(img, kernel=DitherKernel.ORDERED2)
        assert np.array_equal(via_reduce.pixels, q.dither_ordered(img, "Ordered2").pixels)

    def test_unknown_kernel(self):
        q = Quantizer(QuantizerConfig(colors=2, palette=[BLACK, WHITE]))
        with pytest.raises(UnknownKernelError):
            q.reduce(_rgb_quad(), kernel="Bogus")

    def test_unknown_return_type(self):
        q = Quantizer(QuantizerConfig(colors=2, palette=[BLACK, WHITE]))
        with pytest.raises(ValueError, match="Unsupported return type"):
            q.reduce(_rgb_quad(), ret="png")

    def test_palette_rgba(self):
        q = Quantizer(QuantizerConfig(colors=4, palette=[RED, BLUE]))
        assert q.palette_rgba() == bytes([255, 0, 0, 255, 0, 0, 255, 255])

    def test_nearest_color_memoised_per_engine(self):
        a = Quantizer(QuantizerConfig(colors=2, palette=[BLACK, WHITE], cache_limit=1))
        b = Quantizer(QuantizerConfig(colors=2, palette=[BLACK, WHITE], cache_limit=1))
        assert a.nearest_color(10, 10, 10) == BLACK
        assert b.nearest_index(250, 250, 250) == 1
        assert a.index.cache.size == 1
        assert b.index.cache.size == 1

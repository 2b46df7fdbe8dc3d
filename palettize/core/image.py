"""RGBA8 image value type shared by the sampler, reducer and ditherers."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PIL import Image as PILImage


@dataclass(frozen=True)
class Image:
    """A row-major RGBA image.

    `pixels` is a uint8 array of shape (height, width, 4). Alpha 0 means
    fully transparent.
    """

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Invalid image size: {self.width}x{self.height}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {self.pixels.dtype}")
        expected = (self.height, self.width, 4)
        if self.pixels.shape != expected:
            raise ValueError(
                f"Pixel array shape {self.pixels.shape} does not match {expected}"
            )

    @classmethod
    def blank(cls, width: int, height: int) -> Image:
        """Allocate a fully transparent image."""
        return cls(width, height, np.zeros((height, width, 4), dtype=np.uint8))

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes | bytearray) -> Image:
        """Build from a flat RGBA buffer of length width * height * 4."""
        if len(data) != width * height * 4:
            raise ValueError(
                f"Expected {width * height * 4} bytes for {width}x{height}, got {len(data)}"
            )
        arr = np.frombuffer(bytes(data), dtype=np.uint8).reshape(height, width, 4)
        return cls(width, height, arr.copy())

    @classmethod
    def from_array(cls, array: np.ndarray) -> Image:
        """Build from an (H, W, 3) or (H, W, 4) uint8 array.

        RGB input gets an opaque alpha channel.
        """
        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise ValueError(f"Expected (H, W, 3|4) array, got shape {array.shape}")
        arr = np.asarray(array, dtype=np.uint8)
        h, w = arr.shape[:2]
        if arr.shape[2] == 3:
            alpha = np.full((h, w, 1), 255, dtype=np.uint8)
            arr = np.concatenate([arr, alpha], axis=2)
        return cls(w, h, np.ascontiguousarray(arr).copy())

    @classmethod
    def from_pil(cls, img: PILImage.Image) -> Image:
        """Convert a Pillow image (any mode) to RGBA."""
        return cls.from_array(np.array(img.convert("RGBA"), dtype=np.uint8))

    def to_pil(self) -> PILImage.Image:
        return PILImage.fromarray(self.pixels, "RGBA")

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        r, g, b, a = self.pixels[y, x]
        return (int(r), int(g), int(b), int(a))

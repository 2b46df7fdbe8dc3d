"""Exceptions raised by the quantizer engine."""

from __future__ import annotations


class QuantizerError(Exception):
    """Base class for engine errors."""


class AlreadyLockedError(QuantizerError):
    """Raised when sampling after the palette has been built."""


class EmptyHistogramError(QuantizerError):
    """Raised when building a palette with nothing sampled."""


class EmptyPaletteError(QuantizerError):
    """Raised when mapping an image without any usable palette."""


class UnknownKernelError(QuantizerError, ValueError):
    """Raised for an unrecognised dithering kernel name."""

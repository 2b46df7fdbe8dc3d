"""Command-line interface for palettize.

Headless image conversion with optional JSON output for scripting.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from palettize.core.config import DitherKernel, Method


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="palettize",
        description="Reduce an image to a small palette, optionally dithered.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- convert subcommand ---
    convert = subparsers.add_parser(
        "convert",
        help="Quantize an image file.",
    )
    convert.add_argument("input", help="Input image path (any format Pillow reads).")
    convert.add_argument(
        "-o", "--output",
        help="Output file path. Defaults to <input>_quant.png.",
    )
    convert.add_argument(
        "--colors",
        type=int,
        default=256,
        help="Palette size, 1 to 256 (default: 256).",
    )
    convert.add_argument(
        "--method",
        choices=[m.value for m in Method],
        default="spatial",
        help="Histogram strategy (default: spatial).",
    )
    convert.add_argument(
        "--dither",
        choices=[k.value for k in DitherKernel],
        default=None,
        help="Dithering kernel (default: none).",
    )
    convert.add_argument(
        "--serpentine",
        action="store_true",
        help="Alternate scan direction per row for error diffusion.",
    )
    convert.add_argument(
        "--dither-delta",
        type=float,
        default=0.0,
        help="Skip error diffusion below this color difference, 0 to 1 (default: 0).",
    )
    convert.add_argument(
        "--sample-bits",
        type=int,
        default=8,
        help="Bits per channel kept while sampling, 1 to 8 (default: 8).",
    )
    convert.add_argument(
        "--palette-out",
        help="Also write the palette as a 1-pixel-high PNG strip, one pixel per slot.",
    )
    convert.add_argument(
        "--json",
        action="store_true",
        help="Output structured JSON (pipe-friendly).",
    )
    convert.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging and stack traces on error.",
    )

    return parser


def _auto_output_path(input_path: Path) -> Path:
    """Generate default output path from input."""
    return input_path.parent / f"{input_path.stem}_quant.png"


def _json_error(message: str, code: str) -> None:
    """Print JSON error to stderr and exit with code 1."""
    err = {"status": "error", "error": message, "code": code}
    print(json.dumps(err), file=sys.stderr)
    sys.exit(1)


def _fail(args: argparse.Namespace, message: str, code: str) -> None:
    if args.json:
        _json_error(message, code)
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _run_convert(args: argparse.Namespace) -> None:
    """Run the convert pipeline."""
    from PIL import Image as PILImage, UnidentifiedImageError

    from palettize.core.config import QuantizerConfig
    from palettize.core.errors import QuantizerError
    from palettize.core.image import Image
    from palettize.core.quantizer import Quantizer

    input_path = Path(args.input).resolve()
    if not input_path.exists():
        _fail(args, f"File not found: {input_path}", "FILE_NOT_FOUND")

    try:
        config = QuantizerConfig(
            method=Method(args.method),
            colors=args.colors,
            dither_kernel=args.dither,
            serpentine=args.serpentine,
            dither_delta=args.dither_delta,
            sample_bits=args.sample_bits,
        )
    except ValueError as e:
        _fail(args, str(e), "INVALID_OPTIONS")

    try:
        with PILImage.open(input_path) as pil_img:
            image = Image.from_pil(pil_img)
    except (UnidentifiedImageError, OSError) as e:
        _fail(args, str(e), "INVALID_INPUT")

    output_path = Path(args.output).resolve() if args.output else _auto_output_path(input_path)

    if not args.json:
        print(f"Quantizing {input_path.name} to {config.colors} colors...", file=sys.stderr)

    try:
        quantizer = Quantizer(config)
        quantizer.sample(image)
        result = quantizer.reduce(image)
        result.to_pil().save(output_path)
        palette = quantizer.palette()
        if args.palette_out:
            strip = Image.from_bytes(len(palette), 1, quantizer.palette_rgba())
            strip.to_pil().save(Path(args.palette_out).resolve())
    except (QuantizerError, OSError) as e:
        if args.debug:
            import traceback
            traceback.print_exc(file=sys.stderr)
        _fail(args, str(e), "PROCESSING_ERROR")

    if not args.json:
        print(f"Saved to {output_path}", file=sys.stderr)
    else:
        summary = {
            "status": "success",
            "input": str(input_path),
            "output": str(output_path),
            "settings": {
                "colors": config.colors,
                "method": config.method.value,
                "dither": config.dither_kernel.value if config.dither_kernel else None,
                "serpentine": config.serpentine,
            },
            "metadata": {
                "width": image.width,
                "height": image.height,
                "palette_size": sum(rgb is not None for rgb in palette),
                "palette": [
                    "#%02x%02x%02x" % rgb if rgb is not None else None for rgb in palette
                ],
            },
        }
        print(json.dumps(summary, indent=2))


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command != "convert":
        parser.print_help()
        sys.exit(2)
    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    _run_convert(args)


if __name__ == "__main__":
    main()

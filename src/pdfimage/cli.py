"""Command line interface for PDF conversion and form split detection.

This module defines the ``pdfimage`` console entry point and a set of
subcommands, one per operation of :class:`pdfimage.pdf.PdfImage`.  It
uses Python's built‑in ``argparse`` module to parse command line
options.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List

from PIL import Image, UnidentifiedImageError

from .commands import Crop
from .config import ConvertConfig, load_config
from .pdf import PdfImage

logger = logging.getLogger(__name__)


def _setup_logger(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _load(args: argparse.Namespace) -> ConvertConfig:
    config = load_config(args.config)
    if args.output_dir:
        config.output_dir = Path(args.output_dir)
    if args.gm:
        config.graphics_magick = True
    return config


def _resolve_crop(parser: argparse.ArgumentParser, args: argparse.Namespace, source: Path) -> Crop:
    """Use ``--crop`` when given, else the full extent of ``source``."""
    if args.crop:
        try:
            return Crop.parse(args.crop)
        except ValueError as exc:
            parser.error(str(exc))
    try:
        with Image.open(source) as img:
            width, height = img.size
    except (OSError, UnidentifiedImageError):
        parser.error(f"cannot read the size of {source}; pass --crop WxH+X+Y")
    return Crop(width, height)


def cmd_info(args: argparse.Namespace) -> None:
    pdf = PdfImage.from_config(_load(args))
    print(json.dumps(pdf.get_info(), indent=2))


def cmd_convert(args: argparse.Namespace) -> None:
    pdf = PdfImage.from_config(_load(args))
    result = pdf.convert_file()
    paths = result if isinstance(result, list) else [result]
    for path in paths:
        print(path)


def cmd_page(args: argparse.Namespace) -> None:
    if args.page is None:
        args.parser.error("page requires --page")
    pdf = PdfImage.from_config(_load(args))
    print(pdf.convert_page(args.page))


def cmd_split(args: argparse.Namespace) -> None:
    if not args.pages:
        args.parser.error("split requires --pages")
    pdf = PdfImage.from_config(_load(args))
    print(pdf.split_pages(args.pages, args.page))


def cmd_markers(args: argparse.Namespace) -> None:
    config = _load(args)
    crop = _resolve_crop(args.parser, args, config.pdf_file)
    pdf = PdfImage.from_config(config)
    print(json.dumps(pdf.suggest_markers(crop)))


def cmd_margin(args: argparse.Namespace) -> None:
    config = _load(args)
    crop = _resolve_crop(args.parser, args, config.pdf_file)
    pdf = PdfImage.from_config(config)
    position = pdf.suggest_margin(crop)
    if position < 0:
        logger.warning("No gutter found in %s", crop.geometry)
    print(position)


def main(argv: List[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Convert PDF pages to images and detect form splits")
    parser.add_argument(
        "command", choices=["info", "convert", "page", "split", "markers", "margin"], help="Operation to run"
    )
    parser.add_argument("-c", "--config", required=True, help="Path to YAML configuration file")
    parser.add_argument("-o", "--output-dir", default=None, help="Override the directory images are written to")
    parser.add_argument("--page", type=int, default=None, help="Page number (0-based) for page and split")
    parser.add_argument("--pages", default=None, help='Page list for split, e.g. "1,3,7" or "3-6"')
    parser.add_argument("--crop", default=None, help="Region WxH+X+Y for markers and margin (default: whole image)")
    parser.add_argument("--gm", action="store_true", help="Use GraphicsMagick instead of ImageMagick")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args(argv)
    args.parser = parser
    _setup_logger(args.verbose)
    cmd_map = {
        "info": cmd_info,
        "convert": cmd_convert,
        "page": cmd_page,
        "split": cmd_split,
        "markers": cmd_markers,
        "margin": cmd_margin,
    }
    cmd = cmd_map[args.command]
    cmd(args)


if __name__ == "__main__":
    main()

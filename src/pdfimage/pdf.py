"""PDF rasterisation through ImageMagick.

This module converts the pages of a PDF into image files by running
ImageMagick's ``convert`` (or GraphicsMagick's ``gm convert``) and
reads document metadata with Poppler's ``pdfinfo``.  Output images are
stored next to the PDF unless another directory is configured, named
``<base>-<page>.<ext>`` for single pages and ``<base>.<ext>`` for
combined or split output.

An existing image is reused as long as it is at least as new as the
PDF, so repeated runs only convert what changed.

The :class:`PdfImage` object also exposes the marker and gutter
heuristics of :mod:`pdfimage.markers` on a cropped region of the input.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from tqdm import tqdm

from . import commands
from .commands import Crop
from .config import ConvertConfig, MarkerConfig
from .markers import component_records, detect_gutter, detect_markers, pixel_records

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """An external tool failed or could not be started."""

    def __init__(
        self,
        message: str,
        command: Sequence[str],
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    def __str__(self) -> str:
        details = self.stderr.strip() or f"exit code {self.returncode}"
        return f"{self.message}: {details}"


def run_command(command: Sequence[str], message: str) -> str:
    """Run ``command`` and return its stdout, raising :class:`CommandError` on failure."""
    logger.debug("Running %s", " ".join(command))
    try:
        result = subprocess.run(list(command), capture_output=True, text=True, check=False)
    except OSError as exc:
        raise CommandError(message, command, stderr=str(exc)) from exc
    if result.returncode != 0:
        raise CommandError(message, command, result.returncode, result.stdout, result.stderr)
    return result.stdout


def parse_info_output(output: str) -> Dict[str, str]:
    """Parse ``pdfinfo`` output into a ``{key: value}`` mapping.

    The key is everything before the first colon; leading blanks are
    stripped from the value.  Lines without a colon are ignored.
    """
    info: Dict[str, str] = {}
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            info[key] = value.lstrip(" \t")
    return info


def _is_stale(image_path: Path, pdf_path: Path) -> bool:
    """True when ``image_path`` is missing or older than ``pdf_path``."""
    try:
        image_mtime = image_path.stat().st_mtime
    except FileNotFoundError:
        return True
    return image_mtime < pdf_path.stat().st_mtime


class PdfImage:
    """Convert a PDF into images and analyse regions of it.

    Parameters
    ----------
    pdf_file:
        Source document.  The marker helpers accept any image format
        ImageMagick can read.
    base_name:
        Stem of generated file names; defaults to the PDF file stem.
    convert_options:
        Extra ``convert`` options such as ``{"-density": 300}``; a value
        of ``None`` passes the option as a bare flag.
    extension:
        Output image format, ``"png"`` by default.
    graphics_magick:
        Use ``gm convert`` instead of ImageMagick's ``convert``.
    combined_image:
        Make :meth:`convert_file` stack all pages into a single image.
    output_dir:
        Where images are written; defaults to the PDF's directory.
    marker_config:
        Tuning of :meth:`suggest_markers` and :meth:`suggest_margin`.
    """

    def __init__(
        self,
        pdf_file: Union[str, Path],
        base_name: Optional[str] = None,
        convert_options: Optional[Mapping[str, Any]] = None,
        extension: Optional[str] = None,
        graphics_magick: bool = False,
        combined_image: bool = False,
        output_dir: Optional[Union[str, Path]] = None,
        marker_config: Optional[MarkerConfig] = None,
    ) -> None:
        self.pdf_file = Path(pdf_file)
        self.base_name = base_name or self.pdf_file.stem
        self.convert_options: Dict[str, Any] = dict(convert_options or {})
        self.extension = (extension or "png").lstrip(".")
        self.graphics_magick = graphics_magick
        self.combined_image = combined_image
        self.output_dir = Path(output_dir) if output_dir else self.pdf_file.parent
        self.marker_config = marker_config or MarkerConfig()

    @classmethod
    def from_config(cls, config: ConvertConfig) -> "PdfImage":
        return cls(
            config.pdf_file,
            base_name=config.base_name,
            convert_options=config.convert_options,
            extension=config.extension,
            graphics_magick=config.graphics_magick,
            combined_image=config.combined_image,
            output_dir=config.output_dir,
            marker_config=config.markers,
        )

    # -- metadata -----------------------------------------------------

    def get_info(self) -> Dict[str, str]:
        output = run_command(commands.info_command(self.pdf_file), "Failed to get PDF's information")
        return parse_info_output(output)

    def number_of_pages(self) -> int:
        info = self.get_info()
        try:
            return int(info["Pages"])
        except (KeyError, ValueError) as exc:
            raise ValueError(f"pdfinfo reported no page count for {self.pdf_file}") from exc

    # -- output paths -------------------------------------------------

    def output_path_for_page(self, page_number: int) -> Path:
        return self.output_dir / f"{self.base_name}-{page_number}.{self.extension}"

    def output_path_for_file(self) -> Path:
        return self.output_dir / f"{self.base_name}.{self.extension}"

    # -- conversion ---------------------------------------------------

    def _convert_if_stale(self, command: List[str], output_path: Path) -> Path:
        if not _is_stale(output_path, self.pdf_file):
            logger.debug("Reusing up to date %s", output_path)
            return output_path
        self.output_dir.mkdir(parents=True, exist_ok=True)
        run_command(command, "Failed to convert page to image")
        logger.info("Wrote %s", output_path)
        return output_path

    def convert_page(self, page_number: int) -> Path:
        """Render the 0-based ``page_number`` unless its image is up to date."""
        output_path = self.output_path_for_page(page_number)
        command = commands.convert_page_command(
            self.pdf_file, page_number, output_path, self.convert_options, self.graphics_magick
        )
        return self._convert_if_stale(command, output_path)

    def convert_file(self) -> Union[List[Path], Path]:
        """Render every page.

        Returns the page images in page order, or the single combined
        image when ``combined_image`` is set.
        """
        total = self.number_of_pages()
        logger.info("Converting %d pages of %s", total, self.pdf_file)
        paths = [self.convert_page(i) for i in tqdm(range(total), desc="Convert", unit="page")]
        if self.combined_image:
            return self.combine_images(paths)
        return paths

    def combine_images(self, image_paths: Sequence[Union[str, Path]]) -> Path:
        """Stack ``image_paths`` vertically into one image and delete them."""
        output_path = self.output_path_for_file()
        command = commands.combine_command(image_paths, output_path, self.graphics_magick)
        run_command(command, "Failed to combine images")
        for path in image_paths:
            Path(path).unlink(missing_ok=True)
        logger.info("Combined %d images into %s", len(image_paths), output_path)
        return output_path

    def split_pages(self, page_list: str, page_number: Optional[int] = None) -> Path:
        """Extract the pages in ``page_list`` (``"1,3,7"`` or ``"3-6"``).

        The result is written to the per-page path of ``page_number``
        when given, else to the whole-file path.  Typically used with a
        ``pdf`` extension to cut a document into smaller ones.
        """
        if page_number is not None:
            output_path = self.output_path_for_page(page_number)
        else:
            output_path = self.output_path_for_file()
        command = commands.convert_page_list_command(
            self.pdf_file, page_list, output_path, self.convert_options, self.graphics_magick
        )
        return self._convert_if_stale(command, output_path)

    # -- analysis -----------------------------------------------------

    def suggest_markers(self, crop: Crop) -> List[int]:
        """Return the y positions of horizontal split lines inside ``crop``."""
        command = commands.marker_command(self.pdf_file, crop, self.convert_options, self.graphics_magick)
        output = run_command(command, "Failed to get markers")
        markers = detect_markers(component_records(output), self.marker_config.gutter)
        logger.info("Found %d markers in %s", len(markers), crop.geometry)
        return markers

    def suggest_margin(self, crop: Crop) -> int:
        """Return the x position of the vertical gutter inside ``crop``, or -1."""
        command = commands.margin_command(self.pdf_file, crop, self.convert_options, self.graphics_magick)
        output = run_command(command, "Failed to run command")
        position = detect_gutter(pixel_records(output), crop.height, crop.width, self.marker_config)
        logger.info("Gutter for %s at %d", crop.geometry, position)
        return position

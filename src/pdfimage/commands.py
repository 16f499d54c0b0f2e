"""Argument vectors for the external image tools.

Nothing in this module runs a process; each function returns the
``argv`` list that :mod:`pdfimage.pdf` hands to :func:`subprocess.run`.
Commands are never joined into shell strings, so paths with spaces or
quotes need no escaping.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Union

PathLike = Union[str, Path]

_CROP_RE = re.compile(r"^(\d+)x(\d+)\+(\d+)\+(\d+)$")


@dataclass(frozen=True)
class Crop:
    """A crop rectangle in ImageMagick geometry terms."""

    width: int
    height: int
    x: int = 0
    y: int = 0

    @classmethod
    def parse(cls, geometry: str) -> "Crop":
        """Parse a ``WxH+X+Y`` geometry string."""
        m = _CROP_RE.match(geometry.strip())
        if not m:
            raise ValueError(f"Invalid crop geometry: {geometry!r}")
        return cls(*(int(g) for g in m.groups()))

    @property
    def geometry(self) -> str:
        return f"{self.width}x{self.height}+{self.x}+{self.y}"


def convert_program(graphics_magick: bool = False) -> List[str]:
    return ["gm", "convert"] if graphics_magick else ["convert"]


def convert_options_args(options: Optional[Mapping[str, Any]]) -> List[str]:
    """Expand an options mapping into arguments, sorted by option name.

    ``{"-density": 300, "-trim": None}`` becomes
    ``["-density", "300", "-trim"]``.
    """
    args: List[str] = []
    for name in sorted(options or {}):
        args.append(name)
        value = options[name]
        if value is not None:
            args.append(str(value))
    return args


def info_command(pdf_path: PathLike) -> List[str]:
    return ["pdfinfo", str(pdf_path)]


def convert_page_command(
    pdf_path: PathLike,
    page_number: int,
    output_path: PathLike,
    options: Optional[Mapping[str, Any]] = None,
    graphics_magick: bool = False,
) -> List[str]:
    """Render a single 0-based page of ``pdf_path`` to ``output_path``."""
    return convert_page_list_command(pdf_path, str(page_number), output_path, options, graphics_magick)


def convert_page_list_command(
    pdf_path: PathLike,
    page_list: str,
    output_path: PathLike,
    options: Optional[Mapping[str, Any]] = None,
    graphics_magick: bool = False,
) -> List[str]:
    """Render the pages selected by ``page_list`` (``"1,3,7"`` or ``"3-6"``)."""
    return [
        *convert_program(graphics_magick),
        *convert_options_args(options),
        f"{pdf_path}[{page_list}]",
        str(output_path),
    ]


def combine_command(
    image_paths: Sequence[PathLike],
    output_path: PathLike,
    graphics_magick: bool = False,
) -> List[str]:
    """Stack ``image_paths`` top to bottom into ``output_path``."""
    return [*convert_program(graphics_magick), "-append", *(str(p) for p in image_paths), str(output_path)]


# Isolate long horizontal and vertical strokes, merge them, and report
# the connected components.  The image is thresholded once and kept in
# the mpr:ORG register for both stroke passes.
_MARKER_PIPELINE = [
    "-strip",
    "(", "+clone", "-threshold", "70%", "-write", "mpr:ORG", "+delete", ")",
    "(", "mpr:ORG", "-negate",
    "-morphology", "Erode", "rectangle:200x1",
    "-mask", "mpr:ORG", "-morphology", "Dilate", "rectangle:200x1", "+mask",
    "-morphology", "Dilate", "Disk:3", ")",
    "(", "mpr:ORG", "-negate",
    "-morphology", "Erode", "rectangle:1x70",
    "-mask", "mpr:ORG", "-morphology", "Dilate", "rectangle:1x70", "+mask",
    "-morphology", "Dilate", "Disk:3", ")",
    "(", "-clone", "1", "-clone", "2", "-evaluate-sequence", "add", ")",
    "-delete", "1,2", "-compose", "plus", "-composite",
    "(", "+clone", ")",
    "-compose", "Lighten", "-composite", "-blur", "0x0.5", "-threshold", "70%",
    "-define", "connected-components:verbose=true",
    "-define", "connected-components:area-threshold=80",
    "-connected-components", "8",
]


def marker_command(
    pdf_path: PathLike,
    crop: Crop,
    options: Optional[Mapping[str, Any]] = None,
    graphics_magick: bool = False,
) -> List[str]:
    """Connected-component analysis of ``crop``; the image goes to ``null:``."""
    return [
        *convert_program(graphics_magick),
        *convert_options_args(options),
        str(pdf_path),
        "-crop", crop.geometry, "+repage",
        *_MARKER_PIPELINE,
        "null:",
    ]


def margin_command(
    pdf_path: PathLike,
    crop: Crop,
    options: Optional[Mapping[str, Any]] = None,
    graphics_magick: bool = False,
) -> List[str]:
    """Dump every pixel of ``crop`` as text on stdout."""
    return [
        *convert_program(graphics_magick),
        *convert_options_args(options),
        "-crop", crop.geometry, "+repage",
        str(pdf_path),
        "txt:-",
    ]

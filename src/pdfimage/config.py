"""Configuration loading and validation for PDF conversion.

Configurations are stored as YAML files.  The :class:`ConvertConfig`
dataclass captures the conversion settings with sensible defaults and
performs basic validation, while :class:`MarkerConfig` holds the
tuning knobs of the marker and gutter heuristics.  A utility function
:func:`load_config` reads a YAML file and returns the corresponding
dataclass instance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


@dataclass(frozen=True)
class MarkerConfig:
    """Tuning parameters for marker clustering and gutter detection.

    Attributes
    ----------
    gutter:
        Merge radius in pixels; a marker within this distance below an
        already accepted marker belongs to the same cluster.
    ghost_margin:
        Columns at or left of this x position are ignored as edge noise.
    fuzz_margin:
        Fraction of the scanned rows a column must appear in before it
        is accepted as the gutter.  ``1.0`` requires every row.
    override_margin:
        Fallback gutter position as a fraction of the image width, used
        when no column is dominant.  ``0`` disables the fallback.
    """

    gutter: int = 50
    ghost_margin: int = 50
    fuzz_margin: float = 1.0
    override_margin: float = 0.0

    def __post_init__(self) -> None:
        if self.gutter < 0:
            raise ValueError(f"gutter must be non-negative, got {self.gutter}")
        if self.ghost_margin < 0:
            raise ValueError(f"ghost_margin must be non-negative, got {self.ghost_margin}")
        if not 0 < self.fuzz_margin <= 1:
            raise ValueError(f"fuzz_margin must be in (0, 1], got {self.fuzz_margin}")
        if not 0 <= self.override_margin <= 1:
            raise ValueError(f"override_margin must be in [0, 1], got {self.override_margin}")


@dataclass
class ConvertConfig:
    """Dataclass capturing the settings of a PDF conversion.

    The fields map one‑to‑one to keys in the YAML configuration.  If
    certain fields are omitted in the YAML file, defaults provided
    here will be used instead.
    """

    pdf_file: Path
    output_dir: Optional[Path] = None
    base_name: Optional[str] = None
    extension: str = "png"
    graphics_magick: bool = False
    combined_image: bool = False
    convert_options: Dict[str, Any] = field(default_factory=dict)
    markers: MarkerConfig = field(default_factory=MarkerConfig)

    def __post_init__(self) -> None:
        # normalise paths to Path instances
        if isinstance(self.pdf_file, str):
            self.pdf_file = Path(self.pdf_file)
        if isinstance(self.output_dir, str):
            self.output_dir = Path(self.output_dir)
        if not self.extension:
            raise ValueError("extension must not be empty")
        self.extension = self.extension.lstrip(".")
        if not isinstance(self.convert_options, dict):
            raise ValueError(f"convert_options must be a mapping, got {type(self.convert_options).__name__}")
        if isinstance(self.markers, dict):
            self.markers = MarkerConfig(**self.markers)


def load_config(path: Union[str, Path]) -> ConvertConfig:
    """Load a configuration YAML file into a :class:`ConvertConfig`.

    Parameters
    ----------
    path:
        Path to the YAML configuration file.

    Returns
    -------
    ConvertConfig
        A populated configuration dataclass instance.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    # an empty mapping in YAML comes back as None
    data["convert_options"] = data.get("convert_options") or {}
    data["markers"] = MarkerConfig(**(data.get("markers") or {}))

    return ConvertConfig(**data)

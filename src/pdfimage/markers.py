"""Detect split lines in scanned forms.

Scanned forms are often cut into rows and columns along printed
lines.  ImageMagick does the image work: connected-component analysis
finds long horizontal strokes, and a plain pixel dump lists the dark
pixels of a strip.  This module turns that text output into positions:

* :func:`detect_markers` clusters the y positions of horizontal
  strokes into a de-duplicated list of row splits;
* :func:`detect_gutter` finds the leftmost column that is dark in
  (nearly) every scanned row, i.e. the vertical split.

Every function here is pure and keeps no state, so it is safe to call
from several workers at once.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .config import MarkerConfig

logger = logging.getLogger(__name__)

# components this short are rasterisation noise
GHOST_HEIGHT = 10
# added to a detected gutter so the split clears the printed line
GUTTER_BUFFER = 20

# largest coordinate the column counter can hold
_MAX_COORD = int(np.iinfo(np.int64).max)

_GEOMETRY_RE = re.compile(r"(\d+)x(\d+)\+(\d+)\+(\d+)")
_PIXEL_RE = re.compile(r"^\s*(\d+),(\d+):")

Component = Tuple[int, int, int]
Point = Tuple[int, int]


def _parse_ints(line: str, count: int) -> Optional[List[int]]:
    """Return the first ``count`` tokens of ``line`` as non-negative ints, or None."""
    tokens = line.split()[:count]
    if len(tokens) < count:
        return None
    if not all(tok.isascii() and tok.isdigit() for tok in tokens):
        return None
    values = [int(tok) for tok in tokens]
    if any(v > _MAX_COORD for v in values):
        return None
    return values


def parse_components(text: str) -> List[Component]:
    """Parse ``"height x y"`` lines; malformed lines are skipped."""
    records: List[Component] = []
    for line in text.splitlines():
        values = _parse_ints(line, 3)
        if values is not None:
            records.append((values[0], values[1], values[2]))
    return records


def parse_points(text: str) -> List[Point]:
    """Parse ``"x y"`` lines; malformed lines are skipped."""
    records: List[Point] = []
    for line in text.splitlines():
        values = _parse_ints(line, 2)
        if values is not None:
            records.append((values[0], values[1]))
    return records


def component_records(verbose_output: str) -> List[Component]:
    """Extract ``(height, x, y)`` of the black connected components.

    ``verbose_output`` is what ImageMagick prints for
    ``-define connected-components:verbose=true``, one component per
    line such as ``  3: 277x4+0+1203 138.0,1204.5 1108 srgb(0,0,0)``.
    """
    records: List[Component] = []
    for line in verbose_output.splitlines():
        if "(0,0,0)" not in line:
            continue
        m = _GEOMETRY_RE.search(line)
        if m:
            records.append((int(m.group(2)), int(m.group(3)), int(m.group(4))))
    return records


def pixel_records(txt_output: str) -> List[Point]:
    """Extract ``(x, y)`` of the black pixels from a ``txt:-`` dump."""
    records: List[Point] = []
    for line in txt_output.splitlines():
        if "#000000" not in line:
            continue
        m = _PIXEL_RE.match(line)
        if m:
            records.append((int(m.group(1)), int(m.group(2))))
    return records


def detect_markers(components: Iterable[Sequence[int]], margin: int = 50) -> List[int]:
    """Cluster horizontal strokes into marker positions.

    Parameters
    ----------
    components:
        ``(height, x, y)`` triples, one per connected component.  Only
        the y position is used since markers span the full width.
    margin:
        Merge radius.  A position no more than ``margin`` below an
        accepted marker is folded into that marker.

    Returns
    -------
    list[int]
        Strictly ascending marker positions, adjacent ones more than
        ``margin`` apart.  Empty when nothing survives the noise filter.
    """
    positions = sorted(y for height, _x, y in components if height > GHOST_HEIGHT)
    markers: List[int] = []
    for y in positions:
        # input is sorted, so only the last seed can absorb y
        if not markers or y > markers[-1] + margin:
            markers.append(y)
    logger.debug("Clustered %d positions into %d markers", len(positions), len(markers))
    return markers


def detect_gutter(
    points: Iterable[Sequence[int]],
    row_count: int,
    width: int,
    config: MarkerConfig = MarkerConfig(),
) -> int:
    """Locate the vertical gutter shared by the scanned rows.

    Parameters
    ----------
    points:
        ``(x, y)`` pairs of dark pixels.
    row_count:
        Number of rows that were scanned (the strip height).
    width:
        Width of the scanned strip, used for the fallback position.
    config:
        Ghost, fuzz and override margins.

    Returns
    -------
    int
        ``x + GUTTER_BUFFER`` for the smallest column found in at least
        ``row_count * fuzz_margin`` rows, else the override position
        rounded to the nearest pixel, else ``-1``.  No column can qualify
        when ``row_count`` is not positive.
    """
    xs = np.array([x for x, _y in points if config.ghost_margin < x <= _MAX_COORD], dtype=np.int64)
    threshold = row_count * config.fuzz_margin
    if row_count > 0 and xs.size:
        # np.unique returns the columns in ascending order
        columns, counts = np.unique(xs, return_counts=True)
        hits = columns[counts >= threshold]
        if hits.size:
            return int(hits[0]) + GUTTER_BUFFER
    if config.override_margin > 0:
        fallback = round(width * config.override_margin)
        logger.debug("No dominant column, falling back to %d", fallback)
        return fallback
    return -1


def parse_marker_output(text: str, margin: int = 50) -> List[int]:
    """Parse ``"height x y"`` text and return the detected markers."""
    return detect_markers(parse_components(text), margin)


def parse_vertical_position_output(
    text: str,
    row_count: int,
    width: int = 0,
    config: MarkerConfig = MarkerConfig(),
) -> int:
    """Parse ``"x y"`` text and return the detected gutter position."""
    return detect_gutter(parse_points(text), row_count, width, config)

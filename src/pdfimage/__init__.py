"""Top‑level package for PDF to image conversion.

This module exposes a programmatic API as well as a command line
interface entry point via the `pdfimage` console script.  See
`pdfimage.cli` for details on the supported subcommands.
"""

__all__ = [
    "commands", "config", "markers", "pdf", "cli"
]

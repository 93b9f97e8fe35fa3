"""Filename and size formatting helpers for document listings."""

from __future__ import annotations

import re

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")

_SOURCE_LABELS: dict[str, str] = {
    "MANUAL_UPLOAD": "Manual Upload",
    "EMAIL_INGEST": "Email Ingest",
    "API_UPLOAD": "API Upload",
}


def truncate_filename(filename: str, max_length: int = 30) -> str:
    """Shorten *filename* to *max_length* characters, keeping the extension.

    ``"quarterly-financial-report-2024-final.pdf"`` becomes
    ``"quarterly-financial-rep....pdf"``.  Names without an extension, dot
    files, and names whose extension is longer than half the budget are cut
    from the right instead.
    """
    if len(filename) <= max_length:
        return filename

    dot = filename.rfind(".")
    if dot <= 0:
        return filename[: max_length - 3] + "..."

    extension = filename[dot:]
    stem = filename[:dot]
    if len(extension) > max_length / 2:
        return filename[: max_length - 3] + "..."

    available = max_length - len(extension) - 3
    if available <= 0:
        return filename[: max_length - 3] + "..."

    return stem[:available] + "..." + extension


def display_filename(filename: str, max_length: int = 30) -> str:
    return truncate_filename(filename, max_length)


def filename_from_path(path: str) -> str:
    """Return the last component of a ``/`` or ``\\`` separated path."""
    return re.split(r"[/\\]", path)[-1] or path


def format_file_size(num_bytes: int) -> str:
    """Render a byte count as ``"1.5 KB"``, rounded to two decimals."""
    if num_bytes <= 0:
        return "0 Bytes"
    exponent = 0
    while num_bytes >= 1024 ** (exponent + 1) and exponent < len(_SIZE_UNITS) - 1:
        exponent += 1
    value = round(num_bytes / (1024**exponent), 2)
    return f"{value:g} {_SIZE_UNITS[exponent]}"


def format_source(source: str) -> str:
    return _SOURCE_LABELS.get(source, source)

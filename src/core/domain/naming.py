"""Filename derivation for downloaded SoftPaqs.

The name is a pure function of the metadata:
``"{title} - {version} ({MMM dd, yyyy}).exe"``.
"""

from __future__ import annotations

import re
from datetime import date

from core.domain.models import SoftpaqMetadata

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_COMPACT_DATE = re.compile(r"^\s*(\d{4})(\d{2})(\d{2})")
_ISO_DATE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})")

# Reserved on Windows, where the installers end up running.
_INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def parse_release_date(timestamp: str) -> date:
    """Read the leading ``yyyyMMdd`` (or ``yyyy-MM-dd``) of a CVA timestamp."""

    match = _COMPACT_DATE.match(timestamp) or _ISO_DATE.match(timestamp)
    if match is None:
        raise ValueError(f"Unrecognized SoftPaq timestamp: {timestamp!r}")
    year, month, day = (int(part) for part in match.groups())
    return date(year, month, day)


def format_release_date(timestamp: str) -> str:
    """``20230215`` -> ``Feb 15, 2023``."""

    released = parse_release_date(timestamp)
    return f"{_MONTHS[released.month - 1]} {released.day:02d}, {released.year}"


def sanitize_filename(value: str) -> str:
    cleaned = _INVALID_CHARS.sub("-", value)
    cleaned = re.sub(r"\s+", " ", cleaned).strip().rstrip(".")
    return cleaned or "softpaq"


def softpaq_filename(metadata: SoftpaqMetadata, *, suffix: str = ".exe") -> str:
    """Display filename of the installer downloaded for `metadata`."""

    stem = f"{metadata.title.strip()} - {metadata.version.strip()} ({format_release_date(metadata.timestamp)})"
    return sanitize_filename(stem) + suffix


def disambiguate_filename(filename: str, number: str, *, suffix: str = ".exe") -> str:
    """Append the SoftPaq number when another package already claimed `filename`."""

    stem = filename[: -len(suffix)] if filename.endswith(suffix) else filename
    return f"{stem} [{number}]{suffix}"

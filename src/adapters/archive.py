"""Zip packaging of the extracted SoftPaq directories."""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


def list_subdirectories(root: Path) -> list[Path]:
    """Immediate subdirectories of `root`, sorted by name."""

    return sorted((p for p in root.iterdir() if p.is_dir()), key=lambda p: p.name.lower())


def zip_directories(directories: Iterable[Path], archive_path: Path, *, base_dir: Path) -> Path:
    """Write `directories` (recursively) into `archive_path` at maximum compression.

    Entry names are relative to `base_dir`, so each directory becomes a
    top-level folder of the archive. An existing archive is replaced.
    """

    archive_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for directory in directories:
            zf.write(directory, directory.relative_to(base_dir).as_posix() + "/")
            for path in sorted(directory.rglob("*")):
                arcname = path.relative_to(base_dir).as_posix()
                if path.is_dir():
                    zf.write(path, arcname + "/")
                else:
                    zf.write(path, arcname)
            logger.debug("Archived %s", directory.name)
    return archive_path

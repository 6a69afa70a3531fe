"""Launches SoftPaq installers with their silent flags."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Sequence

from core.interfaces.catalog import InstallerRunner

logger = logging.getLogger(__name__)


class SubprocessInstallerRunner(InstallerRunner):
    """Runs the installer directly (no shell) and blocks until it exits."""

    def run(self, installer: Path, arguments: Sequence[str]) -> int:
        installer = installer.resolve()
        args = [str(installer), *arguments]
        logger.debug("Executing: %s", subprocess.list2cmdline(args))
        completed = subprocess.run(args, cwd=installer.parent, check=False)
        return completed.returncode

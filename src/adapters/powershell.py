"""PowerShell process wrapper.

Why a wrapper:
- Standardizes the command line (no profile, non-interactive, UTF-8 output)
  and the HPCMSL import preamble for every cmdlet call.
- Easy to test: patch `subprocess.run` or hand a stub runner to the adapter.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from typing import Any, Sequence

from core.domain.errors import VendorClientUnavailableError

logger = logging.getLogger(__name__)

_UTF8_PREAMBLE = "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8"

_MODULE_MISSING_MARKERS = ("no valid module file was found",)


def ps_quote(value: str) -> str:
    """Single-quoted PowerShell literal."""

    return "'" + value.replace("'", "''") + "'"


def parse_json_output(stdout: str) -> list[dict[str, Any]]:
    """Decode `ConvertTo-Json` output, which is an object for a single item."""

    text = stdout.strip().lstrip("\ufeff")
    if not text:
        return []
    data = json.loads(text)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError(f"Unexpected JSON payload type: {type(data).__name__}")
    return [item for item in data if isinstance(item, dict)]


class PowerShellRunner:
    """Runs PowerShell scripts with a set of modules pre-imported."""

    def __init__(self, executable: str = "powershell", *, modules: Sequence[str] = ("HPCMSL",)) -> None:
        self._executable = executable
        self._modules = tuple(modules)

    @property
    def executable(self) -> str:
        return self._executable

    def is_available(self) -> bool:
        return shutil.which(self._executable) is not None

    def build_command(self, script: str) -> list[str]:
        statements = [_UTF8_PREAMBLE]
        statements.extend(f"Import-Module {module} -ErrorAction Stop" for module in self._modules)
        statements.append(script)
        return [
            self._executable,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            "; ".join(statements),
        ]

    def run(self, script: str) -> subprocess.CompletedProcess[str]:
        """Run `script` and wait for it; no timeout is applied."""

        args = self.build_command(script)
        logger.debug("PowerShell: %s", script)
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except FileNotFoundError as exc:
            raise VendorClientUnavailableError(
                f"PowerShell executable not found: {self._executable}"
            ) from exc

        if result.returncode != 0 and self._module_missing(result.stderr or ""):
            raise VendorClientUnavailableError(
                f"PowerShell module(s) not available: {', '.join(self._modules)}. "
                "Install them with `Install-Module HPCMSL`."
            )
        return result

    def _module_missing(self, stderr: str) -> bool:
        lowered = stderr.lower()
        if not any(marker in lowered for marker in _MODULE_MISSING_MARKERS):
            return False
        return any(module.lower() in lowered for module in self._modules)

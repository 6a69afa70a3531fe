"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) without leaking into the CLI.
- Lets adapters (PowerShell/HPCMSL, installers, archive) read config consistently.
"""

from __future__ import annotations

import os
import sys
from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Word-bounded so tokens like "wasp12345" or "sp123x" are ignored.
DEFAULT_SOFTPAQ_PATTERN = r"\bsp\d{3,}\b"


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "softpaq-fetch"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "softpaq-fetch"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "softpaq-fetch"
    return Path.home() / ".config" / "softpaq-fetch"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str]) -> Path:
    """Write/update variables in the user's global .env."""

    env_path = get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# softpaq-fetch user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class CatalogMode(str, Enum):
    """How the list of SoftPaq identifiers is obtained from HPCMSL."""

    AUTO = "auto"
    STRUCTURED = "structured"
    WHATIF = "whatif"


class AppSettings(BaseSettings):
    """Central application settings.

    Why pydantic-settings:
    - Typed and validated at the edge (env vars) without cluttering the core.
    - A single configuration contract for the CLI and adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="SOFTPAQ_FETCH_",
        extra="ignore",
        case_sensitive=False,
        # Order: project first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    powershell_executable: str = Field(
        default="powershell",
        min_length=1,
        description="PowerShell executable used to reach the HPCMSL module.",
    )
    target_os: str = Field(
        default="win11",
        min_length=1,
        description="Operating system passed to the HPCMSL catalog cmdlets.",
    )
    target_os_version: str = Field(
        default="23H2",
        min_length=1,
        description="Operating system release passed to the HPCMSL catalog cmdlets.",
    )
    catalog_mode: CatalogMode = Field(
        default=CatalogMode.AUTO,
        description="Structured listing, what-if scraping, or structured with what-if fallback.",
    )

    installer_suffix: str = Field(
        default=".exe",
        min_length=1,
        description="Extension of the SoftPaq installers in the target directory.",
    )
    extract_arguments: list[str] = Field(
        default_factory=lambda: ["/s", "/e", "/f"],
        description="Silent-extract flags; the output directory is appended last.",
    )
    install_arguments: list[str] = Field(
        default_factory=lambda: ["/s"],
        description="Silent-install flags.",
    )

    archive_name: str = Field(
        default="DriverPack.zip",
        min_length=1,
        description="Archive written into the target directory by the packaging step.",
    )
    catalog_log_name: str = Field(
        default="Available Driver Packs.log",
        min_length=1,
        description="Raw catalog output kept in the target directory.",
    )
    softpaq_id_pattern: str = Field(
        default=DEFAULT_SOFTPAQ_PATTERN,
        min_length=1,
        description="Regex matching SoftPaq identifiers in what-if output (case-insensitive).",
    )

    log_level: str = Field(
        default="INFO",
        description="Console log level (DEBUG, INFO, WARNING, ERROR).",
    )
    log_file: Path | None = Field(
        default=None,
        description="Optional file receiving a full DEBUG log of the run.",
    )

"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Strict validation and self-documenting fields (Field) without coupling the
  core to PowerShell or the filesystem.
- The run report serializes to JSON as-is.

Note:
- These models describe *what* a SoftPaq run produced, not *how*.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class SoftpaqMetadata(BaseModel):
    """Descriptive metadata of one SoftPaq, as reported by HPCMSL."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    number: str = Field(
        ...,
        min_length=1,
        description="SoftPaq identifier (e.g. 'sp143521').",
    )
    title: str = Field(
        ...,
        min_length=1,
        alias="Title",
        description="Software title (US English).",
    )
    version: str = Field(
        ...,
        min_length=1,
        alias="Version",
        description="Vendor version string.",
    )
    timestamp: str = Field(
        ...,
        min_length=8,
        alias="Timestamp",
        description="Release timestamp, starting with yyyyMMdd or yyyy-MM-dd.",
    )


class CatalogListing(BaseModel):
    """Outcome of the catalog query step."""

    source: str = Field(
        ...,
        description="Which listing produced the ids: 'structured' or 'whatif'.",
    )
    softpaq_ids: list[str] = Field(
        default_factory=list,
        description="Distinct identifiers in encounter order.",
    )
    raw_output: str = Field(
        default="",
        description="Text returned by the vendor client (kept in the catalog log).",
    )


class DownloadStatus(str, Enum):
    DOWNLOADED = "downloaded"
    FAILED = "failed"


class PackageDownload(BaseModel):
    """Per-SoftPaq outcome of the metadata + download step."""

    number: str
    status: DownloadStatus
    path: Path | None = None
    metadata: SoftpaqMetadata | None = None
    error: str | None = None


class InstallerAction(str, Enum):
    EXTRACT = "extract"
    INSTALL = "install"


class InstallerRun(BaseModel):
    """Outcome of one installer invocation (extract or install)."""

    installer: Path
    action: InstallerAction
    return_code: int | None = Field(
        default=None,
        description="Process exit code; None when the process could not be started.",
    )
    output_dir: Path | None = Field(
        default=None,
        description="Extraction directory (extract runs only).",
    )
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.return_code == 0


class RunReport(BaseModel):
    """Aggregate of a full run, printed at the end and optionally exported."""

    platform: str = Field(..., min_length=1)
    platform_names: list[str] = Field(default_factory=list)
    target_os: str
    target_os_version: str
    target_dir: Path
    catalog_source: str | None = None
    softpaq_ids: list[str] = Field(default_factory=list)
    downloads: list[PackageDownload] = Field(default_factory=list)
    extractions: list[InstallerRun] = Field(default_factory=list)
    installs: list[InstallerRun] = Field(default_factory=list)
    archive_path: Path | None = None
    warnings: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def failed_downloads(self) -> list[PackageDownload]:
        return [d for d in self.downloads if d.status is DownloadStatus.FAILED]

    @property
    def failed_runs(self) -> list[InstallerRun]:
        return [r for r in (*self.extractions, *self.installs) if not r.succeeded]

    @property
    def failure_count(self) -> int:
        return len(self.failed_downloads) + len(self.failed_runs)

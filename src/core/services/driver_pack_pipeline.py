"""SoftPaq fetch orchestration.

The CLI delegates the whole workflow to these helpers: platform check,
catalog query, download, extraction, silent install and packaging. Each
step takes its inputs explicitly and returns plain models, so the pipeline
can be driven from tests with fake catalog/installer implementations.
Printing stays in the CLI; this module only logs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

from adapters.archive import list_subdirectories, zip_directories
from core.config import AppSettings
from core.domain.errors import PackageDownloadError
from core.domain.models import (
    CatalogListing,
    DownloadStatus,
    InstallerAction,
    InstallerRun,
    PackageDownload,
    RunReport,
)
from core.domain.naming import disambiguate_filename, softpaq_filename
from core.interfaces.catalog import InstallerRunner, SoftpaqCatalog

logger = logging.getLogger(__name__)


@dataclass
class FetchRequest:
    """Parameters that control one fetch run."""

    platform: str
    target_dir: Path
    extract: bool = False
    install: bool = False
    compress: bool = False
    os_name: str = "win11"
    os_version: str = "23H2"
    installer_suffix: str = ".exe"
    extract_arguments: Sequence[str] = ("/s", "/e", "/f")
    install_arguments: Sequence[str] = ("/s",)
    archive_name: str = "DriverPack.zip"
    catalog_log_name: str = "Available Driver Packs.log"

    @classmethod
    def from_settings(cls, settings: AppSettings, **overrides: object) -> "FetchRequest":
        """Build a request from settings; keyword overrides win (None is ignored)."""

        values: dict[str, object] = {
            "os_name": settings.target_os,
            "os_version": settings.target_os_version,
            "installer_suffix": settings.installer_suffix,
            "extract_arguments": tuple(settings.extract_arguments),
            "install_arguments": tuple(settings.install_arguments),
            "archive_name": settings.archive_name,
            "catalog_log_name": settings.catalog_log_name,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]


@dataclass
class PipelineHooks:
    """Optional callbacks for UI layers (progress, warnings)."""

    warning: Callable[[str], None] | None = None
    download_start: Callable[[int], None] | None = None
    download_progress: Callable[[int, int, str], None] | None = None
    installer_progress: Callable[[InstallerAction, Path], None] | None = None


@dataclass
class _RunState:
    report: RunReport
    hooks: PipelineHooks = field(default_factory=PipelineHooks)

    def warn(self, message: str) -> None:
        logger.warning("%s", message)
        self.report.warnings.append(message)
        if self.hooks.warning:
            self.hooks.warning(message)


def prepare_target_dir(target_dir: Path) -> Path:
    """Create the target directory (and parents) if missing; return it as an absolute path."""

    if not target_dir.is_dir():
        logger.info("Creating target directory %s", target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    return target_dir.resolve()


def query_catalog(
    catalog: SoftpaqCatalog,
    *,
    platform: str,
    os_name: str,
    os_version: str,
    log_path: Path,
) -> CatalogListing:
    """List the SoftPaqs for the platform and keep the raw answer in `log_path`."""

    logger.info("Querying SoftPaqs for platform %s (%s %s)", platform, os_name, os_version)
    listing = catalog.list_softpaqs(platform, os_name, os_version)
    log_path.write_text(listing.raw_output, encoding="utf-8")
    logger.info("Found %d SoftPaq(s) via %s listing", len(listing.softpaq_ids), listing.source)
    return listing


def download_softpaqs(
    catalog: SoftpaqCatalog,
    softpaq_ids: Sequence[str],
    target_dir: Path,
    *,
    installer_suffix: str = ".exe",
    hooks: PipelineHooks | None = None,
) -> list[PackageDownload]:
    """Fetch metadata and download every SoftPaq, continuing past failures."""

    hooks = hooks or PipelineHooks()
    total = len(softpaq_ids)
    if hooks.download_start:
        hooks.download_start(total)

    claimed: dict[str, str] = {}
    outcomes: list[PackageDownload] = []
    for index, number in enumerate(softpaq_ids, start=1):
        if hooks.download_progress:
            hooks.download_progress(index, total, number)
        metadata = None
        try:
            metadata = catalog.get_metadata(number)
            filename = softpaq_filename(metadata, suffix=installer_suffix)
            owner = claimed.get(filename.lower())
            if owner is not None and owner != number:
                filename = disambiguate_filename(filename, number, suffix=installer_suffix)
            claimed[filename.lower()] = number

            logger.info("Downloading %s -> %s", number, filename)
            path = catalog.download(number, target_dir / filename)
        except (PackageDownloadError, ValueError) as exc:
            # ValueError: unparseable release timestamp.
            error = str(exc) if isinstance(exc, PackageDownloadError) else f"{number}: {exc}"
            logger.warning("Skipping %s", error)
            outcomes.append(
                PackageDownload(number=number, status=DownloadStatus.FAILED, metadata=metadata, error=error)
            )
            continue

        outcomes.append(PackageDownload(number=number, status=DownloadStatus.DOWNLOADED, path=path, metadata=metadata))
    return outcomes


def find_installers(target_dir: Path, suffix: str = ".exe") -> list[Path]:
    """Every installer directly inside `target_dir`, not only this run's downloads."""

    suffix = suffix.lower()
    return sorted(
        (p for p in target_dir.iterdir() if p.is_file() and p.suffix.lower() == suffix),
        key=lambda p: p.name.lower(),
    )


def _run_installer(
    runner: InstallerRunner,
    installer: Path,
    action: InstallerAction,
    arguments: Sequence[str],
    output_dir: Path | None = None,
) -> InstallerRun:
    try:
        code = runner.run(installer, arguments)
    except OSError as exc:
        logger.warning("Could not start %s: %s", installer.name, exc)
        return InstallerRun(installer=installer, action=action, output_dir=output_dir, error=str(exc))

    if code != 0:
        logger.warning("%s %s exited with code %d", action.value.capitalize(), installer.name, code)
    return InstallerRun(installer=installer, action=action, return_code=code, output_dir=output_dir)


def extract_installers(
    runner: InstallerRunner,
    target_dir: Path,
    *,
    arguments: Sequence[str] = ("/s", "/e", "/f"),
    installer_suffix: str = ".exe",
    hooks: PipelineHooks | None = None,
) -> list[InstallerRun]:
    """Silently extract each installer into a subdirectory named after it."""

    hooks = hooks or PipelineHooks()
    runs: list[InstallerRun] = []
    target_dir = target_dir.resolve()
    for installer in find_installers(target_dir, installer_suffix):
        output_dir = target_dir / installer.stem
        if hooks.installer_progress:
            hooks.installer_progress(InstallerAction.EXTRACT, installer)
        logger.info("Extracting %s", installer.name)
        runs.append(
            _run_installer(runner, installer, InstallerAction.EXTRACT, [*arguments, str(output_dir)], output_dir)
        )
    return runs


def install_installers(
    runner: InstallerRunner,
    target_dir: Path,
    *,
    arguments: Sequence[str] = ("/s",),
    installer_suffix: str = ".exe",
    hooks: PipelineHooks | None = None,
) -> list[InstallerRun]:
    """Silently install each installer, one after the other."""

    hooks = hooks or PipelineHooks()
    runs: list[InstallerRun] = []
    target_dir = target_dir.resolve()
    for installer in find_installers(target_dir, installer_suffix):
        if hooks.installer_progress:
            hooks.installer_progress(InstallerAction.INSTALL, installer)
        logger.info("Installing %s", installer.name)
        runs.append(_run_installer(runner, installer, InstallerAction.INSTALL, list(arguments)))
    return runs


def package_extracted(target_dir: Path, archive_name: str = "DriverPack.zip") -> Path:
    """Zip every immediate subdirectory of `target_dir` into `archive_name`."""

    archive_path = target_dir / archive_name
    directories = list_subdirectories(target_dir)
    logger.info("Compressing %d folder(s) into %s", len(directories), archive_path.name)
    return zip_directories(directories, archive_path, base_dir=target_dir)


def run_fetch(
    request: FetchRequest,
    *,
    catalog: SoftpaqCatalog,
    runner: InstallerRunner,
    hooks: PipelineHooks | None = None,
) -> RunReport:
    """Run the whole workflow.

    Fatal errors (vendor client missing, platform rejected, catalog failure)
    propagate as `SoftpaqFetchError`; per-item failures are recorded in the
    returned report.
    """

    hooks = hooks or PipelineHooks()
    target_dir = prepare_target_dir(request.target_dir)
    report = RunReport(
        platform=request.platform,
        target_os=request.os_name,
        target_os_version=request.os_version,
        target_dir=target_dir,
    )
    state = _RunState(report=report, hooks=hooks)

    report.platform_names = catalog.device_details(request.platform)
    logger.info("Platform %s: %s", request.platform, ", ".join(report.platform_names))

    listing = query_catalog(
        catalog,
        platform=request.platform,
        os_name=request.os_name,
        os_version=request.os_version,
        log_path=target_dir / request.catalog_log_name,
    )
    report.catalog_source = listing.source
    report.softpaq_ids = list(listing.softpaq_ids)
    if not listing.softpaq_ids:
        state.warn(f"No SoftPaqs found for platform {request.platform}.")

    report.downloads = download_softpaqs(
        catalog,
        listing.softpaq_ids,
        target_dir,
        installer_suffix=request.installer_suffix,
        hooks=hooks,
    )

    if request.extract:
        report.extractions = extract_installers(
            runner,
            target_dir,
            arguments=request.extract_arguments,
            installer_suffix=request.installer_suffix,
            hooks=hooks,
        )

    if request.install:
        report.installs = install_installers(
            runner,
            target_dir,
            arguments=request.install_arguments,
            installer_suffix=request.installer_suffix,
            hooks=hooks,
        )

    if request.compress:
        if request.extract:
            report.archive_path = package_extracted(target_dir, request.archive_name)
        else:
            state.warn("Compression requires extraction (--extract); skipping the archive.")

    report.finished_at = datetime.now(timezone.utc)
    return report

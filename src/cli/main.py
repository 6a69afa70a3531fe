"""softpaq-fetch CLI (Typer).

Commands:
- `fetch`: query, download and optionally extract/install/compress SoftPaqs.
- `doctor`: environment diagnostics and user configuration.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from adapters.hp_cmsl import HPCMSLCatalog
from adapters.installer_runner import SubprocessInstallerRunner
from adapters.json_exporter import export_run_json
from cli import doctor
from cli.ui_components import (
    build_downloads_table,
    build_installer_table,
    build_summary_panel,
    print_banner,
)
from core.config import AppSettings, CatalogMode
from core.domain.errors import SoftpaqFetchError
from core.logging_config import setup_logging
from core.services.driver_pack_pipeline import FetchRequest, PipelineHooks, run_fetch

app = typer.Typer(
    no_args_is_help=True,
    help="Download HP SoftPaqs for a platform, then optionally extract, install and zip them.",
)
app.add_typer(doctor.app, name="doctor")

_console = Console()

EXIT_FATAL = 1
EXIT_ITEM_FAILURES = 2


def _progress_hooks() -> PipelineHooks:
    def on_download(index: int, total: int, number: str) -> None:
        _console.print(f"[dim][{index}/{total}][/dim] {number}")

    return PipelineHooks(download_progress=on_download)


@app.command()
def fetch(
    platform: str = typer.Option(..., "--platform", "-p", help="HP platform id (baseboard product code), e.g. 8760."),
    path: Path = typer.Option(
        ..., "--path", "-d", file_okay=False, resolve_path=True, help="Target directory; created if missing."
    ),
    extract: bool = typer.Option(False, "--extract", "-x", help="Silently extract every installer."),
    install: bool = typer.Option(False, "--install", "-i", help="Silently install every installer."),
    compress: bool = typer.Option(False, "--compress", "-c", help="Zip the extracted folders (needs --extract)."),
    os_name: str | None = typer.Option(None, "--os", help="Target OS (default from settings)."),
    os_version: str | None = typer.Option(None, "--os-version", help="Target OS release (default from settings)."),
    catalog_mode: CatalogMode | None = typer.Option(
        None, "--catalog-mode", case_sensitive=False, help="auto, structured or whatif."
    ),
    strict: bool = typer.Option(False, "--strict", help="Exit with code 2 if any download or installer run failed."),
    report_json: Path | None = typer.Option(None, "--report-json", dir_okay=False, help="Write the run report as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    no_banner: bool = typer.Option(False, "--no-banner", help="Skip the banner."),
) -> None:
    """Fetch the SoftPaqs of a platform into a target directory."""

    settings = AppSettings()
    if catalog_mode is not None:
        settings = settings.model_copy(update={"catalog_mode": catalog_mode})

    setup_logging("DEBUG" if verbose else settings.log_level, log_file=settings.log_file)
    if not no_banner:
        print_banner(_console)

    request = FetchRequest.from_settings(
        settings,
        platform=platform,
        target_dir=path,
        extract=extract,
        install=install,
        compress=compress,
        os_name=os_name,
        os_version=os_version,
    )

    try:
        report = run_fetch(
            request,
            catalog=HPCMSLCatalog(settings),
            runner=SubprocessInstallerRunner(),
            hooks=_progress_hooks(),
        )
    except SoftpaqFetchError as exc:
        _console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=EXIT_FATAL) from exc

    if report.downloads:
        _console.print(build_downloads_table(report))
    installer_table = build_installer_table(report)
    if installer_table is not None:
        _console.print(installer_table)
    _console.print(build_summary_panel(report))

    if report_json is not None:
        written = export_run_json(report=report, output_path=report_json)
        _console.print(f"[green]Report saved to:[/green] {written}")

    if strict and report.failure_count:
        raise typer.Exit(code=EXIT_ITEM_FAILURES)


def run() -> None:
    app()

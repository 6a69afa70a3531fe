"""CLI UI components (Rich).

Why separate components:
- Keeps command logic apart from visual details.
- Keeps the `fetch` command short.
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import DownloadStatus, RunReport


def print_banner(console: Console) -> None:
    """Print the welcome banner.

    Why here:
    - Avoids circular imports (main <-> doctor).
    - Can be disabled in non-interactive modes.
    """

    title = Text("softpaq-fetch", style="bold cyan")
    subtitle = Text("HP SoftPaq download • extract • driver pack", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_downloads_table(report: RunReport) -> Table:
    table = Table(title=f"SoftPaqs for platform {report.platform}")
    table.add_column("SoftPaq", style="cyan", no_wrap=True)
    table.add_column("File", style="white")
    table.add_column("Status", no_wrap=True)
    table.add_column("Error", style="red")

    for download in report.downloads:
        ok = download.status is DownloadStatus.DOWNLOADED
        table.add_row(
            download.number,
            escape(download.path.name) if download.path else "",
            "[green]downloaded[/green]" if ok else "[red]failed[/red]",
            escape(download.error or ""),
        )
    return table


def build_installer_table(report: RunReport) -> Table | None:
    runs = [*report.extractions, *report.installs]
    if not runs:
        return None

    table = Table(title="Installer runs")
    table.add_column("Installer", style="cyan")
    table.add_column("Action", no_wrap=True)
    table.add_column("Exit code", justify="right")
    table.add_column("Error", style="red")
    for run in runs:
        code = "" if run.return_code is None else str(run.return_code)
        style = "green" if run.succeeded else "red"
        table.add_row(escape(run.installer.name), run.action.value, f"[{style}]{code or '-'}[/{style}]", escape(run.error or ""))
    return table


def build_summary_panel(report: RunReport) -> Panel:
    """Panel closing a run: counts, archive, warnings."""

    downloaded = len(report.downloads) - len(report.failed_downloads)
    body = Text()
    if report.platform_names:
        body.append(f"Platform: {report.platform} ({', '.join(report.platform_names)})\n")
    body.append(f"Target OS: {report.target_os} {report.target_os_version}\n")
    body.append(f"SoftPaqs found: {len(report.softpaq_ids)} (via {report.catalog_source or 'n/a'})\n")
    body.append(f"Downloaded: {downloaded}/{len(report.downloads)}\n")
    if report.extractions:
        body.append(f"Extracted: {sum(r.succeeded for r in report.extractions)}/{len(report.extractions)}\n")
    if report.installs:
        body.append(f"Installed: {sum(r.succeeded for r in report.installs)}/{len(report.installs)}\n")
    if report.archive_path:
        body.append(f"Archive: {report.archive_path}\n", style="bold")
    for warning in report.warnings:
        body.append(f"Warning: {warning}\n", style="yellow")

    style = "green" if report.failure_count == 0 else "yellow"
    return Panel(body, title=Text("Summary", style=f"bold {style}"), border_style=style)

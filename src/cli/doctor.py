"""Doctor command for environment diagnostics."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from adapters.hp_cmsl import HPCMSLCatalog
from adapters.powershell import PowerShellRunner
from core.config import AppSettings, get_user_env_file, write_user_env_vars
from core.domain.errors import SoftpaqFetchError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


def _check_module(runner: PowerShellRunner) -> tuple[bool, str]:
    try:
        result = runner.run("(Get-Module HPCMSL).Version.ToString()")
    except SoftpaqFetchError as exc:
        return False, str(exc)
    if result.returncode != 0:
        return False, (result.stderr or "").strip() or f"exit code {result.returncode}"
    return True, f"HPCMSL {(result.stdout or '').strip()}"


def _check_platform(settings: AppSettings, platform: str) -> tuple[bool, str]:
    try:
        names = HPCMSLCatalog(settings).device_details(platform)
    except SoftpaqFetchError as exc:
        return False, str(exc)
    return True, ", ".join(names)


@app.command()
def run(
    platform: str | None = typer.Option(None, "--platform", "-p", help="Also resolve this platform id."),
) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()
    runner = PowerShellRunner(settings.powershell_executable)

    table = Table(title="softpaq-fetch Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    table.add_row("Target OS", "OK", f"{settings.target_os} {settings.target_os_version}")
    table.add_row("Catalog mode", "OK", settings.catalog_mode.value)
    table.add_row("User config", "OK" if get_user_env_file().exists() else "OPTIONAL", str(get_user_env_file()))

    ok_ps = runner.is_available()
    table.add_row("PowerShell", "OK" if ok_ps else "FAIL", settings.powershell_executable)

    ok_module = False
    if ok_ps:
        ok_module, detail_module = _check_module(runner)
        table.add_row("HPCMSL module", "OK" if ok_module else "FAIL", detail_module)

    if platform and ok_module:
        ok_platform, detail_platform = _check_platform(settings, platform)
        table.add_row(f"Platform {platform}", "OK" if ok_platform else "FAIL", detail_platform)

    _console.print(table)

    if not ok_ps:
        _console.print(
            "\n[yellow]Note:[/yellow] Set SOFTPAQ_FETCH_POWERSHELL_EXECUTABLE (e.g. `pwsh`) "
            "or run `doctor configure`."
        )
    elif not ok_module:
        _console.print("\n[yellow]Note:[/yellow] Install the module with `Install-Module HPCMSL -AcceptLicense`.")


@app.command()
def configure() -> None:
    """Interactive setup (stores config in the user config .env)."""

    settings = AppSettings()

    powershell = typer.prompt("PowerShell executable", default=settings.powershell_executable).strip()
    target_os = typer.prompt("Target OS", default=settings.target_os).strip()
    os_version = typer.prompt("Target OS version", default=settings.target_os_version).strip()

    if not powershell or not target_os or not os_version:
        raise typer.BadParameter("PowerShell executable, OS and OS version are required")

    env_path = write_user_env_vars(
        {
            "SOFTPAQ_FETCH_POWERSHELL_EXECUTABLE": powershell,
            "SOFTPAQ_FETCH_TARGET_OS": target_os,
            "SOFTPAQ_FETCH_TARGET_OS_VERSION": os_version,
        }
    )

    _console.print(f"[green]Saved config to:[/green] {env_path}")

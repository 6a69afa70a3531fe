"""SoftPaq catalog client backed by HP CMSL (PowerShell module `HPCMSL`).

Cmdlets used:
- `Get-HPDeviceDetails`  -> platform family names
- `Get-SoftpaqList`      -> structured listing (primary)
- `New-HPDriverPack -WhatIf` -> text report (fallback)
- `Get-SoftpaqMetadata`  -> title / version / timestamp
- `Get-Softpaq`          -> binary download
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from adapters.powershell import PowerShellRunner, parse_json_output, ps_quote
from adapters.whatif_report import dedupe_ids, extract_softpaq_ids
from core.config import DEFAULT_SOFTPAQ_PATTERN, AppSettings, CatalogMode
from core.domain.errors import CatalogQueryError, PackageDownloadError, PlatformRejectedError
from core.domain.models import CatalogListing, SoftpaqMetadata
from core.interfaces.catalog import SoftpaqCatalog

logger = logging.getLogger(__name__)

_METADATA_SCRIPT = (
    "$m = Get-SoftpaqMetadata -Number {number} -ErrorAction Stop; "
    "[PSCustomObject]@{{ "
    "Title = $m.'Software Title'.US; "
    "Version = $m.General.Version; "
    "Timestamp = $m.'CVA File Information'.CVATimeStamp "
    "}} | ConvertTo-Json -Compress"
)


def _softpaq_number(number: str) -> str:
    digits = number.lower().removeprefix("sp")
    return digits if digits.isdigit() else number


def _error_text(stderr: str | None, returncode: int) -> str:
    text = (stderr or "").strip()
    if text:
        return text.splitlines()[0]
    return f"exit code {returncode}"


class HPCMSLCatalog(SoftpaqCatalog):
    """Talks to HPCMSL through a `PowerShellRunner`."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        runner: PowerShellRunner | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._runner = runner or PowerShellRunner(self._settings.powershell_executable)

    def device_details(self, platform: str) -> list[str]:
        script = (
            f"Get-HPDeviceDetails -Platform {ps_quote(platform)} -ErrorAction Stop | "
            "Select-Object Name | ConvertTo-Json -Compress"
        )
        result = self._runner.run(script)
        if result.returncode != 0:
            raise PlatformRejectedError(
                f"Platform {platform!r} rejected by HPCMSL: {_error_text(result.stderr, result.returncode)}"
            )
        try:
            items = parse_json_output(result.stdout or "")
        except (json.JSONDecodeError, ValueError) as exc:
            raise PlatformRejectedError(f"Unreadable device details for {platform!r}: {exc}") from exc

        names = [str(item["Name"]).strip() for item in items if item.get("Name")]
        if not names:
            raise PlatformRejectedError(f"HPCMSL knows no device for platform {platform!r}")
        return names

    def list_softpaqs(self, platform: str, os_name: str, os_version: str) -> CatalogListing:
        mode = self._settings.catalog_mode
        if mode is CatalogMode.WHATIF:
            return self._list_whatif(platform, os_name, os_version)
        if mode is CatalogMode.STRUCTURED:
            return self._list_structured(platform, os_name, os_version)

        try:
            return self._list_structured(platform, os_name, os_version)
        except CatalogQueryError as exc:
            logger.warning("Structured SoftPaq listing failed (%s); falling back to the what-if report.", exc)
            return self._list_whatif(platform, os_name, os_version)

    def _list_structured(self, platform: str, os_name: str, os_version: str) -> CatalogListing:
        script = (
            f"Get-SoftpaqList -Platform {ps_quote(platform)} -Os {ps_quote(os_name)} "
            f"-OsVer {ps_quote(os_version)} -Category Driver -ErrorAction Stop | "
            "Select-Object Id, Name, Version | ConvertTo-Json -Depth 4"
        )
        result = self._runner.run(script)
        if result.returncode != 0:
            raise CatalogQueryError(_error_text(result.stderr, result.returncode))
        try:
            items = parse_json_output(result.stdout or "")
        except (json.JSONDecodeError, ValueError) as exc:
            raise CatalogQueryError(f"Unreadable Get-SoftpaqList output: {exc}") from exc

        ids = dedupe_ids(str(item["Id"]) for item in items if item.get("Id"))
        return CatalogListing(source="structured", softpaq_ids=ids, raw_output=result.stdout or "")

    def _list_whatif(self, platform: str, os_name: str, os_version: str) -> CatalogListing:
        script = (
            f"New-HPDriverPack -Platform {ps_quote(platform)} -Os {ps_quote(os_name)} "
            f"-OsVer {ps_quote(os_version)} -WhatIf -ErrorAction Stop *>&1 | Out-String -Width 4096"
        )
        result = self._runner.run(script)
        if result.returncode != 0:
            raise CatalogQueryError(
                f"HPCMSL rejected the driver pack simulation for {platform!r}: "
                f"{_error_text(result.stderr, result.returncode)}"
            )
        text = result.stdout or ""
        pattern = self._settings.softpaq_id_pattern or DEFAULT_SOFTPAQ_PATTERN
        return CatalogListing(
            source="whatif",
            softpaq_ids=extract_softpaq_ids(text, pattern),
            raw_output=text,
        )

    def get_metadata(self, number: str) -> SoftpaqMetadata:
        result = self._runner.run(_METADATA_SCRIPT.format(number=ps_quote(_softpaq_number(number))))
        if result.returncode != 0:
            raise PackageDownloadError(number, f"metadata lookup failed: {_error_text(result.stderr, result.returncode)}")
        try:
            items = parse_json_output(result.stdout or "")
            if not items:
                raise ValueError("empty metadata")
            return SoftpaqMetadata.model_validate({**items[0], "number": number})
        except (json.JSONDecodeError, ValueError, ValidationError) as exc:
            raise PackageDownloadError(number, f"unusable metadata: {exc}") from exc

    def download(self, number: str, destination: Path) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        script = (
            f"Get-Softpaq -Number {ps_quote(_softpaq_number(number))} "
            f"-SaveAs {ps_quote(str(destination))} -Overwrite -ErrorAction Stop"
        )
        result = self._runner.run(script)
        if result.returncode != 0:
            raise PackageDownloadError(number, f"download failed: {_error_text(result.stderr, result.returncode)}")
        if not destination.is_file():
            raise PackageDownloadError(number, f"download reported success but {destination.name} is missing")
        return destination

"""Shared fakes for the fetch pipeline.

`FakeCatalog` and `FakeInstallerRunner` implement the catalog/installer
protocols in memory so tests never need PowerShell or HPCMSL.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pytest

from adapters.whatif_report import extract_softpaq_ids
from core.domain.errors import PackageDownloadError, PlatformRejectedError
from core.domain.models import CatalogListing, SoftpaqMetadata

WHATIF_8760 = """\
What if: Performing the operation "New-HPDriverPack" on target "8760 win11 23H2".
Driver pack will contain:
  sp143521  Intel Chipset Installation Utility
  sp144012  Realtek High-Definition (HD) Audio Driver
  SP143521  Intel Chipset Installation Utility (superseded entry)
  sp145110  Intel Wireless LAN Driver
"""


def make_metadata(number: str, title: str, version: str = "1.0.0", timestamp: str = "20230215") -> SoftpaqMetadata:
    return SoftpaqMetadata(number=number, title=title, version=version, timestamp=timestamp)


DEFAULT_METADATA = {
    "sp143521": make_metadata("sp143521", "Intel Chipset Installation Utility", "10.1.19199.8340", "20230215"),
    "sp144012": make_metadata("sp144012", "Realtek High-Definition (HD) Audio Driver", "6.0.9411.1", "20230403"),
    "sp145110": make_metadata("sp145110", "Intel Wireless LAN Driver", "22.200.0.6", "20231120"),
}


class FakeCatalog:
    def __init__(
        self,
        metadata: dict[str, SoftpaqMetadata] | None = None,
        *,
        listing_text: str = WHATIF_8760,
        platforms: dict[str, list[str]] | None = None,
        failing_downloads: Sequence[str] = (),
    ) -> None:
        self.metadata = dict(DEFAULT_METADATA if metadata is None else metadata)
        self.listing_text = listing_text
        self.platforms = platforms if platforms is not None else {"8760": ["HP EliteBook 860 16 inch G9"]}
        self.failing_downloads = set(failing_downloads)
        self.downloaded: list[tuple[str, Path]] = []
        self.queried: list[tuple[str, str, str]] = []

    def device_details(self, platform: str) -> list[str]:
        names = self.platforms.get(platform)
        if not names:
            raise PlatformRejectedError(f"HPCMSL knows no device for platform {platform!r}")
        return list(names)

    def list_softpaqs(self, platform: str, os_name: str, os_version: str) -> CatalogListing:
        self.queried.append((platform, os_name, os_version))
        return CatalogListing(
            source="whatif",
            softpaq_ids=extract_softpaq_ids(self.listing_text),
            raw_output=self.listing_text,
        )

    def get_metadata(self, number: str) -> SoftpaqMetadata:
        try:
            return self.metadata[number]
        except KeyError:
            raise PackageDownloadError(number, "metadata lookup failed: not found") from None

    def download(self, number: str, destination: Path) -> Path:
        if number in self.failing_downloads:
            raise PackageDownloadError(number, "download failed: connection reset")
        assert destination.parent.is_dir(), "target directory must exist before downloading"
        destination.write_bytes(b"MZ" + number.encode())
        self.downloaded.append((number, destination))
        return destination


class FakeInstallerRunner:
    """Records invocations; extract runs create the output folder with a payload."""

    def __init__(self, exit_codes: dict[str, int] | None = None) -> None:
        self.calls: list[tuple[Path, list[str]]] = []
        self.exit_codes = exit_codes or {}

    def run(self, installer: Path, arguments: Sequence[str]) -> int:
        args = list(arguments)
        self.calls.append((installer, args))
        if "/e" in args:
            output_dir = Path(args[-1])
            output_dir.mkdir(parents=True, exist_ok=True)
            (output_dir / "setup.inf").write_text(f"; {installer.name}\n", encoding="utf-8")
        return self.exit_codes.get(installer.name, 0)

    def calls_with(self, flag: str) -> list[Path]:
        return [installer for installer, args in self.calls if flag in args]


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def fake_runner() -> FakeInstallerRunner:
    return FakeInstallerRunner()

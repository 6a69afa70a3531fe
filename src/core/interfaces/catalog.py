"""Contracts for the vendor catalog client and the installer launcher.

Why Protocol:
- A structural contract (duck typing) without rigid inheritance.
- The HPCMSL adapter and test fakes are interchangeable.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

from core.domain.models import CatalogListing, SoftpaqMetadata


@runtime_checkable
class SoftpaqCatalog(Protocol):
    """Minimal surface of a SoftPaq catalog/download client.

    Design rules:
    - Every call blocks until the vendor client has answered.
    - Fatal conditions raise `SoftpaqFetchError` subclasses; per-item
      failures in `get_metadata`/`download` raise `PackageDownloadError`.
    """

    def device_details(self, platform: str) -> list[str]:
        """Family name(s) of the platform; raises `PlatformRejectedError` if unknown."""

        ...

    def list_softpaqs(self, platform: str, os_name: str, os_version: str) -> CatalogListing:
        """Identifiers of the SoftPaqs applicable to the platform/OS triple."""

        ...

    def get_metadata(self, number: str) -> SoftpaqMetadata:
        ...

    def download(self, number: str, destination: Path) -> Path:
        ...


@runtime_checkable
class InstallerRunner(Protocol):
    """Launches an installer and waits for it to exit."""

    def run(self, installer: Path, arguments: Sequence[str]) -> int:
        """Return the process exit code; raise `OSError` if it cannot start."""

        ...

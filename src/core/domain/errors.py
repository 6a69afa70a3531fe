"""Errors raised across the fetch workflow.

Fatal errors abort the run; `PackageDownloadError` is per-item and only
recorded.
"""

from __future__ import annotations


class SoftpaqFetchError(Exception):
    """Base class for every error the workflow raises on purpose."""


class VendorClientUnavailableError(SoftpaqFetchError):
    """PowerShell or the HPCMSL module cannot be reached."""


class PlatformRejectedError(SoftpaqFetchError):
    """The vendor client does not know the platform identifier."""


class CatalogQueryError(SoftpaqFetchError):
    """The catalog listing could not be produced."""


class PackageDownloadError(SoftpaqFetchError):
    """Metadata lookup or download failed for a single SoftPaq."""

    def __init__(self, number: str, message: str) -> None:
        super().__init__(f"{number}: {message}")
        self.number = number

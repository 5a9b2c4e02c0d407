"""Errors raised while locating, downloading or installing assfonts."""

from __future__ import annotations


class InstallerError(RuntimeError):
    """Raised when the assfonts binary cannot be installed."""


class DownloadError(InstallerError):
    """Raised when a release asset cannot be downloaded."""


class DownloadTimeoutError(DownloadError):
    """Raised when a download exceeds its time budget."""


__all__ = ["DownloadError", "DownloadTimeoutError", "InstallerError"]

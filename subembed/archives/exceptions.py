"""Exception hierarchy for archive detection and extraction."""

from __future__ import annotations

from typing import Optional


class ArchiveError(RuntimeError):
    """Base exception raised by the archive extraction engine."""


class ExtractionError(ArchiveError):
    """Raised when an extraction stage fails or yields an unexpected layout."""

    def __init__(self, message: str, *, stage: str, status: Optional[int] = None) -> None:
        self.stage = stage
        self.status = status
        detail = f"stage {stage}"
        if status is not None:
            detail += f", status {status}"
        super().__init__(f"{message} ({detail})")


class MountError(ArchiveError):
    """Raised when a sandbox mount point cannot be created, used or released."""


class UnsupportedArchiveError(ArchiveError, ValueError):
    """Raised when a path that is not a supported archive reaches the extractor."""


__all__ = ["ArchiveError", "ExtractionError", "MountError", "UnsupportedArchiveError"]

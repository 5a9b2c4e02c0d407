"""Content-based archive format detection."""

from __future__ import annotations

import gzip
import zlib
from enum import Enum
from pathlib import Path

from subembed import logging_manager as log_mgr

logger = log_mgr.logger

TAR_BLOCK_SIZE = 512
_SNIFF_BYTES = 4096

_ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")
_RAR_SIGNATURES = (b"Rar!\x1a\x07\x00", b"Rar!\x1a\x07\x01\x00")
_SEVEN_ZIP_SIGNATURE = b"7z\xbc\xaf\x27\x1c"
_GZIP_SIGNATURE = b"\x1f\x8b"
_USTAR_OFFSET = 257


class ArchiveFormat(str, Enum):
    """Closed set of archive layouts the extractor understands."""

    ZIP = "zip"
    RAR = "rar"
    SEVEN_ZIP = "7z"
    TAR = "tar"
    TAR_GZ = "tar.gz"
    NONE = "none"

    @property
    def is_archive(self) -> bool:
        return self is not ArchiveFormat.NONE


def _parse_octal(field: bytes) -> int | None:
    text = field.rstrip(b"\x00 ").lstrip(b" ")
    if not text:
        return None
    try:
        return int(text, 8)
    except ValueError:
        return None


def is_tar_header(header: bytes) -> bool:
    """Return ``True`` when ``header`` looks like the first block of a tar stream."""

    if len(header) < TAR_BLOCK_SIZE:
        return False
    if header[_USTAR_OFFSET:_USTAR_OFFSET + 5] == b"ustar":
        return True
    # Pre-POSIX archives carry no magic; fall back to the header checksum.
    expected = _parse_octal(header[148:156])
    if expected is None:
        return False
    block = header[:TAR_BLOCK_SIZE]
    actual = sum(block[:148]) + 8 * 0x20 + sum(block[156:])
    return actual == expected and any(block[:100])


def sniff_bytes(head: bytes) -> ArchiveFormat:
    """Classify raw leading bytes; gzip payloads are reported as ``NONE`` here."""

    if head.startswith(_ZIP_SIGNATURES):
        return ArchiveFormat.ZIP
    if head.startswith(_RAR_SIGNATURES):
        return ArchiveFormat.RAR
    if head.startswith(_SEVEN_ZIP_SIGNATURE):
        return ArchiveFormat.SEVEN_ZIP
    if is_tar_header(head):
        return ArchiveFormat.TAR
    return ArchiveFormat.NONE


def _gzip_wraps_tar(path: Path) -> bool:
    with gzip.open(path, "rb") as handle:
        return is_tar_header(handle.read(TAR_BLOCK_SIZE))


def sniff_format(path: Path | str) -> ArchiveFormat:
    """Inspect the content of ``path`` and return its archive format.

    The filename extension is never consulted. Unreadable paths, directories and
    unrecognised content all yield :attr:`ArchiveFormat.NONE`.
    """

    target = Path(path)
    try:
        with target.open("rb") as handle:
            head = handle.read(_SNIFF_BYTES)
        if head.startswith(_GZIP_SIGNATURE):
            return ArchiveFormat.TAR_GZ if _gzip_wraps_tar(target) else ArchiveFormat.NONE
        return sniff_bytes(head)
    except (OSError, EOFError, zlib.error) as exc:
        logger.debug(
            "Format detection failed for %s: %s",
            target,
            exc,
            extra={"event": "archives.sniff.failed"},
        )
        return ArchiveFormat.NONE


def is_archive_file(path: Path | str) -> bool:
    """Return ``True`` when ``path`` holds one of the supported archive formats."""

    return sniff_format(path).is_archive


__all__ = ["ArchiveFormat", "is_archive_file", "is_tar_header", "sniff_bytes", "sniff_format"]

"""Embedded extraction tool operating on :class:`ExtractionSandbox` paths.

The tool mirrors ``7z x -y <archive>``: it unpacks one container layer into the
sandbox's current directory, overwriting existing files, and reports a 7-Zip
style exit status instead of raising.
"""

from __future__ import annotations

import gzip
import lzma
import os
import posixpath
import shutil
import stat
import tarfile
import tempfile
import zipfile
import zlib
from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path
from typing import BinaryIO, Callable, Dict, List, Optional, Tuple

import py7zr
import rarfile
from py7zr import exceptions as py7zr_errors

from subembed import logging_manager as log_mgr

from .sandbox import ExtractionSandbox

logger = log_mgr.logger

_COPY_CHUNK = 1 << 20


class Codec(str, Enum):
    """Single container layer understood by the extraction tool."""

    ZIP = "zip"
    RAR = "rar"
    SEVEN_ZIP = "7z"
    TAR = "tar"
    GZIP = "gzip"


class ToolStatus(IntEnum):
    """Exit statuses reported by :class:`ExtractionTool` (7-Zip conventions)."""

    OK = 0
    WARNING = 1
    FATAL = 2


@dataclass(frozen=True, slots=True)
class ToolOutcome:
    """Result of a single extraction tool invocation."""

    status: int
    error: Optional[BaseException] = None
    entries: int = 0

    @property
    def ok(self) -> bool:
        return self.status == ToolStatus.OK


# Anything a codec raises for a bad, encrypted or unsupported archive. zipfile
# reports encrypted members as RuntimeError and unknown methods as
# NotImplementedError; py7zr lets lzma errors through on corrupt streams.
_TOOL_ERRORS: Tuple[type[BaseException], ...] = (
    OSError,
    EOFError,
    ValueError,
    RuntimeError,
    NotImplementedError,
    zlib.error,
    lzma.LZMAError,
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    tarfile.TarError,
    rarfile.Error,
    py7zr_errors.ArchiveError,
    py7zr_errors.PasswordRequired,
    py7zr_errors.AbsolutePathError,
)


def member_path(target_dir: str, name: str) -> Optional[str]:
    """Map an archive member name below ``target_dir``.

    Returns ``None`` for absolute names and names that would escape the target.
    The archive root (``.`` or an empty name) maps to ``target_dir`` itself.
    """

    normalized = name.replace("\\", "/")
    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if normalized.startswith("/") or ".." in parts:
        return None
    if parts and len(parts[0]) == 2 and parts[0][1] == ":":
        return None
    return posixpath.join(target_dir, *parts)


class _Writer:
    """Writes archive members through the sandbox and defers directory modes."""

    def __init__(self, sandbox: ExtractionSandbox, target_dir: str) -> None:
        self.sandbox = sandbox
        self.target_dir = target_dir
        self.entries = 0
        self._dir_modes: List[Tuple[str, int]] = []

    def _path(self, name: str) -> Optional[str]:
        path = member_path(self.target_dir, name)
        if path is None:
            logger.warning(
                "Skipping unsafe archive member %r",
                name,
                extra={"event": "archives.tool.unsafe_member"},
            )
            return None
        if path == self.target_dir:
            # Root entry of archives built with e.g. ``tar -C dir .``.
            return None
        return path

    def directory(self, name: str, mode: Optional[int] = None) -> None:
        path = self._path(name)
        if path is None:
            return
        self.sandbox.makedirs(path)
        if mode is not None:
            self._dir_modes.append((path, mode))

    def file(self, name: str, stream: BinaryIO, mode: Optional[int] = None) -> None:
        path = self._path(name)
        if path is None:
            return
        self.sandbox.makedirs(posixpath.dirname(path))
        with self.sandbox.open_write(path) as handle:
            shutil.copyfileobj(stream, handle, _COPY_CHUNK)
        if mode is not None:
            self.sandbox.chmod(path, mode)
        self.entries += 1

    def finish(self) -> None:
        for path, mode in sorted(self._dir_modes, key=lambda item: item[0].count("/"), reverse=True):
            self.sandbox.chmod(path, mode)


def _zip_mode(info: zipfile.ZipInfo) -> Optional[int]:
    # Only archives created on Unix carry meaningful permission bits.
    if info.create_system != 3:
        return None
    return stat.S_IMODE(info.external_attr >> 16)


def _extract_zip(source: BinaryIO, archive_name: str, writer: _Writer) -> None:
    with zipfile.ZipFile(source) as archive:
        for info in archive.infolist():
            if info.is_dir():
                writer.directory(info.filename, _zip_mode(info))
                continue
            with archive.open(info) as stream:
                writer.file(info.filename, stream, _zip_mode(info))


def _extract_tar(source: BinaryIO, archive_name: str, writer: _Writer) -> None:
    with tarfile.open(fileobj=source, mode="r:") as archive:
        for member in archive:
            if member.isdir():
                writer.directory(member.name, stat.S_IMODE(member.mode))
            elif member.isfile():
                stream = archive.extractfile(member)
                if stream is None:
                    continue
                with stream:
                    writer.file(member.name, stream, stat.S_IMODE(member.mode))
            else:
                logger.debug(
                    "Skipping non-regular tar member %s",
                    member.name,
                    extra={"event": "archives.tool.skip_member"},
                )


def _gzip_output_name(archive_name: str) -> str:
    lowered = archive_name.lower()
    if lowered.endswith(".tgz"):
        return archive_name[:-4] + ".tar"
    if lowered.endswith(".gz") and len(archive_name) > 3:
        return archive_name[:-3]
    return archive_name + ".tar"


def _extract_gzip(source: BinaryIO, archive_name: str, writer: _Writer) -> None:
    with gzip.GzipFile(fileobj=source, mode="rb") as stream:
        writer.file(_gzip_output_name(archive_name), stream)


def _extract_rar(source: BinaryIO, archive_name: str, writer: _Writer) -> None:
    with rarfile.RarFile(source) as archive:
        for info in archive.infolist():
            mode = stat.S_IMODE(info.mode) if info.host_os == rarfile.RAR_OS_UNIX and info.mode else None
            if info.is_dir():
                writer.directory(info.filename, mode)
                continue
            with archive.open(info) as stream:
                writer.file(info.filename, stream, mode)


def _extract_seven_zip(source: BinaryIO, archive_name: str, writer: _Writer) -> None:
    # py7zr decodes solid blocks as a whole; stage them on disk, then replay the
    # tree through the sandbox so mode handling stays identical to other codecs.
    with tempfile.TemporaryDirectory(prefix="subembed_7z_") as staging:
        with py7zr.SevenZipFile(source, mode="r") as archive:
            archive.extractall(path=staging)
        root = Path(staging)
        for current, dirnames, filenames in os.walk(root):
            dirnames.sort()
            base = Path(current)
            for dirname in dirnames:
                writer.directory((base / dirname).relative_to(root).as_posix())
            for filename in sorted(filenames):
                path = base / filename
                if path.is_symlink():
                    continue
                with path.open("rb") as stream:
                    writer.file(path.relative_to(root).as_posix(), stream)


_Extractor = Callable[[BinaryIO, str, _Writer], None]

_CODECS: Dict[Codec, _Extractor] = {
    Codec.ZIP: _extract_zip,
    Codec.RAR: _extract_rar,
    Codec.SEVEN_ZIP: _extract_seven_zip,
    Codec.TAR: _extract_tar,
    Codec.GZIP: _extract_gzip,
}


class ExtractionTool:
    """Unpack one container layer into the sandbox's current directory."""

    def run(self, sandbox: ExtractionSandbox, codec: Codec, archive_path: str) -> ToolOutcome:
        extractor = _CODECS[codec]
        target_dir = sandbox.cwd
        writer = _Writer(sandbox, target_dir)
        archive_name = posixpath.basename(sandbox.resolve(archive_path))
        logger.debug(
            "Running %s extraction of %s into %s",
            codec.value,
            archive_path,
            target_dir,
            extra={"event": "archives.tool.run"},
        )
        try:
            with sandbox.open_read(archive_path) as source:
                extractor(source, archive_name, writer)
            writer.finish()
        except _TOOL_ERRORS as exc:
            logger.warning(
                "%s extraction of %s failed: %s",
                codec.value,
                archive_name,
                exc,
                extra={"event": "archives.tool.failed"},
            )
            return ToolOutcome(status=ToolStatus.FATAL, error=exc, entries=writer.entries)
        return ToolOutcome(status=ToolStatus.OK, entries=writer.entries)


__all__ = ["Codec", "ExtractionTool", "ToolOutcome", "ToolStatus", "member_path"]

"""Archive extraction engine bridging host directories into the sandbox."""

from __future__ import annotations

import contextlib
import os
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Mapping, Optional
from uuid import uuid4

from subembed import logging_manager as log_mgr

from .codecs import Codec, ExtractionTool
from .exceptions import ExtractionError, MountError, UnsupportedArchiveError
from .formats import ArchiveFormat, sniff_format
from .sandbox import ExtractionSandbox, ModePolicy, skip_empty_modes

logger = log_mgr.logger

_SINGLE_PASS_CODECS: Mapping[ArchiveFormat, Codec] = {
    ArchiveFormat.ZIP: Codec.ZIP,
    ArchiveFormat.RAR: Codec.RAR,
    ArchiveFormat.SEVEN_ZIP: Codec.SEVEN_ZIP,
    ArchiveFormat.TAR: Codec.TAR,
}
_SPECIAL_FORMATS = frozenset({ArchiveFormat.TAR_GZ, ArchiveFormat.NONE})


def check_format_coverage(
    single_pass: Mapping[ArchiveFormat, Codec], special: frozenset[ArchiveFormat]
) -> None:
    """Fail unless every :class:`ArchiveFormat` has exactly one handling path."""

    overlap = set(single_pass) & special
    if overlap:
        names = ", ".join(sorted(fmt.value for fmt in overlap))
        raise RuntimeError(f"ArchiveFormat members with two extraction paths: {names}")
    missing = set(ArchiveFormat) - set(single_pass) - special
    if missing:
        names = ", ".join(sorted(fmt.value for fmt in missing))
        raise RuntimeError(f"ArchiveFormat members without an extraction path: {names}")


check_format_coverage(_SINGLE_PASS_CODECS, _SPECIAL_FORMATS)


def new_mount_id() -> str:
    return uuid4().hex


@dataclass(frozen=True, slots=True)
class _Bridge:
    source_dir: str
    dest_dir: str
    archive: str


def count_files(directory: Path) -> int:
    return sum(len(files) for _, _, files in os.walk(directory))


class ArchiveExtractor:
    """Extract zip, rar, 7z, tar and tar.gz archives into host directories."""

    def __init__(
        self,
        *,
        tool: Optional[ExtractionTool] = None,
        sandbox_factory: Callable[[ModePolicy], ExtractionSandbox] = ExtractionSandbox,
        mode_policy: ModePolicy = skip_empty_modes,
        id_factory: Callable[[], str] = new_mount_id,
    ) -> None:
        self._tool = tool or ExtractionTool()
        self._sandbox_factory = sandbox_factory
        self._mode_policy = mode_policy
        self._id_factory = id_factory

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def extract(
        self,
        archive_path: Path | str,
        dest_dir: Path | str,
        *,
        archive_format: Optional[ArchiveFormat] = None,
    ) -> Path:
        """Extract ``archive_path`` into ``dest_dir`` and return the destination."""

        archive = Path(archive_path).resolve(strict=True)
        destination = Path(dest_dir)
        destination.mkdir(parents=True, exist_ok=True)
        destination = destination.resolve()

        detected = archive_format or sniff_format(archive)
        logger.info(
            "Extracting %s archive %s",
            detected.value,
            archive.name,
            extra={"event": "archives.extract.start"},
        )

        if detected is ArchiveFormat.NONE:
            raise UnsupportedArchiveError(f"{archive} is not a supported archive")
        if detected is ArchiveFormat.TAR_GZ:
            self._extract_two_stage(archive, destination)
        else:
            self._extract_single(archive, destination, _SINGLE_PASS_CODECS[detected])

        logger.info(
            "Extraction finished, %s files",
            count_files(destination),
            extra={"event": "archives.extract.done"},
        )
        return destination

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @contextlib.contextmanager
    def _bridged(
        self, sandbox: ExtractionSandbox, archive: Path, destination: Path, mount_id: str
    ) -> Iterator[_Bridge]:
        source_mount = f"/src_{mount_id}"
        dest_mount = f"/dest_{mount_id}"
        created: list[str] = []
        mounted: list[str] = []
        try:
            for point, host in ((source_mount, archive.parent), (dest_mount, destination)):
                sandbox.mkdir(point)
                created.append(point)
                sandbox.mount(host, point)
                mounted.append(point)
            yield _Bridge(
                source_dir=source_mount,
                dest_dir=dest_mount,
                archive=posixpath.join(source_mount, archive.name),
            )
        finally:
            _teardown(sandbox, mounted, created)

    def _run(self, sandbox: ExtractionSandbox, codec: Codec, archive_vpath: str, stage: str) -> None:
        outcome = self._tool.run(sandbox, codec, archive_vpath)
        if not outcome.ok:
            raise ExtractionError(
                f"Extraction of {posixpath.basename(archive_vpath)} failed",
                stage=stage,
                status=outcome.status,
            ) from outcome.error

    def _extract_single(self, archive: Path, destination: Path, codec: Codec) -> None:
        sandbox = self._sandbox_factory(self._mode_policy)
        with self._bridged(sandbox, archive, destination, self._id_factory()) as bridge:
            sandbox.chdir(bridge.dest_dir)
            self._run(sandbox, codec, bridge.archive, stage=codec.value)

    def _extract_two_stage(self, archive: Path, destination: Path) -> None:
        sandbox = self._sandbox_factory(self._mode_policy)
        mount_id = self._id_factory()
        scratch = f"/tmp_{mount_id}"
        with self._bridged(sandbox, archive, destination, mount_id) as bridge:
            sandbox.mkdir(scratch)
            try:
                # Stage 1: gzip -> tar, kept in the memory-backed scratch area.
                sandbox.chdir(scratch)
                self._run(sandbox, Codec.GZIP, bridge.archive, stage="gzip")
                entries = sandbox.readdir(scratch)
                if len(entries) != 1:
                    raise ExtractionError(
                        f"Expected exactly one intermediate tar entry, found {len(entries)}",
                        stage="gzip",
                    )

                # Stage 2: tar -> files on the real destination mount.
                sandbox.chdir(bridge.dest_dir)
                self._run(sandbox, Codec.TAR, posixpath.join(scratch, entries[0]), stage="tar")
            finally:
                _discard_scratch(sandbox, scratch)


def _teardown(sandbox: ExtractionSandbox, mounted: list[str], created: list[str]) -> None:
    try:
        sandbox.chdir("/")
    except (OSError, MountError):  # pragma: no cover - root always exists
        pass
    for point in reversed(mounted):
        try:
            sandbox.unmount(point)
        except MountError as exc:
            logger.debug("Unmount of %s failed: %s", point, exc, extra={"event": "archives.teardown"})
    for point in reversed(created):
        try:
            sandbox.rmdir(point)
        except (OSError, MountError) as exc:
            logger.debug("Removing %s failed: %s", point, exc, extra={"event": "archives.teardown"})


def _discard_scratch(sandbox: ExtractionSandbox, scratch: str) -> None:
    try:
        sandbox.chdir("/")
        for name in sandbox.readdir(scratch):
            sandbox.unlink(posixpath.join(scratch, name))
        sandbox.rmdir(scratch)
    except (OSError, MountError) as exc:
        logger.debug("Discarding %s failed: %s", scratch, exc, extra={"event": "archives.teardown"})


def extract_archive(archive_path: Path | str, dest_dir: Path | str) -> Path:
    """Extract ``archive_path`` into ``dest_dir`` using a default extractor."""

    return ArchiveExtractor().extract(archive_path, dest_dir)


__all__ = ["ArchiveExtractor", "check_format_coverage", "count_files", "extract_archive", "new_mount_id"]

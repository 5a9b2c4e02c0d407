"""Attach macOS disk images for the duration of a block."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from subembed import logging_manager as log_mgr
from subembed.fsutils import scoped_temp_dir
from subembed.media import CommandExecutionError, run_command

from .exceptions import InstallerError

logger = log_mgr.logger


@contextmanager
def mounted_dmg(dmg_path: Path | str, *, tmp_dir: Optional[Path] = None) -> Iterator[Path]:
    """Attach ``dmg_path`` with ``hdiutil`` and yield its mount point."""

    with scoped_temp_dir("dmg_mount_", dir=tmp_dir) as mount_point:
        try:
            run_command(
                ["hdiutil", "attach", str(dmg_path), "-mountpoint", str(mount_point), "-nobrowse"]
            )
        except CommandExecutionError as exc:
            raise InstallerError(f"Failed to attach {dmg_path}") from exc
        try:
            yield mount_point
        finally:
            try:
                run_command(["hdiutil", "detach", str(mount_point)])
            except CommandExecutionError as exc:
                logger.warning(
                    "Failed to detach %s: %s",
                    mount_point,
                    exc,
                    extra={"event": "installer.dmg.detach_failed"},
                )


__all__ = ["mounted_dmg"]

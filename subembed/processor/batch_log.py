"""Plain-text batch log written next to the user's working directory."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

SEPARATOR = "=" * 60
NO_OUTPUT = "(no output)"
NOT_INVOKED = "(not invoked)"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
FILENAME_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def default_log_path(directory: Optional[Path | str] = None, *, now: Optional[datetime] = None) -> Path:
    stamp = (now or datetime.now()).strftime(FILENAME_TIMESTAMP_FORMAT)
    base = Path(directory) if directory is not None else Path.cwd()
    return base / f"subembed-batch-{stamp}.log"


class BatchLog:
    """Append-only UTF-8 log with a header, per-job blocks and a summary."""

    def __init__(self, path: Path | str, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self.path = Path(path)
        self._clock = clock

    def _timestamp(self) -> str:
        return self._clock().strftime(TIMESTAMP_FORMAT)

    def _write(self, lines: Iterable[str], mode: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, mode, encoding="utf-8") as handle:
            handle.write("\n".join(lines) + "\n")

    def write_header(self, job_count: int) -> None:
        """Start a fresh log, replacing any previous file at ``path``."""

        self._write(
            [
                "subembed batch log",
                f"Started: {self._timestamp()}",
                f"Jobs: {job_count}",
                SEPARATOR,
                "",
            ],
            "w",
        )

    def append_job(
        self,
        *,
        success: bool,
        subject: str,
        command: Optional[str],
        stdout: str = "",
        stderr: str = "",
        error: Optional[str] = None,
    ) -> None:
        status = "Processed file" if success else "Failed to process file"
        lines = [
            "",
            SEPARATOR,
            f"[{self._timestamp()}] {status}: {subject}",
            f"Command: {command or NOT_INVOKED}",
        ]
        if error:
            lines.append(f"Error: {error}")
        lines.extend(
            [
                SEPARATOR,
                "--- STDOUT ---",
                stdout or NO_OUTPUT,
                "--- STDERR ---",
                stderr or NO_OUTPUT,
                SEPARATOR,
                "",
            ]
        )
        self._write(lines, "a")

    def write_summary(self, *, succeeded: int, failed: int, not_attempted: int) -> None:
        self._write(
            [
                "",
                SEPARATOR,
                "Batch finished",
                f"Finished: {self._timestamp()}",
                f"Succeeded: {succeeded}",
                f"Failed: {failed}",
                f"Not attempted: {not_attempted}",
                SEPARATOR,
            ],
            "a",
        )


__all__ = ["BatchLog", "NOT_INVOKED", "NO_OUTPUT", "SEPARATOR", "default_log_path"]

"""Invocation wrapper for the ``assfonts`` subtitle font embedding tool."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from subembed import logging_manager as log_mgr

from .command_runner import run_command_async

logger = log_mgr.logger


@dataclass(frozen=True, slots=True)
class AssfontsResult:
    """Outcome of one ``assfonts`` run."""

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)

    @property
    def message(self) -> str:
        """Best diagnostic line for a failed run."""

        for stream in (self.stderr, self.stdout):
            text = stream.strip()
            if text:
                return text
        return f"exit status {self.returncode}"


def build_command(
    binary: Path | str,
    input_file: Path | str,
    output_dir: Path | str,
    font_dirs: Sequence[Path | str],
    verbosity: int = 2,
) -> tuple[str, ...]:
    command = [str(binary), "-i", str(input_file), "-o", str(output_dir)]
    for font_dir in font_dirs:
        command.extend(["-f", str(font_dir)])
    command.extend(["-v", str(verbosity)])
    return tuple(command)


async def run_assfonts(
    binary: Path | str,
    input_file: Path | str,
    output_dir: Path | str,
    font_dirs: Sequence[Path | str],
    verbosity: int = 2,
) -> AssfontsResult:
    """Run ``assfonts`` and capture its output; failures are reported, not raised."""

    command = build_command(binary, input_file, output_dir, font_dirs, verbosity)
    logger.info("Running %s", shlex.join(command), extra={"event": "media.assfonts.run"})
    result = await run_command_async(command, check=False)
    stdout = result.stdout if isinstance(result.stdout, str) else ""
    stderr = result.stderr if isinstance(result.stderr, str) else ""
    return AssfontsResult(
        command=command,
        returncode=result.returncode,
        stdout=stdout,
        stderr=stderr,
    )


__all__ = ["AssfontsResult", "build_command", "run_assfonts"]

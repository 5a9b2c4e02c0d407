"""Helper utilities for running external commands consistently."""

from __future__ import annotations

import asyncio
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Mapping, MutableMapping, Sequence

from subembed import logging_manager as log_mgr

from .exceptions import CommandExecutionError

logger = log_mgr.logger


@dataclass(slots=True)
class CommandResult:
    """Container describing a completed command execution."""

    command: tuple[str, ...]
    returncode: int
    stdout: str | bytes | None
    stderr: str | bytes | None
    duration: float


def _prepare_environment(env: Mapping[str, str] | None) -> Mapping[str, str]:
    if not env:
        return os.environ.copy()
    merged: MutableMapping[str, str] = os.environ.copy()
    merged.update({str(key): str(value) for key, value in env.items()})
    return merged


def _coerce_command(command: Sequence[str] | str) -> tuple[str, ...]:
    if isinstance(command, (str, bytes)):
        return (str(command),)
    return tuple(str(part) for part in command)


def run_command(
    command: Sequence[str] | str,
    *,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    capture_output: bool = True,
    text: bool = True,
    check: bool = True,
    logger_obj=logger,
    **kwargs: Any,
) -> CommandResult:
    """Execute ``command`` and return a :class:`CommandResult`.

    Parameters mirror :func:`subprocess.run`, but the function standardises logging
    and error handling. Non-zero exit codes raise :class:`CommandExecutionError`
    unless ``check`` is disabled.
    """

    run_kwargs: dict[str, Any] = dict(kwargs)
    run_kwargs.setdefault("cwd", cwd)
    run_kwargs.setdefault("timeout", timeout)
    run_kwargs.setdefault("env", _prepare_environment(env))
    run_kwargs.setdefault("check", False)

    if capture_output:
        run_kwargs.setdefault("stdout", subprocess.PIPE)
        run_kwargs.setdefault("stderr", subprocess.PIPE)
        if text:
            run_kwargs.setdefault("text", True)
    else:
        run_kwargs.setdefault("text", False)

    start = time.monotonic()
    if logger_obj:
        logger_obj.debug(
            "Executing command",
            extra={"event": "media.command.execute", "command": command},
        )
    try:
        completed = subprocess.run(command, **run_kwargs)
    except subprocess.TimeoutExpired as exc:
        duration = time.monotonic() - start
        if logger_obj:
            logger_obj.warning(
                "Command timed out after %.3fs",
                duration,
                extra={"event": "media.command.timeout", "command": command},
            )
        raise CommandExecutionError(
            command, stdout=exc.stdout, stderr=exc.stderr, cause=exc, timeout=True
        ) from exc
    except FileNotFoundError as exc:
        if logger_obj:
            logger_obj.error(
                "Command executable not found",
                extra={"event": "media.command.not_found", "command": command},
            )
        raise CommandExecutionError(command, cause=exc) from exc
    except OSError as exc:
        if logger_obj:
            logger_obj.error(
                "Command execution failed due to OS error",
                extra={"event": "media.command.os_error", "command": command},
            )
        raise CommandExecutionError(command, cause=exc) from exc

    result = CommandResult(
        command=_coerce_command(command),
        returncode=completed.returncode,
        stdout=getattr(completed, "stdout", None),
        stderr=getattr(completed, "stderr", None),
        duration=time.monotonic() - start,
    )
    _check_result(result, check=check, logger_obj=logger_obj)
    return result


async def run_command_async(
    command: Sequence[str],
    *,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    check: bool = True,
    logger_obj=logger,
) -> CommandResult:
    """Coroutine counterpart of :func:`run_command` that always captures text output."""

    args = _coerce_command(command)
    start = time.monotonic()
    if logger_obj:
        logger_obj.debug(
            "Executing command",
            extra={"event": "media.command.execute", "command": args},
        )
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(_prepare_environment(env)),
            cwd=cwd,
        )
    except FileNotFoundError as exc:
        if logger_obj:
            logger_obj.error(
                "Command executable not found",
                extra={"event": "media.command.not_found", "command": args},
            )
        raise CommandExecutionError(args, cause=exc) from exc
    except OSError as exc:
        if logger_obj:
            logger_obj.error(
                "Command execution failed due to OS error",
                extra={"event": "media.command.os_error", "command": args},
            )
        raise CommandExecutionError(args, cause=exc) from exc

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.wait()
        if logger_obj:
            logger_obj.warning(
                "Command timed out after %.3fs",
                time.monotonic() - start,
                extra={"event": "media.command.timeout", "command": args},
            )
        raise CommandExecutionError(args, cause=exc, timeout=True) from exc

    result = CommandResult(
        command=args,
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        duration=time.monotonic() - start,
    )
    _check_result(result, check=check, logger_obj=logger_obj)
    return result


def _check_result(result: CommandResult, *, check: bool, logger_obj) -> None:
    if result.returncode != 0:
        if logger_obj:
            logger_obj.warning(
                "Command returned non-zero status %s",
                result.returncode,
                extra={
                    "event": "media.command.failed",
                    "command": result.command,
                    "returncode": result.returncode,
                },
            )
        if check:
            raise CommandExecutionError(
                result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return
    if logger_obj:
        logger_obj.debug(
            "Command completed successfully in %.3fs",
            result.duration,
            extra={
                "event": "media.command.success",
                "command": result.command,
                "returncode": result.returncode,
            },
        )


__all__ = ["CommandResult", "run_command", "run_command_async"]

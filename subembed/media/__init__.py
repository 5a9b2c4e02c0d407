"""Utilities for invoking external subtitle tools."""

from .assfonts_cli import AssfontsResult, build_command, run_assfonts
from .command_runner import CommandResult, run_command, run_command_async
from .exceptions import CommandExecutionError, MediaBackendError, ToolInvocationError

__all__ = [
    "AssfontsResult",
    "CommandExecutionError",
    "CommandResult",
    "MediaBackendError",
    "ToolInvocationError",
    "build_command",
    "run_assfonts",
    "run_command",
    "run_command_async",
]

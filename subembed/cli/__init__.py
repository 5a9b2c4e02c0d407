"""Command line interface for subembed."""

from .main import main, run_cli

__all__ = ["main", "run_cli"]

"""Argument parsing helpers for the subembed CLI."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence


def _add_shared_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a configuration JSON file (defaults to $SUBEMBED_CONFIG when set).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging output.")
    return parser


def build_cli_parser() -> argparse.ArgumentParser:
    """Build the CLI parser with explicit sub-commands."""

    parser = argparse.ArgumentParser(
        prog="subembed",
        description="Embed subset fonts into subtitles in batches.",
        allow_abbrev=False,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run", help="Process the jobs listed in a JSON job file", allow_abbrev=False
    )
    run_parser.add_argument("job_file", help="Path to the JSON job file.")
    run_parser.add_argument("--log-file", help="Write the batch log to this path.")
    run_parser.add_argument(
        "--no-log", action="store_true", help="Do not write a batch log file."
    )
    _add_shared_arguments(run_parser)

    install_parser = subparsers.add_parser(
        "install", help="Download and install the assfonts binary", allow_abbrev=False
    )
    _add_shared_arguments(install_parser)

    sniff_parser = subparsers.add_parser(
        "sniff", help="Print the detected archive format of each path", allow_abbrev=False
    )
    sniff_parser.add_argument("paths", nargs="+", help="Files to inspect.")
    sniff_parser.add_argument("--debug", action="store_true", help="Enable debug logging output.")

    return parser


def parse_cli_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse ``argv`` with :func:`build_cli_parser`."""

    return build_cli_parser().parse_args(argv)


__all__ = ["build_cli_parser", "parse_cli_args"]

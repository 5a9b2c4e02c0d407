"""Console entry point for subembed."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from subembed import logging_manager as log_mgr
from subembed.archives import sniff_format
from subembed.config_manager import ConfigurationError, SubembedSettings, load_settings
from subembed.installer import AssfontsInstaller, InstallerError
from subembed.processor import BatchFailedError, BatchProcessor, BatchProcessorOptions

from .args import parse_cli_args
from .job_file import JobFileError, load_job_file

logger = log_mgr.get_logger()


def _configure(args: argparse.Namespace) -> SubembedSettings:
    settings = load_settings(getattr(args, "config", None))
    log_mgr.configure_logging_level(debug_enabled=settings.debug or bool(args.debug))
    if settings.log_dir is not None:
        log_mgr.attach_log_file(settings.log_dir)
    return settings


def _run_jobs(args: argparse.Namespace, settings: SubembedSettings) -> int:
    document, jobs = load_job_file(args.job_file)
    options = BatchProcessorOptions(
        log_file=Path(args.log_file) if args.log_file else document.log_file,
        disable_log=bool(args.no_log or document.disable_log),
    )
    processor = BatchProcessor(options, settings=settings)
    outcome = asyncio.run(processor.process(jobs))
    for result in outcome.results:
        log_mgr.console_info("OK   %s -> %s", result.input_file, result.output_file, logger_obj=logger)
    return 0


def _install(settings: SubembedSettings) -> int:
    binary = AssfontsInstaller(settings).ensure_installed()
    print(binary)
    return 0


def _sniff(paths: Sequence[str]) -> int:
    for path in paths:
        print(f"{path}: {sniff_format(path).value}")
    return 0


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    """Parse ``argv`` and execute the selected sub-command."""

    args = parse_cli_args(argv)
    if args.command == "sniff":
        log_mgr.configure_logging_level(debug_enabled=args.debug)
        return _sniff(args.paths)

    try:
        settings = _configure(args)
        if args.command == "install":
            return _install(settings)
        return _run_jobs(args, settings)
    except BatchFailedError as exc:
        for result in exc.outcome.results:
            status = "OK  " if result.success else "FAIL"
            log_mgr.console_info("%s %s", status, result.input_file or "-", logger_obj=logger)
        log_mgr.console_error(str(exc), logger_obj=logger)
        return 1
    except (ConfigurationError, InstallerError, JobFileError) as exc:
        log_mgr.console_error(str(exc), logger_obj=logger)
        return 1


def main() -> None:
    sys.exit(run_cli())


__all__ = ["main", "run_cli"]

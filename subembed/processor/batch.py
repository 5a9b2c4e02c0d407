"""Sequential, fail-fast batch driver for subtitle font embedding."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from subembed import logging_manager as log_mgr
from subembed.config_manager import SubembedSettings, get_settings
from subembed.fsutils import copy_file_replace, list_matches, resolve_unique, scoped_temp_dir
from subembed.installer import AssfontsInstaller
from subembed.media import AssfontsResult, ToolInvocationError, run_assfonts

from .batch_log import BatchLog, default_log_path
from .cache import DirectoryCache
from .exceptions import BatchFailedError, BatchStateError, OutputCardinalityError
from .models import (
    ALLOWED_TRANSITIONS,
    BatchOutcome,
    BatchState,
    JobDescription,
    JobResult,
    SubtitleTransform,
)

logger = log_mgr.logger

FONT_EXTENSIONS = (".ttf", ".otf", ".ttc", ".woff", ".woff2")
SUBTITLE_EXTENSIONS = (".ass", ".ssa", ".srt")
OUTPUT_PATTERN = "*.assfonts.ass"
_DASH_LINE = "-" * 60


@dataclass(slots=True)
class BatchProcessorOptions:
    """Batch log behaviour for a :class:`BatchProcessor`."""

    log_file: Optional[Path | str] = None
    disable_log: bool = False
    log_dir: Optional[Path | str] = None


class BatchProcessor:
    """Run job descriptions one after another, stopping at the first failure.

    A processor owns its :class:`DirectoryCache`; the cache is emptied after
    every :meth:`process` call whatever the outcome, so one instance can run
    several batches in turn.
    """

    def __init__(
        self,
        options: Optional[BatchProcessorOptions] = None,
        *,
        settings: Optional[SubembedSettings] = None,
        cache: Optional[DirectoryCache] = None,
        installer: Optional[Callable[[], Path]] = None,
    ) -> None:
        self._options = options or BatchProcessorOptions()
        self._settings = settings or get_settings()
        self._cache = cache or DirectoryCache(parent_dir=self._settings.tmp_dir)
        self._installer = installer or AssfontsInstaller(self._settings).ensure_installed
        self._binary: Optional[Path] = None
        self._state = BatchState.IDLE
        self._log: Optional[BatchLog] = None
        self._log_initialized = False
        if self._options.log_file is not None:
            self._log = BatchLog(self._options.log_file)

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def cache(self) -> DirectoryCache:
        return self._cache

    @property
    def log_file(self) -> Optional[Path]:
        if self._options.disable_log or self._log is None:
            return None
        return self._log.path

    def _transition(self, target: BatchState) -> None:
        if target not in ALLOWED_TRANSITIONS[self._state]:
            raise BatchStateError(self._state, target)
        logger.debug(
            "Batch state %s -> %s",
            self._state.value,
            target.value,
            extra={"event": "processor.batch.state", "status": target.value},
        )
        self._state = target

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def process(
        self, jobs: Union[JobDescription, Sequence[JobDescription]]
    ) -> BatchOutcome:
        """Run ``jobs`` in order and return their results.

        Raises :class:`BatchFailedError` (carrying the outcome) when a job fails;
        the remaining jobs are not attempted. The cache is always cleaned up.
        """

        items: List[JobDescription] = [jobs] if isinstance(jobs, JobDescription) else list(jobs)
        self._transition(BatchState.RUNNING)
        results: List[JobResult] = []
        completed = False
        try:
            logger.info("Starting batch of %s job(s)", len(items), extra={"event": "processor.batch.start"})
            binary = await self._ensure_binary()
            await self._init_log(len(items))

            for index, job in enumerate(items):
                result = await self._process_one(binary, job, index, len(items))
                results.append(result)
                if not result.success:
                    logger.error(
                        "Batch stopped at job %s of %s",
                        index + 1,
                        len(items),
                        extra={"event": "processor.batch.abort", "job_index": index + 1},
                    )
                    break

            outcome = BatchOutcome(results=tuple(results), total_jobs=len(items), log_file=self.log_file)
            await self._write_summary(outcome)
            self._report(outcome)
            if outcome.failed:
                first_error = next(r.error for r in outcome.results if not r.success)
                raise BatchFailedError(outcome, first_error or "unknown error")
            completed = True
            return outcome
        finally:
            self.cleanup()
            self._transition(BatchState.COMPLETED if completed else BatchState.ABORTED)

    def cleanup(self) -> None:
        """Release every prepared directory."""

        stats = self._cache.stats()
        if stats.sub_dir_count:
            logger.info("Cleaning up %s temporary directories", stats.sub_dir_count)
        self._cache.cleanup()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _ensure_binary(self) -> Path:
        if self._binary is None:
            self._binary = await asyncio.to_thread(self._installer)
        return self._binary

    async def _init_log(self, job_count: int) -> None:
        if self._options.disable_log or self._log_initialized:
            return
        if self._log is None:
            log_dir = self._options.log_dir or self._settings.batch_log_dir
            self._log = BatchLog(default_log_path(log_dir))
        await asyncio.to_thread(self._log.write_header, job_count)
        logger.info("Log file: %s", self._log.path)
        self._log_initialized = True

    async def _write_summary(self, outcome: BatchOutcome) -> None:
        if self.log_file is None or self._log is None:
            return
        await asyncio.to_thread(
            self._log.write_summary,
            succeeded=outcome.succeeded,
            failed=outcome.failed,
            not_attempted=outcome.not_attempted,
        )

    async def _append_log(
        self,
        *,
        success: bool,
        subject: str,
        invocation: Optional[AssfontsResult],
        error: Optional[str],
    ) -> None:
        if self.log_file is None or self._log is None:
            return
        await asyncio.to_thread(
            self._log.append_job,
            success=success,
            subject=subject,
            command=invocation.command_line if invocation else None,
            stdout=invocation.stdout if invocation else "",
            stderr=invocation.stderr if invocation else "",
            error=error,
        )

    async def _prepare_fonts(self, job: JobDescription) -> List[Path]:
        sources = job.font_sources
        labels = ["Font"] if len(sources) == 1 else [f"Font {n}" for n in range(1, len(sources) + 1)]
        prepared = await asyncio.gather(
            *(
                self._cache.prepare(source, label, FONT_EXTENSIONS)
                for source, label in zip(sources, labels)
            ),
            return_exceptions=True,
        )
        for entry in prepared:
            if isinstance(entry, BaseException):
                raise entry
        return [Path(entry) for entry in prepared]

    async def _apply_transform(self, subtitle_file: Path, transform: SubtitleTransform) -> None:
        logger.info("Applying subtitle transform", extra={"event": "processor.job.transform"})
        original = await asyncio.to_thread(subtitle_file.read_text, encoding="utf-8")
        transformed = transform(original)
        if inspect.isawaitable(transformed):
            transformed = await transformed
        await asyncio.to_thread(subtitle_file.write_text, transformed, encoding="utf-8")

    async def _process_one(
        self, binary: Path, job: JobDescription, index: int, total: int
    ) -> JobResult:
        logger.info(_DASH_LINE)
        logger.info("[%s/%s] Processing", index + 1, total)
        logger.info("Font sources: %s", ", ".join(str(p) for p in job.font_sources))
        logger.info("Subtitle source: %s (%s)", job.subtitle_dir, job.subtitle_glob)
        logger.info("Output directory: %s (%s, suffix %s)", job.output_dir, job.video_glob, job.output_suffix)

        invocation: Optional[AssfontsResult] = None
        subtitle_file: Optional[Path] = None
        with log_mgr.log_context(job_index=index + 1):
            try:
                with log_mgr.log_context(stage="prepare"):
                    font_dirs = await self._prepare_fonts(job)
                    subtitle_dir = await self._cache.prepare(
                        job.subtitle_dir, "Subtitle", SUBTITLE_EXTENSIONS
                    )

                with log_mgr.log_context(stage="resolve"):
                    subtitle_file = resolve_unique(subtitle_dir, job.subtitle_glob)
                    logger.info("Subtitle file: %s", subtitle_file.name)
                    if job.transform is not None:
                        await self._apply_transform(subtitle_file, job.transform)

                    output_dir = Path(job.output_dir)
                    video_file = resolve_unique(output_dir, job.video_glob)
                    logger.info("Video file: %s", video_file.name)
                    output_file = output_dir.resolve() / f"{video_file.stem}{job.output_suffix}"
                    output_dir.mkdir(parents=True, exist_ok=True)

                with log_mgr.log_context(stage="embed"), scoped_temp_dir(
                    "subembed_output_", dir=self._settings.tmp_dir
                ) as temp_output:
                    invocation = await run_assfonts(
                        binary,
                        subtitle_file,
                        temp_output,
                        font_dirs,
                        verbosity=self._settings.tool_verbosity,
                    )
                    if not invocation.ok:
                        raise ToolInvocationError(invocation)
                    produced = list_matches(temp_output, OUTPUT_PATTERN)
                    if len(produced) != 1:
                        raise OutputCardinalityError(temp_output, produced)
                    await asyncio.to_thread(copy_file_replace, produced[0], output_file)
            except Exception as exc:
                message = str(exc)
                logger.error(
                    "Job failed: %s", message, extra={"event": "processor.job.failed", "status": "failed"}
                )
                await self._append_log(
                    success=False,
                    subject=str(subtitle_file or job.subtitle_dir),
                    invocation=invocation,
                    error=message,
                )
                return JobResult(success=False, input_file=subtitle_file, output_file=None, error=message)

            await self._append_log(
                success=True, subject=str(subtitle_file), invocation=invocation, error=None
            )
            logger.info(
                "Wrote %s", output_file.name, extra={"event": "processor.job.done", "status": "ok"}
            )
            return JobResult(success=True, input_file=subtitle_file, output_file=output_file)

    def _report(self, outcome: BatchOutcome) -> None:
        logger.info("Batch finished", extra={"event": "processor.batch.done"})
        logger.info("  Succeeded: %s", outcome.succeeded)
        logger.info("  Failed: %s", outcome.failed)
        logger.info("  Not attempted: %s", outcome.not_attempted)
        if outcome.log_file is not None:
            logger.info("  Log: %s", outcome.log_file)


async def process(
    jobs: Union[JobDescription, Sequence[JobDescription]],
    options: Optional[BatchProcessorOptions] = None,
) -> BatchOutcome:
    """Run ``jobs`` with a fresh :class:`BatchProcessor`."""

    return await BatchProcessor(options).process(jobs)


def run_batch(
    jobs: Union[JobDescription, Sequence[JobDescription]],
    options: Optional[BatchProcessorOptions] = None,
    *,
    settings: Optional[SubembedSettings] = None,
    installer: Optional[Callable[[], Path]] = None,
) -> BatchOutcome:
    """Blocking entry point for callers without an event loop."""

    processor = BatchProcessor(options, settings=settings, installer=installer)
    return asyncio.run(processor.process(jobs))


__all__ = [
    "BatchProcessor",
    "BatchProcessorOptions",
    "FONT_EXTENSIONS",
    "OUTPUT_PATTERN",
    "SUBTITLE_EXTENSIONS",
    "process",
    "run_batch",
]

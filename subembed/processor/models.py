"""Data structures describing batch jobs and their results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence, Tuple, Union

SubtitleTransform = Callable[[str], Union[str, Awaitable[str]]]


@dataclass(slots=True)
class JobDescription:
    """One subtitle to embed fonts into."""

    font_dir: Union[Path, str, Sequence[Union[Path, str]]]
    subtitle_dir: Path | str
    subtitle_glob: str
    output_dir: Path | str
    video_glob: str
    output_suffix: str
    transform: Optional[SubtitleTransform] = None

    @property
    def font_sources(self) -> Tuple[Path, ...]:
        if isinstance(self.font_dir, (str, Path)):
            return (Path(self.font_dir),)
        return tuple(Path(entry) for entry in self.font_dir)


@dataclass(frozen=True, slots=True)
class JobResult:
    """Immutable record of one attempted job."""

    success: bool
    input_file: Optional[Path]
    output_file: Optional[Path]
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class BatchOutcome:
    """Results of one batch run, in submission order."""

    results: Tuple[JobResult, ...]
    total_jobs: int
    log_file: Optional[Path] = None

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.success)

    @property
    def not_attempted(self) -> int:
        return self.total_jobs - len(self.results)

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.not_attempted == 0


class BatchState(str, Enum):
    """Lifecycle of a batch processor run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


ALLOWED_TRANSITIONS = {
    BatchState.IDLE: frozenset({BatchState.RUNNING}),
    BatchState.RUNNING: frozenset({BatchState.COMPLETED, BatchState.ABORTED}),
    BatchState.COMPLETED: frozenset({BatchState.RUNNING}),
    BatchState.ABORTED: frozenset({BatchState.RUNNING}),
}


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Snapshot of the directory cache."""

    cached_entries: int
    sub_dir_count: int


__all__ = [
    "ALLOWED_TRANSITIONS",
    "BatchOutcome",
    "BatchState",
    "CacheStats",
    "JobDescription",
    "JobResult",
    "SubtitleTransform",
]

"""Source preparation and batch orchestration."""

from .batch import (
    FONT_EXTENSIONS,
    OUTPUT_PATTERN,
    SUBTITLE_EXTENSIONS,
    BatchProcessor,
    BatchProcessorOptions,
    process,
    run_batch,
)
from .batch_log import BatchLog, default_log_path
from .cache import DirectoryCache
from .exceptions import (
    BatchFailedError,
    BatchStateError,
    OutputCardinalityError,
    PreparationError,
    ProcessorError,
)
from .helpers import episode_range, glob_bracket
from .models import BatchOutcome, BatchState, CacheStats, JobDescription, JobResult

__all__ = [
    "BatchFailedError",
    "BatchLog",
    "BatchOutcome",
    "BatchProcessor",
    "BatchProcessorOptions",
    "BatchState",
    "BatchStateError",
    "CacheStats",
    "DirectoryCache",
    "FONT_EXTENSIONS",
    "JobDescription",
    "JobResult",
    "OUTPUT_PATTERN",
    "OutputCardinalityError",
    "PreparationError",
    "ProcessorError",
    "SUBTITLE_EXTENSIONS",
    "default_log_path",
    "episode_range",
    "glob_bracket",
    "process",
    "run_batch",
]

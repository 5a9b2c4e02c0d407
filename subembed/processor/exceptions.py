"""Exceptions raised while preparing sources and running batches."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from .models import BatchOutcome, BatchState


class ProcessorError(RuntimeError):
    """Base exception for the batch processor."""


class PreparationError(ProcessorError):
    """Raised when a source directory or archive cannot be materialised."""

    def __init__(self, description: str, source: Path | str, cause: BaseException) -> None:
        self.description = description
        self.source = Path(source)
        super().__init__(f"Failed to prepare {description} from {self.source}: {cause}")


class OutputCardinalityError(ProcessorError):
    """Raised when the embedding step does not leave exactly one artifact."""

    def __init__(self, directory: Path | str, matches: Sequence[Path]) -> None:
        self.directory = Path(directory)
        self.matches = list(matches)
        found = ", ".join(path.name for path in self.matches) or "none"
        super().__init__(
            f"Expected exactly one output file in {self.directory}, "
            f"found {len(self.matches)}: {found}"
        )


class BatchFailedError(ProcessorError):
    """Raised after a batch stopped on a failed job; carries the full outcome."""

    def __init__(self, outcome: "BatchOutcome", first_error: str) -> None:
        self.outcome = outcome
        self.first_error = first_error
        parts = [
            f"Batch failed: {outcome.succeeded} succeeded, {outcome.failed} failed, "
            f"{outcome.not_attempted} not attempted",
            f"First error: {first_error}",
        ]
        if outcome.log_file is not None:
            parts.append(f"Log file: {outcome.log_file}")
        super().__init__("\n".join(parts))


class BatchStateError(ProcessorError):
    """Raised when a batch processor is asked to make an invalid state transition."""

    def __init__(self, current: "BatchState", target: "BatchState") -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move batch from {current.value} to {target.value}")


__all__ = [
    "BatchFailedError",
    "BatchStateError",
    "OutputCardinalityError",
    "PreparationError",
    "ProcessorError",
]

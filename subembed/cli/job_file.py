"""JSON job files consumed by ``subembed run``."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from subembed.processor import JobDescription


class JobFileError(ValueError):
    """Raised when a job file cannot be read or validated."""


class JobFileEntry(BaseModel):
    """One job as written in a job file."""

    model_config = ConfigDict(extra="forbid")

    font_dir: Union[str, List[str]]
    subtitle_dir: str
    subtitle_glob: str
    output_dir: str
    video_glob: str
    output_suffix: str

    @field_validator("font_dir")
    @classmethod
    def _require_fonts(cls, value: Union[str, List[str]]) -> Union[str, List[str]]:
        if isinstance(value, list) and not value:
            raise ValueError("font_dir must name at least one source")
        return value

    def to_job(self, base_dir: Path) -> JobDescription:
        def resolve(value: str) -> Path:
            path = Path(value).expanduser()
            return path if path.is_absolute() else base_dir / path

        fonts = [self.font_dir] if isinstance(self.font_dir, str) else self.font_dir
        return JobDescription(
            font_dir=[resolve(entry) for entry in fonts],
            subtitle_dir=resolve(self.subtitle_dir),
            subtitle_glob=self.subtitle_glob,
            output_dir=resolve(self.output_dir),
            video_glob=self.video_glob,
            output_suffix=self.output_suffix,
        )


class JobFile(BaseModel):
    """Top-level job file document."""

    model_config = ConfigDict(extra="forbid")

    jobs: List[JobFileEntry] = Field(min_length=1)
    log_file: Optional[str] = None
    disable_log: bool = False


def load_job_file(path: Path | str) -> tuple[JobFile, List[JobDescription]]:
    """Read ``path`` and return the document plus resolved job descriptions.

    Relative paths inside the file are resolved against the file's directory.
    """

    job_path = Path(path).expanduser().resolve()
    try:
        with open(job_path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except FileNotFoundError as exc:
        raise JobFileError(f"Job file {job_path} does not exist") from exc
    except json.JSONDecodeError as exc:
        raise JobFileError(f"Job file {job_path} is not valid JSON: {exc}") from exc

    try:
        document = JobFile.model_validate(payload)
    except ValidationError as exc:
        raise JobFileError(f"Job file {job_path} is invalid: {exc}") from exc

    base_dir = job_path.parent
    if document.log_file:
        log_path = Path(document.log_file).expanduser()
        document = document.model_copy(
            update={"log_file": str(log_path if log_path.is_absolute() else base_dir / log_path)}
        )
    return document, [entry.to_job(base_dir) for entry in document.jobs]


__all__ = ["JobFile", "JobFileEntry", "JobFileError", "load_job_file"]

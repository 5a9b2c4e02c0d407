"""Pydantic models and helper utilities for configuration values."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_ASSFONTS_VERSION,
    DEFAULT_DATA_HOME,
    DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
    DEFAULT_TOOL_VERBOSITY,
)


class SubembedSettings(BaseModel):
    """Typed representation of the application configuration."""

    model_config = ConfigDict(extra="ignore")

    data_home: Path = Field(default=DEFAULT_DATA_HOME, validate_default=True)
    tmp_dir: Optional[Path] = None
    log_dir: Optional[Path] = None
    batch_log_dir: Optional[Path] = None
    debug: bool = False
    assfonts_path: Optional[Path] = None
    assfonts_version: str = DEFAULT_ASSFONTS_VERSION
    download_timeout_seconds: float = Field(default=DEFAULT_DOWNLOAD_TIMEOUT_SECONDS, gt=0)
    tool_verbosity: int = Field(default=DEFAULT_TOOL_VERBOSITY, ge=0)

    @field_validator("data_home", "tmp_dir", "log_dir", "batch_log_dir", "assfonts_path")
    @classmethod
    def _expand_user(cls, value: Optional[Path]) -> Optional[Path]:
        if value is None:
            return None
        return Path(value).expanduser()

    @property
    def install_dir(self) -> Path:
        """Return the directory holding the pinned assfonts release."""

        return self.data_home / f"assfonts@{self.assfonts_version}"


class EnvironmentOverrides(BaseSettings):
    """Configuration overrides sourced from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    data_home: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("SUBEMBED_DATA_HOME", "XDG_DATA_HOME")
    )
    tmp_dir: Optional[str] = Field(default=None, validation_alias=AliasChoices("SUBEMBED_TMP_DIR"))
    log_dir: Optional[str] = Field(default=None, validation_alias=AliasChoices("SUBEMBED_LOG_DIR"))
    batch_log_dir: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("SUBEMBED_BATCH_LOG_DIR")
    )
    debug: Optional[bool] = Field(default=None, validation_alias=AliasChoices("SUBEMBED_DEBUG"))
    assfonts_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("SUBEMBED_ASSFONTS_PATH")
    )
    download_timeout_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("SUBEMBED_DOWNLOAD_TIMEOUT")
    )

    def as_updates(self) -> Dict[str, Any]:
        """Return only the overrides that were actually provided."""

        return {key: value for key, value in self.model_dump().items() if value not in (None, "")}


def load_environment_overrides() -> Dict[str, Any]:
    """Read overrides from the process environment."""

    return EnvironmentOverrides().as_updates()


__all__ = ["EnvironmentOverrides", "SubembedSettings", "load_environment_overrides"]

"""Configuration loading utilities."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from subembed import logging_manager

from .constants import CONFIG_ENV_VAR
from .settings import SubembedSettings, load_environment_overrides

logger = logging_manager.get_logger()


class ConfigurationError(RuntimeError):
    """Raised when configuration files or overrides cannot be applied."""


_ACTIVE_SETTINGS: Optional[SubembedSettings] = None


def _read_config_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file {path} does not exist") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Configuration file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a JSON object")
    logger.debug("Loaded configuration from %s", path, extra={"event": "config.load"})
    return data


def load_settings(config_file: Optional[str | Path] = None) -> SubembedSettings:
    """Build settings from defaults, an optional JSON file and environment overrides."""
    global _ACTIVE_SETTINGS

    candidate = config_file or os.environ.get(CONFIG_ENV_VAR)
    payload: Dict[str, Any] = {}
    if candidate:
        payload.update(_read_config_json(Path(candidate).expanduser()))
    payload.update(load_environment_overrides())

    try:
        settings = SubembedSettings(**payload)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid subembed configuration: {exc}") from exc

    _ACTIVE_SETTINGS = settings
    return settings


def get_settings() -> SubembedSettings:
    """Return the active settings, loading them on first use."""

    if _ACTIVE_SETTINGS is None:
        return load_settings()
    return _ACTIVE_SETTINGS


def reset_settings() -> None:
    """Forget cached settings so the next lookup re-reads the environment."""
    global _ACTIVE_SETTINGS
    _ACTIVE_SETTINGS = None


__all__ = ["ConfigurationError", "get_settings", "load_settings", "reset_settings"]

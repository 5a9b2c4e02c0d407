"""High-level configuration management for subembed."""
from __future__ import annotations

from .constants import (
    ASSFONTS_RELEASE_URL,
    CONFIG_ENV_VAR,
    DEFAULT_ASSFONTS_VERSION,
    DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
    DEFAULT_TOOL_VERBOSITY,
)
from .loader import ConfigurationError, get_settings, load_settings, reset_settings
from .settings import EnvironmentOverrides, SubembedSettings

__all__ = [
    "ASSFONTS_RELEASE_URL",
    "CONFIG_ENV_VAR",
    "DEFAULT_ASSFONTS_VERSION",
    "DEFAULT_DOWNLOAD_TIMEOUT_SECONDS",
    "DEFAULT_TOOL_VERBOSITY",
    "ConfigurationError",
    "EnvironmentOverrides",
    "SubembedSettings",
    "get_settings",
    "load_settings",
    "reset_settings",
]

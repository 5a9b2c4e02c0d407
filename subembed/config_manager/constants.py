"""Shared constants for the configuration manager package."""
from __future__ import annotations

from pathlib import Path

MODULE_DIR = Path(__file__).resolve().parent
PACKAGE_DIR = MODULE_DIR.parent.resolve()

DEFAULT_ASSFONTS_VERSION = "v0.7.3"
ASSFONTS_RELEASE_URL = "https://github.com/wyzdwdz/assfonts/releases/download"
DEFAULT_DOWNLOAD_TIMEOUT_SECONDS = 300.0
DEFAULT_TOOL_VERBOSITY = 2
DEFAULT_DATA_HOME = Path("~/.local/share")

CONFIG_ENV_VAR = "SUBEMBED_CONFIG"

__all__ = [
    "MODULE_DIR",
    "PACKAGE_DIR",
    "DEFAULT_ASSFONTS_VERSION",
    "ASSFONTS_RELEASE_URL",
    "DEFAULT_DOWNLOAD_TIMEOUT_SECONDS",
    "DEFAULT_TOOL_VERBOSITY",
    "DEFAULT_DATA_HOME",
    "CONFIG_ENV_VAR",
]

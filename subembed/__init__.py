"""Batch subtitle font embedding for subembed."""

from .environment import load_environment

# Load environment variables from .env-style files as soon as the package is
# imported so settings resolved by the CLI and library callers agree.
load_environment()

__version__ = "0.3.0"

__all__ = ["__version__", "load_environment"]

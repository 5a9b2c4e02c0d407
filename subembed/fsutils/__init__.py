"""Filesystem utility helpers for subembed."""

from __future__ import annotations

from .copying import copy_file_replace, copy_tree, filtered_copy, normalize_extensions
from .globbing import ResolutionError, list_matches, resolve_unique
from .temp_dirs import remove_tree, scoped_temp_dir

__all__ = [
    "ResolutionError",
    "copy_file_replace",
    "copy_tree",
    "filtered_copy",
    "list_matches",
    "normalize_extensions",
    "remove_tree",
    "resolve_unique",
    "scoped_temp_dir",
]

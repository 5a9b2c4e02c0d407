"""Dotenv discovery for subembed.

Variables already present in the process environment always win over values
read from files, so a shell export can override any ``.env`` entry.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import find_dotenv, load_dotenv

ENV_FILE_VARIABLE = "SUBEMBED_ENV_FILE"
ENV_NAME_VARIABLE = "SUBEMBED_ENV"

_loaded: Optional[Tuple[Path, ...]] = None


def dotenv_candidates() -> List[Path]:
    """Return existing dotenv files, highest precedence first.

    Paths listed in ``SUBEMBED_ENV_FILE`` come first. Then ``.env``,
    ``.env.<SUBEMBED_ENV>`` and ``.env.local`` are looked up from the working
    directory upwards.
    """

    found: List[Path] = []
    for entry in os.environ.get(ENV_FILE_VARIABLE, "").split(os.pathsep):
        if entry.strip():
            found.append(Path(entry.strip()).expanduser().resolve())

    names = [".env"]
    if os.environ.get(ENV_NAME_VARIABLE):
        names.append(f".env.{os.environ[ENV_NAME_VARIABLE]}")
    names.append(".env.local")
    for name in names:
        located = find_dotenv(name, usecwd=True)
        if located:
            found.append(Path(located).resolve())

    unique = list(dict.fromkeys(found))
    return [path for path in unique if path.is_file()]


def load_environment(*, force: bool = False) -> Tuple[Path, ...]:
    """Apply dotenv files once per process and return the ones that set values."""

    global _loaded
    if _loaded is not None and not force:
        return _loaded

    applied = []
    for path in dotenv_candidates():
        # load_dotenv returns False for files that define nothing.
        if load_dotenv(path, override=False):
            applied.append(path)
    _loaded = tuple(applied)
    return _loaded


__all__ = ["ENV_FILE_VARIABLE", "ENV_NAME_VARIABLE", "dotenv_candidates", "load_environment"]

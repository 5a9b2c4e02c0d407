"""Glob matching below a directory with an exactly-one-match helper."""

from __future__ import annotations

import glob
from pathlib import Path
from typing import List, Sequence

_GLOB_SPECIALS = frozenset("*?[")


class ResolutionError(RuntimeError):
    """Raised when a pattern does not match exactly one file."""

    def __init__(self, pattern: str, directory: Path | str, matches: Sequence[Path]) -> None:
        self.pattern = pattern
        self.directory = Path(directory)
        self.matches = list(matches)
        if not self.matches:
            message = f"No file matches {pattern!r} in {self.directory}"
        else:
            listing = ", ".join(str(path) for path in self.matches)
            message = (
                f"Expected exactly one file matching {pattern!r} in {self.directory}, "
                f"found {len(self.matches)}: {listing}"
            )
        super().__init__(message)


def translate_escapes(pattern: str) -> str:
    """Turn backslash escapes (``\\[``, ``\\*`` ...) into :mod:`glob` literals."""

    out: List[str] = []
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if char == "\\" and index + 1 < len(pattern):
            escaped = pattern[index + 1]
            out.append(f"[{escaped}]" if escaped in _GLOB_SPECIALS else escaped)
            index += 2
            continue
        out.append(char)
        index += 1
    return "".join(out)


def list_matches(directory: Path | str, pattern: str) -> List[Path]:
    """Return the regular files below ``directory`` matching ``pattern``.

    Results are absolute and sorted. ``**`` matches across directory levels and
    the directory itself is never interpreted as part of the pattern.
    """

    root = Path(directory).resolve()
    if not root.is_dir():
        return []
    matches = glob.glob(translate_escapes(pattern), root_dir=root, recursive=True)
    return sorted(root / match for match in matches if (root / match).is_file())


def resolve_unique(directory: Path | str, pattern: str) -> Path:
    """Return the single file matching ``pattern`` or raise :class:`ResolutionError`."""

    matches = list_matches(directory, pattern)
    if len(matches) != 1:
        raise ResolutionError(pattern, directory, matches)
    return matches[0]


__all__ = ["ResolutionError", "list_matches", "resolve_unique", "translate_escapes"]

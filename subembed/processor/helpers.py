"""Small helpers for building job descriptions."""

from __future__ import annotations

from typing import List


def episode_range(start: int, end: int) -> List[int]:
    """Return the integers from ``start`` to ``end``, both inclusive."""

    return list(range(start, end + 1))


def glob_bracket(
    index: int,
    *,
    prefix: str = "*",
    extension: str = ".ass",
    padding: int = 2,
) -> str:
    """Glob for files tagged with a bracketed, zero-padded index.

    ``glob_bracket(1)`` returns ``*\\[01\\]*.ass`` which matches
    ``Show [01] 1080p.ass``; the brackets are escaped so they match literally.
    """

    return f"{prefix}\\[{index:0{padding}d}\\]*{extension}"


__all__ = ["episode_range", "glob_bracket"]

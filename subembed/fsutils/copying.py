"""Copy helpers used when preparing plain source directories."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Iterable, Optional
from uuid import uuid4


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Lower-case extensions and ensure a leading dot."""

    normalized = set()
    for extension in extensions:
        value = extension.strip().lower()
        if not value:
            continue
        normalized.add(value if value.startswith(".") else f".{value}")
    return frozenset(normalized)


def copy_tree(source: Path | str, destination: Path | str) -> int:
    """Copy ``source`` (a directory or a single file) into ``destination``.

    Returns the number of files copied.
    """

    return filtered_copy(source, destination, None)


def filtered_copy(
    source: Path | str,
    destination: Path | str,
    extensions: Optional[Iterable[str]],
) -> int:
    """Copy files whose extension is in ``extensions``, keeping relative layout.

    ``extensions=None`` copies everything. A file ``source`` is copied into
    ``destination`` under its own name.
    """

    src = Path(source)
    dst = Path(destination)
    allowed = normalize_extensions(extensions) if extensions is not None else None
    dst.mkdir(parents=True, exist_ok=True)

    def wanted(path: Path) -> bool:
        return allowed is None or path.suffix.lower() in allowed

    if src.is_file():
        if not wanted(src):
            return 0
        shutil.copy2(src, dst / src.name)
        return 1

    copied = 0
    for current, dirnames, filenames in os.walk(src):
        dirnames.sort()
        base = Path(current)
        relative = base.relative_to(src)
        for filename in sorted(filenames):
            path = base / filename
            if not wanted(path):
                continue
            target_dir = dst / relative
            target_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, target_dir / filename)
            copied += 1
    return copied


def copy_file_replace(source: Path | str, destination: Path | str) -> Path:
    """Copy ``source`` over ``destination`` through a sibling temp file."""

    src = Path(source)
    dst = Path(destination)
    dst.parent.mkdir(parents=True, exist_ok=True)
    temp_path = dst.parent / f".{dst.name}.tmp-{uuid4().hex}"
    try:
        shutil.copyfile(src, temp_path)
        os.replace(temp_path, dst)
    except BaseException:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        raise
    return dst


__all__ = ["copy_file_replace", "copy_tree", "filtered_copy", "normalize_extensions"]

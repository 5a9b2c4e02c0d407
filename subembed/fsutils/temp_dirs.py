"""Scoped temporary directories with best-effort removal."""

from __future__ import annotations

import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from subembed import logging_manager as log_mgr

logger = log_mgr.logger


def remove_tree(path: Path | str) -> bool:
    """Recursively delete ``path``; failures are logged and reported as ``False``."""

    target = Path(path)
    try:
        shutil.rmtree(target)
    except FileNotFoundError:
        return True
    except OSError as exc:
        logger.warning(
            "Failed to remove %s: %s", target, exc, extra={"event": "fsutils.remove_failed"}
        )
        return False
    return True


@contextmanager
def scoped_temp_dir(prefix: str, dir: Optional[Path | str] = None) -> Iterator[Path]:
    """Create a temporary directory that is removed when the block exits."""

    if dir is not None:
        Path(dir).mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=prefix, dir=dir))
    try:
        yield path
    finally:
        remove_tree(path)


__all__ = ["remove_tree", "scoped_temp_dir"]

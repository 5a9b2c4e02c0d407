"""Per-batch cache of extracted or copied source directories."""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional
from uuid import uuid4

from subembed import logging_manager as log_mgr
from subembed.archives import ArchiveExtractor, ArchiveFormat, sniff_format
from subembed.fsutils import filtered_copy, remove_tree

from .exceptions import PreparationError
from .models import CacheStats

logger = log_mgr.logger

CACHE_PREFIX = "subembed_cache_"
MODE_EXTRACT = "extract"
MODE_COPY = "copy"

Copier = Callable[[Path, Path, Optional[Iterable[str]]], object]
Sniffer = Callable[[Path], ArchiveFormat]


class DirectoryCache:
    """Materialise source paths once per batch under a shared temporary root.

    Archives are extracted, everything else is copied (optionally filtered by
    extension). Entries are keyed by preparation mode and canonical path, so a
    source changed on disk after its first preparation is not picked up again.
    """

    def __init__(
        self,
        *,
        parent_dir: Optional[Path | str] = None,
        extractor: Optional[ArchiveExtractor] = None,
        sniffer: Sniffer = sniff_format,
        copier: Copier = filtered_copy,
    ) -> None:
        self._parent_dir = Path(parent_dir) if parent_dir is not None else None
        self._extractor = extractor or ArchiveExtractor()
        self._sniffer = sniffer
        self._copier = copier
        self._root: Optional[Path] = None
        self._entries: Dict[str, Path] = {}
        self._pending: Dict[str, asyncio.Future[Path]] = {}
        self._sub_dir_count = 0

    @property
    def root(self) -> Optional[Path]:
        """The cache root, or ``None`` before the first preparation."""

        return self._root

    def stats(self) -> CacheStats:
        return CacheStats(cached_entries=len(self._entries), sub_dir_count=self._sub_dir_count)

    async def prepare(
        self,
        source: Path | str,
        description: str,
        allowed_extensions: Optional[Iterable[str]] = None,
    ) -> Path:
        """Return a ready directory for ``source``, preparing it on first request."""

        source_path = Path(source)
        try:
            resolved = source_path.resolve(strict=True)
            mode = await asyncio.to_thread(self._mode_for, resolved)
        except OSError as exc:
            raise PreparationError(description, source_path, exc) from exc

        key = f"{mode}:{resolved}"
        cached = self._entries.get(key)
        if cached is not None:
            logger.info(
                "Using cached %s directory: %s",
                "extracted" if mode == MODE_EXTRACT else "copied",
                resolved.name,
                extra={"event": "processor.cache.hit"},
            )
            return cached

        pending = self._pending.get(key)
        if pending is not None:
            logger.debug(
                "Waiting for in-flight preparation of %s",
                resolved.name,
                extra={"event": "processor.cache.wait"},
            )
            return await asyncio.shield(pending)

        future: asyncio.Future[Path] = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            directory = await self._materialise(mode, resolved, description, allowed_extensions)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            error = PreparationError(description, source_path, exc)
            error.__cause__ = exc
            future.set_exception(error)
            # Mark retrieved; waiters (if any) still receive the exception.
            future.exception()
            raise error from exc
        else:
            self._entries[key] = directory
            future.set_result(directory)
            return directory
        finally:
            self._pending.pop(key, None)

    def cleanup(self) -> None:
        """Remove the cache root and forget every entry. Never raises."""

        if self._root is not None:
            logger.debug(
                "Removing cache root %s",
                self._root,
                extra={"event": "processor.cache.cleanup"},
            )
            remove_tree(self._root)
        self._root = None
        self._entries.clear()
        self._pending.clear()
        self._sub_dir_count = 0

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _mode_for(self, path: Path) -> str:
        if path.is_file() and self._sniffer(path).is_archive:
            return MODE_EXTRACT
        return MODE_COPY

    def _ensure_root(self) -> Path:
        if self._root is None:
            if self._parent_dir is not None:
                self._parent_dir.mkdir(parents=True, exist_ok=True)
            self._root = Path(tempfile.mkdtemp(prefix=CACHE_PREFIX, dir=self._parent_dir))
            logger.debug(
                "Created cache root %s", self._root, extra={"event": "processor.cache.root"}
            )
        return self._root

    def _new_sub_dir(self) -> Path:
        sub_dir = self._ensure_root() / uuid4().hex
        sub_dir.mkdir()
        self._sub_dir_count += 1
        return sub_dir

    async def _materialise(
        self,
        mode: str,
        source: Path,
        description: str,
        allowed_extensions: Optional[Iterable[str]],
    ) -> Path:
        sub_dir = self._new_sub_dir()
        try:
            if mode == MODE_EXTRACT:
                logger.info("Extracting %s: %s", description, source.name)
                await asyncio.to_thread(self._extractor.extract, source, sub_dir)
            elif allowed_extensions:
                logger.info("Copying %s (filtered by extension): %s", description, source.name)
                await asyncio.to_thread(self._copier, source, sub_dir, list(allowed_extensions))
            else:
                logger.info("Copying %s: %s", description, source.name)
                await asyncio.to_thread(self._copier, source, sub_dir, None)
        except BaseException:
            remove_tree(sub_dir)
            self._sub_dir_count -= 1
            raise
        return sub_dir


__all__ = ["CACHE_PREFIX", "DirectoryCache"]

from __future__ import annotations

import asyncio
import threading

import pytest

from subembed.archives import ArchiveExtractor
from subembed.fsutils import filtered_copy
from subembed.processor import DirectoryCache, PreparationError
from subembed.processor.cache import CACHE_PREFIX


class CountingExtractor(ArchiveExtractor):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0
        self._lock = threading.Lock()

    def extract(self, archive_path, dest_dir, *, archive_format=None):
        with self._lock:
            self.calls += 1
        return super().extract(archive_path, dest_dir, archive_format=archive_format)


class CountingCopier:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, source, destination, extensions):
        self.calls += 1
        return filtered_copy(source, destination, extensions)


def test_archive_is_extracted_once_per_batch(tmp_path, archive_builders):
    archive = archive_builders["zip"](tmp_path / "fonts.zip", {"A.ttf": b"a"})
    extractor = CountingExtractor()
    cache = DirectoryCache(parent_dir=tmp_path / "scratch", extractor=extractor)

    async def run():
        first = await cache.prepare(archive, "Font", [".ttf"])
        second = await cache.prepare(tmp_path / "." / "fonts.zip", "Font 2", [".ttf"])
        return first, second

    try:
        first, second = asyncio.run(run())
        assert first == second
        assert extractor.calls == 1
        assert (first / "A.ttf").read_bytes() == b"a"
        assert cache.stats().cached_entries == 1
        assert cache.stats().sub_dir_count == 1
        assert cache.root is not None and cache.root.name.startswith(CACHE_PREFIX)
        assert first.parent == cache.root
    finally:
        cache.cleanup()


def test_concurrent_requests_for_same_source_share_one_preparation(tmp_path, write_tree):
    source = tmp_path / "fonts"
    write_tree(source, {"a.ttf": b"a", "b.otf": b"b"})
    copier = CountingCopier()
    cache = DirectoryCache(parent_dir=tmp_path / "scratch", copier=copier)

    async def run():
        return await asyncio.gather(*(cache.prepare(source, "Font", [".ttf"]) for _ in range(4)))

    try:
        results = asyncio.run(run())
        assert len(set(results)) == 1
        assert copier.calls == 1
        assert sorted(p.name for p in results[0].iterdir()) == ["a.ttf"]
    finally:
        cache.cleanup()


def test_filtered_copy_of_plain_directory(tmp_path, write_tree):
    source = tmp_path / "fonts"
    write_tree(source, {"font.ttf": b"f", "readme.txt": b"r", "notes.md": b"n"})
    cache = DirectoryCache(parent_dir=tmp_path / "scratch")

    try:
        prepared = asyncio.run(cache.prepare(source, "Font", [".ttf"]))
        assert sorted(p.name for p in prepared.iterdir()) == ["font.ttf"]
        assert (source / "readme.txt").exists()
    finally:
        cache.cleanup()


def test_copy_without_allow_list_copies_everything(tmp_path, write_tree):
    source = tmp_path / "subs"
    write_tree(source, {"ep.ass": b"s", "extra/info.txt": b"i"})
    cache = DirectoryCache(parent_dir=tmp_path / "scratch")

    try:
        prepared = asyncio.run(cache.prepare(source, "Subtitle"))
        assert (prepared / "extra" / "info.txt").read_bytes() == b"i"
    finally:
        cache.cleanup()


def test_modes_are_cached_separately(tmp_path, archive_builders, write_tree):
    archive = archive_builders["tar"](tmp_path / "subs.tar", {"ep.ass": b"x"})
    folder = tmp_path / "subs"
    write_tree(folder, {"ep.ass": b"y"})
    cache = DirectoryCache(parent_dir=tmp_path / "scratch")

    async def run():
        return await cache.prepare(archive, "Subtitle"), await cache.prepare(folder, "Subtitle")

    try:
        extracted, copied = asyncio.run(run())
        assert extracted != copied
        assert cache.stats().cached_entries == 2
    finally:
        cache.cleanup()


def test_missing_source_raises_preparation_error(tmp_path):
    cache = DirectoryCache(parent_dir=tmp_path / "scratch")

    with pytest.raises(PreparationError) as excinfo:
        asyncio.run(cache.prepare(tmp_path / "nope", "Subtitle"))

    assert excinfo.value.description == "Subtitle"
    assert isinstance(excinfo.value.__cause__, FileNotFoundError)
    assert cache.root is None


def test_failed_extraction_is_wrapped_and_not_cached(tmp_path):
    broken = tmp_path / "broken.zip"
    broken.write_bytes(b"PK\x03\x04" + b"\x00" * 32)
    cache = DirectoryCache(parent_dir=tmp_path / "scratch")

    try:
        with pytest.raises(PreparationError) as excinfo:
            asyncio.run(cache.prepare(broken, "Font 2"))

        assert "Font 2" in str(excinfo.value)
        assert str(broken) in str(excinfo.value)
        assert excinfo.value.__cause__ is not None
        assert cache.stats().cached_entries == 0
        assert cache.stats().sub_dir_count == 0
        assert list(cache.root.iterdir()) == []
    finally:
        cache.cleanup()


def test_cleanup_removes_root_and_allows_reuse(tmp_path, write_tree):
    source = tmp_path / "fonts"
    write_tree(source, {"a.ttf": b"a"})
    cache = DirectoryCache(parent_dir=tmp_path / "scratch")

    first = asyncio.run(cache.prepare(source, "Font"))
    root = cache.root
    cache.cleanup()

    assert not root.exists()
    assert cache.root is None
    assert cache.stats().cached_entries == 0

    second = asyncio.run(cache.prepare(source, "Font"))
    try:
        assert second != first
        assert second.exists()
    finally:
        cache.cleanup()
    cache.cleanup()

from __future__ import annotations

import gzip

import pytest

from subembed.archives import ArchiveFormat, is_archive_file, sniff_format
from subembed.archives.formats import is_tar_header, sniff_bytes


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        ("zip", ArchiveFormat.ZIP),
        ("tar", ArchiveFormat.TAR),
        ("tar.gz", ArchiveFormat.TAR_GZ),
        ("7z", ArchiveFormat.SEVEN_ZIP),
    ],
)
def test_sniff_format_detects_built_archives(tmp_path, archive_builders, kind, expected):
    # Deliberately misleading extension: only content counts.
    path = archive_builders[kind](tmp_path / "payload.bin", {"a.txt": b"alpha"})

    assert sniff_format(path) is expected
    assert is_archive_file(path)


def test_sniff_format_ignores_extension(tmp_path):
    fake = tmp_path / "fonts.zip"
    fake.write_text("not an archive", encoding="utf-8")

    assert sniff_format(fake) is ArchiveFormat.NONE
    assert not is_archive_file(fake)


def test_sniff_format_plain_gzip_is_not_an_archive(tmp_path):
    path = tmp_path / "notes.txt.gz"
    with gzip.open(path, "wb") as handle:
        handle.write(b"just some text" * 100)

    assert sniff_format(path) is ArchiveFormat.NONE


def test_sniff_format_truncated_gzip_returns_none(tmp_path):
    path = tmp_path / "broken.tar.gz"
    path.write_bytes(b"\x1f\x8b\x08\x00garbage")

    assert sniff_format(path) is ArchiveFormat.NONE


def test_sniff_format_unreadable_paths_return_none(tmp_path):
    assert sniff_format(tmp_path / "missing.rar") is ArchiveFormat.NONE
    assert sniff_format(tmp_path) is ArchiveFormat.NONE


def test_sniff_bytes_recognises_rar_signatures():
    assert sniff_bytes(b"Rar!\x1a\x07\x00" + b"\x00" * 32) is ArchiveFormat.RAR
    assert sniff_bytes(b"Rar!\x1a\x07\x01\x00" + b"\x00" * 32) is ArchiveFormat.RAR


def test_is_tar_header_rejects_short_or_empty_blocks():
    assert not is_tar_header(b"ustar")
    assert not is_tar_header(b"\x00" * 512)


def test_archive_format_is_archive_flag():
    assert not ArchiveFormat.NONE.is_archive
    assert all(member.is_archive for member in ArchiveFormat if member is not ArchiveFormat.NONE)

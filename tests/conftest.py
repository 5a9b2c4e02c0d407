from __future__ import annotations

import gzip
import io
import os
import stat
import struct
import sys
import tarfile
import textwrap
import zipfile
import zlib
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

import py7zr
import pytest

from subembed.config_manager import SubembedSettings, reset_settings

FAKE_ASSFONTS = textwrap.dedent(
    """\
    import os
    import sys
    from pathlib import Path

    args = sys.argv[1:]
    if "--help" in args:
        print("assfonts v0.7.3")
        sys.exit(0)

    options = {"-f": []}
    index = 0
    while index < len(args):
        flag, value = args[index], args[index + 1]
        if flag == "-f":
            options["-f"].append(value)
        else:
            options[flag] = value
        index += 2

    mode = os.environ.get("FAKE_ASSFONTS_MODE", "ok")
    source = Path(options["-i"])
    output_dir = Path(options["-o"])
    if mode == "fail":
        print("[ERROR] missing font: Example Sans", file=sys.stderr)
        sys.exit(1)
    print(f"[INFO] subsetting {source.name}")
    if mode == "none":
        sys.exit(0)
    fonts = sorted(
        str(path.relative_to(root))
        for root in map(Path, options["-f"])
        for path in root.rglob("*")
        if path.is_file()
    )
    body = source.read_text(encoding="utf-8")
    report = "\\n".join([body, "[Fonts]", *fonts, f"verbosity={options.get('-v')}"])
    (output_dir / f"{source.stem}.assfonts.ass").write_text(report, encoding="utf-8")
    if mode == "double":
        (output_dir / f"{source.stem}.extra.assfonts.ass").write_text(report, encoding="utf-8")
    """
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch):
    for key in list(os.environ):
        if key.startswith("SUBEMBED_") or key in {"XDG_DATA_HOME", "FAKE_ASSFONTS_MODE"}:
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings(tmp_path: Path) -> SubembedSettings:
    return SubembedSettings(
        data_home=tmp_path / "data",
        tmp_dir=tmp_path / "scratch",
        batch_log_dir=tmp_path / "logs",
    )


@pytest.fixture
def fake_assfonts(tmp_path: Path) -> Path:
    script = tmp_path / "bin" / "assfonts"
    script.parent.mkdir(parents=True, exist_ok=True)
    script.write_text(f"#!{sys.executable}\n{FAKE_ASSFONTS}", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


def _write_tree(root: Path, files: Mapping[str, bytes]) -> None:
    for name, data in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


def build_tar(path: Path, files: Mapping[str, bytes], *, dir_modes: Optional[Dict[str, int]] = None) -> Path:
    with tarfile.open(path, "w") as archive:
        for directory, mode in (dir_modes or {}).items():
            info = tarfile.TarInfo(directory)
            info.type = tarfile.DIRTYPE
            info.mode = mode
            archive.addfile(info)
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            archive.addfile(info, io.BytesIO(data))
    return path


def build_tar_gz(path: Path, files: Mapping[str, bytes], **kwargs) -> Path:
    plain = path.with_name(path.name + ".plain")
    build_tar(plain, files, **kwargs)
    with open(plain, "rb") as source, gzip.open(path, "wb") as target:
        target.write(source.read())
    plain.unlink()
    return path


def build_zip(path: Path, files: Mapping[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in files.items():
            archive.writestr(name, data)
    return path


def build_seven_zip(path: Path, files: Mapping[str, bytes]) -> Path:
    with py7zr.SevenZipFile(path, "w") as archive:
        for name, data in files.items():
            archive.writestr(data, name)
    return path


RAR_SIGNATURE = b"Rar!\x1a\x07\x00"
_RAR_DOS_TIME = ((2024 - 1980) << 25) | (1 << 21) | (1 << 16)


def _rar_block(head_type: int, flags: int, body: bytes = b"", data: bytes = b"") -> bytes:
    header = struct.pack("<BHH", head_type, flags, 7 + len(body)) + body
    return struct.pack("<H", zlib.crc32(header) & 0xFFFF) + header + data


def _rar_entry(name: str, data: bytes, attr: int, *, directory: bool = False) -> bytes:
    encoded = name.encode("utf-8")
    body = struct.pack(
        "<LLBLLBBHL",
        len(data),
        len(data),
        3,  # host OS: Unix
        zlib.crc32(data),
        _RAR_DOS_TIME,
        20,
        0x30,  # stored
        len(encoded),
        attr,
    )
    flags = 0x8000 | (0x00E0 if directory else 0)
    return _rar_block(0x74, flags, body + encoded, data)


def build_rar(
    path: Path,
    files: Mapping[str, bytes],
    *,
    dir_modes: Optional[Dict[str, int]] = None,
    file_mode: int = 0o644,
) -> Path:
    """Write an uncompressed RAR 4 archive, readable without an unrar binary."""

    blocks = [RAR_SIGNATURE, _rar_block(0x73, 0, b"\x00" * 6)]
    for directory, mode in (dir_modes or {}).items():
        blocks.append(_rar_entry(directory, b"", stat.S_IFDIR | mode, directory=True))
    for name, data in files.items():
        blocks.append(_rar_entry(name, data, stat.S_IFREG | file_mode))
    blocks.append(_rar_block(0x7B, 0))
    path.write_bytes(b"".join(blocks))
    return path


@pytest.fixture
def archive_builders() -> Dict[str, Callable[..., Path]]:
    return {
        "tar": build_tar,
        "tar.gz": build_tar_gz,
        "zip": build_zip,
        "7z": build_seven_zip,
        "rar": build_rar,
    }


@pytest.fixture
def write_tree() -> Callable[[Path, Mapping[str, bytes]], None]:
    return _write_tree

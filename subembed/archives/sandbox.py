"""Isolated virtual filesystem used by the archive extraction tool.

The sandbox exposes a POSIX-style namespace rooted at ``/``. Directories are
memory-backed unless a host directory has been mounted on them, in which case
every path below the mount point is bridged to the host filesystem. The
extraction tool only ever sees virtual paths, so the host filesystem is
reachable exclusively through explicit mounts.
"""

from __future__ import annotations

import io
import os
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Optional

from subembed import logging_manager as log_mgr

from .exceptions import MountError

logger = log_mgr.logger

ModePolicy = Callable[[str, int], bool]
"""Decides whether ``chmod(path, mode)`` may be applied inside the sandbox."""


def skip_empty_modes(path: str, mode: int) -> bool:
    """Reject zero permission modes.

    Tar-family archives regularly record a mode of ``0`` for entries, which
    would leave extracted directories impossible to enter.
    """

    if not mode:
        logger.debug(
            "Ignoring empty mode for %s", path, extra={"event": "archives.sandbox.chmod_skipped"}
        )
        return False
    return True


def allow_all_modes(path: str, mode: int) -> bool:
    return True


@dataclass
class _MemoryNode:
    children: Optional[Dict[str, "_MemoryNode"]] = None
    data: bytes = b""
    mode: int = 0o644

    @property
    def is_dir(self) -> bool:
        return self.children is not None


def _memory_dir() -> _MemoryNode:
    return _MemoryNode(children={}, mode=0o755)


class _MemoryWriter(io.BytesIO):
    """Buffer that commits its content to a memory node when closed."""

    def __init__(self, node: _MemoryNode) -> None:
        super().__init__()
        self._node = node

    def close(self) -> None:
        if not self.closed:
            self._node.data = self.getvalue()
        super().close()


@dataclass
class ExtractionSandbox:
    """Virtual filesystem with host mounts and a memory-backed default backend."""

    mode_policy: ModePolicy = skip_empty_modes
    _root: _MemoryNode = field(default_factory=_memory_dir, init=False, repr=False)
    _mounts: Dict[str, Path] = field(default_factory=dict, init=False)
    _cwd: str = field(default="/", init=False)

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------
    @property
    def cwd(self) -> str:
        return self._cwd

    @property
    def mounts(self) -> Dict[str, Path]:
        """Return a snapshot of active mount points."""

        return dict(self._mounts)

    def resolve(self, path: str) -> str:
        """Return the normalised absolute virtual path for ``path``."""

        joined = posixpath.join(self._cwd, path)
        normalised = posixpath.normpath(joined)
        # normpath keeps a leading '//' as-is on POSIX.
        if normalised.startswith("//"):
            normalised = "/" + normalised.lstrip("/")
        return normalised

    def _mount_for(self, vpath: str) -> Optional[str]:
        for point in sorted(self._mounts, key=len, reverse=True):
            if vpath == point or vpath.startswith(point + "/"):
                return point
        return None

    def host_path(self, path: str) -> Optional[Path]:
        """Return the host path backing ``path`` or ``None`` for memory paths."""

        vpath = self.resolve(path)
        point = self._mount_for(vpath)
        if point is None:
            return None
        relative = vpath[len(point):].lstrip("/")
        base = self._mounts[point]
        return base / relative if relative else base

    def _lookup(self, vpath: str) -> Optional[_MemoryNode]:
        node = self._root
        for part in [segment for segment in vpath.split("/") if segment]:
            if node.children is None:
                return None
            child = node.children.get(part)
            if child is None:
                return None
            node = child
        return node

    def _memory_parent(self, vpath: str) -> tuple[_MemoryNode, str]:
        parent_path, name = posixpath.split(vpath)
        if not name:
            raise FileExistsError(vpath)
        parent = self._lookup(parent_path)
        if parent is None or not parent.is_dir:
            raise FileNotFoundError(f"No such virtual directory: {parent_path}")
        return parent, name

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def exists(self, path: str) -> bool:
        host = self.host_path(path)
        if host is not None:
            return host.exists()
        return self._lookup(self.resolve(path)) is not None

    def is_dir(self, path: str) -> bool:
        host = self.host_path(path)
        if host is not None:
            return host.is_dir()
        node = self._lookup(self.resolve(path))
        return node is not None and node.is_dir

    def readdir(self, path: str = ".") -> list[str]:
        """List entry names directly below ``path``."""

        host = self.host_path(path)
        if host is not None:
            return sorted(entry.name for entry in host.iterdir())
        vpath = self.resolve(path)
        node = self._lookup(vpath)
        if node is None or not node.is_dir:
            raise NotADirectoryError(f"Not a virtual directory: {vpath}")
        return sorted(node.children or {})

    # ------------------------------------------------------------------
    # Directory management
    # ------------------------------------------------------------------
    def mkdir(self, path: str) -> None:
        host = self.host_path(path)
        if host is not None:
            host.mkdir()
            return
        parent, name = self._memory_parent(self.resolve(path))
        assert parent.children is not None
        if name in parent.children:
            raise FileExistsError(self.resolve(path))
        parent.children[name] = _memory_dir()

    def makedirs(self, path: str) -> None:
        host = self.host_path(path)
        if host is not None:
            host.mkdir(parents=True, exist_ok=True)
            return
        node = self._root
        for part in [segment for segment in self.resolve(path).split("/") if segment]:
            assert node.children is not None
            child = node.children.get(part)
            if child is None:
                child = node.children[part] = _memory_dir()
            elif not child.is_dir:
                raise NotADirectoryError(f"Virtual path component is a file: {part}")
            node = child

    def rmdir(self, path: str) -> None:
        vpath = self.resolve(path)
        if vpath in self._mounts:
            raise MountError(f"Cannot remove {vpath}: a host directory is still mounted")
        host = self.host_path(vpath)
        if host is not None:
            host.rmdir()
            return
        parent, name = self._memory_parent(vpath)
        assert parent.children is not None
        node = parent.children.get(name)
        if node is None or not node.is_dir:
            raise NotADirectoryError(f"Not a virtual directory: {vpath}")
        if node.children:
            raise OSError(f"Virtual directory not empty: {vpath}")
        del parent.children[name]

    def chdir(self, path: str) -> None:
        vpath = self.resolve(path)
        if not self.is_dir(vpath):
            raise NotADirectoryError(f"Not a directory: {vpath}")
        self._cwd = vpath

    # ------------------------------------------------------------------
    # Mounts
    # ------------------------------------------------------------------
    def mount(self, host_dir: Path | str, mount_point: str) -> None:
        """Bridge ``host_dir`` into the sandbox at ``mount_point``."""

        vpath = self.resolve(mount_point)
        if vpath in self._mounts:
            raise MountError(f"Mount point {vpath} is already in use")
        if self._mount_for(vpath) is not None:
            raise MountError(f"Cannot mount below another mount: {vpath}")
        node = self._lookup(vpath)
        if node is None or not node.is_dir:
            raise MountError(f"Mount point {vpath} does not exist")
        if node.children:
            raise MountError(f"Mount point {vpath} is not empty")
        host = Path(host_dir)
        if not host.is_dir():
            raise MountError(f"Host directory {host} does not exist")
        self._mounts[vpath] = host.resolve()
        logger.debug(
            "Mounted %s at %s", host, vpath, extra={"event": "archives.sandbox.mount"}
        )

    def unmount(self, mount_point: str) -> None:
        vpath = self.resolve(mount_point)
        if vpath not in self._mounts:
            raise MountError(f"Nothing is mounted at {vpath}")
        if self._cwd == vpath or self._cwd.startswith(vpath + "/"):
            raise MountError(f"Mount point {vpath} is busy")
        del self._mounts[vpath]
        logger.debug("Unmounted %s", vpath, extra={"event": "archives.sandbox.unmount"})

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    def open_read(self, path: str) -> BinaryIO:
        host = self.host_path(path)
        if host is not None:
            return host.open("rb")
        vpath = self.resolve(path)
        node = self._lookup(vpath)
        if node is None or node.is_dir:
            raise FileNotFoundError(f"No such virtual file: {vpath}")
        return io.BytesIO(node.data)

    def open_write(self, path: str) -> BinaryIO:
        """Open ``path`` for writing, replacing any existing file."""

        host = self.host_path(path)
        if host is not None:
            return host.open("wb")
        vpath = self.resolve(path)
        parent, name = self._memory_parent(vpath)
        assert parent.children is not None
        existing = parent.children.get(name)
        if existing is not None and existing.is_dir:
            raise IsADirectoryError(vpath)
        node = existing or _MemoryNode()
        parent.children[name] = node
        return _MemoryWriter(node)

    def unlink(self, path: str) -> None:
        host = self.host_path(path)
        if host is not None:
            host.unlink()
            return
        vpath = self.resolve(path)
        parent, name = self._memory_parent(vpath)
        assert parent.children is not None
        node = parent.children.get(name)
        if node is None or node.is_dir:
            raise FileNotFoundError(f"No such virtual file: {vpath}")
        del parent.children[name]

    def chmod(self, path: str, mode: int) -> None:
        """Apply ``mode`` to ``path`` unless the mode policy vetoes it."""

        vpath = self.resolve(path)
        if not self.mode_policy(vpath, mode):
            return
        host = self.host_path(vpath)
        if host is not None:
            os.chmod(host, mode)
            return
        node = self._lookup(vpath)
        if node is None:
            raise FileNotFoundError(f"No such virtual path: {vpath}")
        node.mode = mode


__all__ = ["ExtractionSandbox", "ModePolicy", "allow_all_modes", "skip_empty_modes"]

"""Locate, download and install the pinned ``assfonts`` release."""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from subembed import logging_manager as log_mgr
from subembed.archives import ArchiveError, ArchiveExtractor
from subembed.config_manager import ASSFONTS_RELEASE_URL, SubembedSettings, get_settings
from subembed.fsutils import copy_file_replace, scoped_temp_dir
from subembed.media import CommandExecutionError, run_command

from .dmg import mounted_dmg
from .download import download
from .exceptions import InstallerError

logger = log_mgr.logger

BINARY_NAME = "assfonts"
_ARCH_ALIASES = {"arm64": "aarch64", "amd64": "x86_64", "x64": "x86_64"}
_SUPPORTED_ARCHES = frozenset({"x86_64", "aarch64"})
_PLATFORM_SUFFIXES = {"linux": "Linux.tar.gz", "darwin": "macOS.dmg"}
_HELP_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class ReleaseAsset:
    """Downloadable assfonts build for one platform."""

    name: str
    url: str
    is_disk_image: bool


def normalize_arch(machine: str) -> str:
    value = machine.strip().lower()
    return _ARCH_ALIASES.get(value, value)


def select_asset(
    version: str,
    *,
    system: Optional[str] = None,
    machine: Optional[str] = None,
    base_url: str = ASSFONTS_RELEASE_URL,
) -> ReleaseAsset:
    """Pick the release asset for the given (or current) platform."""

    os_name = (system or platform.system()).strip().lower()
    arch = normalize_arch(machine or platform.machine())
    suffix = _PLATFORM_SUFFIXES.get(os_name)
    if suffix is None:
        raise InstallerError(f"Unsupported operating system: {os_name}")
    if arch not in _SUPPORTED_ARCHES:
        raise InstallerError(f"Unsupported architecture for {os_name}: {arch}")
    name = f"assfonts-{version}-{arch}-{suffix}"
    return ReleaseAsset(name=name, url=f"{base_url}/{version}/{name}", is_disk_image=os_name == "darwin")


def find_binary(search_dir: Path) -> Optional[Path]:
    """Return the first regular file named ``assfonts`` below ``search_dir``."""

    for candidate in sorted(search_dir.rglob(BINARY_NAME)):
        if candidate.is_file():
            return candidate
    return None


class AssfontsInstaller:
    """Make sure a working ``assfonts`` binary of the pinned version is available."""

    def __init__(
        self,
        settings: Optional[SubembedSettings] = None,
        *,
        downloader: Callable[..., Path] = download,
        extractor: Optional[ArchiveExtractor] = None,
        system: Optional[str] = None,
        machine: Optional[str] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._downloader = downloader
        self._extractor = extractor or ArchiveExtractor()
        self._system = system
        self._machine = machine

    @property
    def version(self) -> str:
        return self._settings.assfonts_version

    @property
    def bin_path(self) -> Path:
        return self._settings.install_dir / "bin" / BINARY_NAME

    def ensure_installed(self) -> Path:
        """Return the binary path, installing or repairing the binary if needed."""

        override = self._settings.assfonts_path
        if override is not None:
            if not override.is_file():
                raise InstallerError(f"Configured assfonts binary {override} does not exist")
            logger.debug("Using configured assfonts binary %s", override)
            return override

        if not self.bin_path.is_file():
            logger.info("assfonts is not installed, installing %s", self.version)
            return self.install()

        help_text = self._help_output()
        if help_text is not None and f"assfonts {self.version}" in help_text:
            logger.info("assfonts %s is installed", self.version)
            return self.bin_path

        logger.warning("assfonts at %s looks broken or outdated, reinstalling", self.bin_path)
        return self.install()

    def install(self) -> Path:
        asset = select_asset(self.version, system=self._system, machine=self._machine)
        logger.info("Downloading %s", asset.name, extra={"event": "installer.install.start"})
        logger.info("Install directory: %s", self._settings.install_dir)
        self.bin_path.parent.mkdir(parents=True, exist_ok=True)

        with scoped_temp_dir("assfonts-", dir=self._settings.tmp_dir) as temp_dir:
            archive = self._downloader(
                asset.url,
                temp_dir / asset.name,
                timeout=self._settings.download_timeout_seconds,
            )
            if asset.is_disk_image:
                with mounted_dmg(archive, tmp_dir=self._settings.tmp_dir) as mount_point:
                    self._copy_binary(find_binary(mount_point), asset)
            else:
                unpack_dir = temp_dir / "unpacked"
                try:
                    self._extractor.extract(archive, unpack_dir)
                except ArchiveError as exc:
                    raise InstallerError(f"Failed to extract {asset.name}") from exc
                self._copy_binary(find_binary(unpack_dir), asset)

        if not self.bin_path.is_file():
            raise InstallerError(f"Installation failed: {self.bin_path} is missing")

        logger.info("assfonts %s installed at %s", self.version, self.bin_path)
        help_text = self._help_output()
        if help_text is not None and BINARY_NAME in help_text:
            logger.info("assfonts is working")
        else:
            logger.warning("Could not verify assfonts at %s", self.bin_path)
        return self.bin_path

    def _copy_binary(self, found: Optional[Path], asset: ReleaseAsset) -> None:
        if found is None:
            raise InstallerError(f"No assfonts binary found in {asset.name}")
        logger.debug("Found binary %s", found, extra={"event": "installer.install.found"})
        copy_file_replace(found, self.bin_path)
        os.chmod(self.bin_path, 0o755)

    def _help_output(self) -> Optional[str]:
        try:
            result = run_command([str(self.bin_path), "--help"], timeout=_HELP_TIMEOUT_SECONDS)
        except CommandExecutionError as exc:
            logger.debug("assfonts --help failed: %s", exc)
            return None
        return f"{result.stdout or ''}{result.stderr or ''}"


def ensure_installed(settings: Optional[SubembedSettings] = None) -> Path:
    """Return a path to a working assfonts binary, installing it when necessary."""

    return AssfontsInstaller(settings).ensure_installed()


__all__ = [
    "AssfontsInstaller",
    "BINARY_NAME",
    "ReleaseAsset",
    "ensure_installed",
    "find_binary",
    "normalize_arch",
    "select_asset",
]

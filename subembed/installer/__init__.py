"""Installation of the external assfonts binary."""

from .assfonts import AssfontsInstaller, ReleaseAsset, ensure_installed, find_binary, select_asset
from .dmg import mounted_dmg
from .download import download
from .exceptions import DownloadError, DownloadTimeoutError, InstallerError

__all__ = [
    "AssfontsInstaller",
    "DownloadError",
    "DownloadTimeoutError",
    "InstallerError",
    "ReleaseAsset",
    "download",
    "ensure_installed",
    "find_binary",
    "mounted_dmg",
    "select_asset",
]

"""Streaming HTTP downloads with an overall deadline."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Mapping, Optional

import requests

from subembed import logging_manager as log_mgr

from .exceptions import DownloadError, DownloadTimeoutError

logger = log_mgr.logger

_CHUNK_SIZE = 64 * 1024


def download(
    url: str,
    dest_path: Path | str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> Path:
    """Download ``url`` into ``dest_path``.

    Args:
        url: The URL to fetch.
        dest_path: Target file; parent directories are created as needed.
        headers: Optional request headers.
        timeout: Seconds allowed for the whole transfer, or ``None`` for no bound.
        session: Optional requests session, mainly for connection reuse.

    Returns:
        The destination path.

    Raises:
        DownloadTimeoutError: The transfer did not finish within ``timeout``.
        DownloadError: The server answered with a non-success status or the
            connection failed.
    """
    destination = Path(dest_path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    client = session or requests.Session()
    deadline = None if timeout is None else time.monotonic() + timeout

    logger.debug("Downloading %s", url, extra={"event": "installer.download.start"})
    try:
        with client.get(url, headers=dict(headers or {}), stream=True, timeout=timeout) as response:
            if not response.ok:
                raise DownloadError(f"Download failed: {response.status_code} {response.reason}")
            with open(destination, "wb") as handle:
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    if deadline is not None and time.monotonic() > deadline:
                        raise DownloadTimeoutError(f"Download timed out: {url}")
                    if chunk:
                        handle.write(chunk)
    except requests.Timeout as exc:
        _discard(destination)
        raise DownloadTimeoutError(f"Download timed out: {url}") from exc
    except requests.RequestException as exc:
        _discard(destination)
        raise DownloadError(f"Download failed: {exc}") from exc
    except BaseException:
        _discard(destination)
        raise
    finally:
        if session is None:
            client.close()

    logger.debug("Downloaded %s to %s", url, destination, extra={"event": "installer.download.done"})
    return destination


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove partial download %s: %s", path, exc)


__all__ = ["download"]

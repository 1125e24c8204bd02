#!/usr/bin/env python3
"""
ST Installer Download Utility
Fetches an installer file over HTTP(S)
"""

import logging
from pathlib import Path
from typing import Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60
DEFAULT_MAX_REDIRECTS = 10
CHUNK_SIZE = 1024 * 256


class DownloadError(Exception):
    """Download failed; the destination file does not exist afterwards"""


def fetch(
    url: str,
    destination: Path,
    timeout: float = DEFAULT_TIMEOUT,
    max_redirects: int = DEFAULT_MAX_REDIRECTS,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Download url to destination

    Args:
        url: Source URL
        destination: Target file; parent directories are created
        timeout: Seconds to wait for connect/read
        max_redirects: Redirects followed before giving up
        session: Session to use (default: a fresh one, closed afterwards)

    Returns:
        The destination path

    Raises:
        DownloadError: Network failure, non-2xx status or write failure
    """
    destination = Path(destination)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DownloadError(f"Could not create directory {destination.parent}: {e}") from e

    if session is not None:
        return _download(session, url, destination, timeout, max_redirects)
    with requests.Session() as own_session:
        return _download(own_session, url, destination, timeout, max_redirects)


def _download(
    session: requests.Session,
    url: str,
    destination: Path,
    timeout: float,
    max_redirects: int,
) -> Path:
    session.max_redirects = max_redirects

    logger.info("Downloading %s -> %s", url, destination)
    try:
        with session.get(url, stream=True, timeout=timeout, allow_redirects=True) as response:
            if not 200 <= response.status_code < 300:
                raise DownloadError(f"Unexpected HTTP status {response.status_code} for {url}")

            size = 0
            try:
                with open(destination, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            size += len(chunk)
            except (OSError, requests.RequestException) as e:
                destination.unlink(missing_ok=True)
                raise DownloadError(f"Writing {destination} failed: {e}") from e
    except requests.TooManyRedirects as e:
        raise DownloadError(f"Stopped after {max_redirects} redirects: {url}") from e
    except requests.Timeout as e:
        raise DownloadError(f"Timed out after {timeout} seconds: {url}") from e
    except requests.RequestException as e:
        raise DownloadError(f"Request to {url} failed: {e}") from e

    logger.info("Downloaded %s (%.2f MB)", destination.name, size / (1024 * 1024))
    return destination

"""
HTTP artifact fetcher.

Downloads go to a staging file beside the destination and are renamed
into place only after the whole body arrived with a 2xx status.  An
HTTP error (404 from a release redirect, 5xx from a CDN) therefore
never leaves an error page where a binary is expected.

``urllib.request`` follows redirects on its own, which is what the
GitHub ``releases/latest/download`` URLs rely on.
"""

from __future__ import annotations

import logging
import time
import urllib.error
import urllib.request
from pathlib import Path

from hostprep import __version__
from hostprep.adapters.base import ArtifactFetcher, CommandResult
from hostprep.core.services.download_helpers import fmt_size

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


class UrllibFetcher(ArtifactFetcher):
    """Download artifacts with ``urllib.request``."""

    def __init__(self, timeout: float = 300, text_timeout: float = 15) -> None:
        self._timeout = timeout
        self._text_timeout = text_timeout
        self._headers = {"User-Agent": f"hostprep/{__version__}"}

    def fetch(self, url: str, destination_path: Path) -> CommandResult:
        argv = ["fetch", url, str(destination_path)]
        staging = destination_path.with_name(f".{destination_path.name}.part")
        start = time.monotonic()

        try:
            destination_path.parent.mkdir(parents=True, exist_ok=True)
            req = urllib.request.Request(url, headers=self._headers)
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                total = int(resp.headers.get("Content-Length") or 0)
                downloaded = 0
                with open(staging, "wb") as f:
                    while True:
                        chunk = resp.read(_CHUNK)
                        if not chunk:
                            break
                        f.write(chunk)
                        downloaded += len(chunk)
            if total and downloaded != total:
                raise OSError(f"short read: got {downloaded} of {total} bytes")
            staging.replace(destination_path)
        except urllib.error.HTTPError as e:
            staging.unlink(missing_ok=True)
            return CommandResult.failure(f"HTTP {e.code} fetching {url}", argv=argv, returncode=22)
        except (urllib.error.URLError, OSError, ValueError) as e:
            staging.unlink(missing_ok=True)
            reason = getattr(e, "reason", e)
            return CommandResult.failure(f"Download failed for {url}: {reason}", argv=argv)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("Downloaded %s (%s) in %dms", url, fmt_size(downloaded), elapsed_ms)
        return CommandResult.success(
            f"Downloaded {fmt_size(downloaded)} to {destination_path}",
            argv=argv,
            duration_ms=elapsed_ms,
        )

    def fetch_text(self, url: str) -> CommandResult:
        argv = ["fetch", url]
        try:
            req = urllib.request.Request(url, headers=self._headers)
            with urllib.request.urlopen(req, timeout=self._text_timeout) as resp:
                body = resp.read(64 * 1024).decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            return CommandResult.failure(f"HTTP {e.code} fetching {url}", argv=argv, returncode=22)
        except (urllib.error.URLError, OSError, ValueError) as e:
            reason = getattr(e, "reason", e)
            return CommandResult.failure(f"Request failed for {url}: {reason}", argv=argv)
        return CommandResult.success(body, argv=argv)

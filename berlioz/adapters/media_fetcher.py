"""Fetcher for files attached to Slack messages (url_private, bot-token auth)."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

from berlioz.exceptions import MediaFetchError
from berlioz.infra.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
TIMEOUT_SECONDS = 30


@dataclass
class FetchedMedia:
    """Downloaded file content, addressed by its SHA-256."""

    content: bytes
    mime_type: str
    sha256: str
    url: str
    path: Optional[str] = None


class MediaFetcher:
    """Downloads private Slack files and optionally stores them by content hash."""

    def __init__(
        self,
        download_path: Optional[str] = None,
        timeout: int = TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._download_path = Path(download_path) if download_path else None
        self._timeout = timeout
        self._session = session or requests.Session()

    def fetch(
        self, url: str, access_token: str, mime_type: Optional[str] = None
    ) -> FetchedMedia:
        """
        GET url with the bot token and buffer the body.

        Raises:
            MediaFetchError: network error or non-200 response.
        """
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            resp = self._session.get(url, headers=headers, timeout=self._timeout)
        except requests.RequestException as e:
            raise MediaFetchError(f"Failed to fetch {url}: {e}") from e

        if resp.status_code != 200:
            raise MediaFetchError(f"Failed to fetch {url}: HTTP {resp.status_code}")

        content = resp.content
        resolved_type = (
            mime_type
            or (resp.headers.get("Content-Type") or "").split(";")[0].strip()
            or DEFAULT_MIME_TYPE
        )
        media = FetchedMedia(
            content=content,
            mime_type=resolved_type,
            sha256=hashlib.sha256(content).hexdigest(),
            url=url,
        )
        if self._download_path is not None:
            media.path = str(self._materialize(media, self._download_path))
        logger.info(
            "Fetched %d bytes (%s) sha256=%s", len(content), resolved_type, media.sha256
        )
        return media

    def _materialize(self, media: FetchedMedia, directory: Path) -> Path:
        """Write content to <directory>/<sha256>; existing files are reused."""
        target = directory / media.sha256
        if target.exists():
            return target
        try:
            directory.mkdir(parents=True, exist_ok=True)
            target.write_bytes(media.content)
        except OSError as e:
            raise MediaFetchError(f"Failed to store {media.url} at {target}: {e}") from e
        return target

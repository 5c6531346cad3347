"""Authenticated download of the remote product feed."""

from __future__ import annotations

from pathlib import Path

import httpx
import structlog

from ..config import FeedConfig
from ..errors import FetchError


class FeedFetcher:
    """Download the feed with HTTP basic auth and keep a local copy."""

    def __init__(
        self,
        config: FeedConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self._client = client or httpx.Client(follow_redirects=True, timeout=config.timeout)
        self.logger = logger or structlog.get_logger("catalog_sync.fetcher")

    def close(self) -> None:
        self._client.close()

    def fetch(self, output_path: Path | None = None) -> bytes:
        if not self.config.url:
            raise FetchError("Feed URL is not configured")
        auth = (
            httpx.BasicAuth(self.config.username, self.config.password)
            if self.config.username
            else None
        )
        try:
            response = self._client.get(self.config.url, auth=auth, timeout=self.config.timeout)
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to download feed {self.config.url}: {exc}") from exc
        if response.status_code != httpx.codes.OK:
            raise FetchError(
                f"Bad response downloading feed: {response.status_code} {response.reason_phrase}"
            )
        content = response.content
        if output_path is not None:
            try:
                output_path.parent.mkdir(parents=True, exist_ok=True)
                output_path.write_bytes(content)
            except OSError as exc:
                raise FetchError(f"Failed to save feed to {output_path}: {exc}") from exc
            self.logger.info("feed_downloaded", path=str(output_path), size=len(content))
        return content


__all__ = ["FeedFetcher"]

"""Feed sources for the risk list, tried in order until one succeeds."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import httpx
import structlog

from .config import settings
from .errors import FeedUnavailable
from .feed_parser import decode_feed, parse
from .models import FeedSource
from .storage import KeyValueStore, read_snapshot

log = structlog.get_logger()


@dataclass
class SourceResult:
    source: FeedSource
    entries: dict[str, str]
    last_update: datetime | None = None
    persist: bool = True


class SourceStrategy(ABC):
    """One way of obtaining the risk list.

    Implementations:
        - RemoteFeedSource: downloads the ČOI open-data CSV
        - CachedSnapshotSource: last successful list from the local store
        - BundledFeedSource: CSV file shipped with the package
    """

    kind: FeedSource

    @abstractmethod
    async def load(self) -> SourceResult:
        """Return a non-empty list or raise FeedUnavailable."""


class RemoteFeedSource(SourceStrategy):
    kind = FeedSource.REMOTE

    def __init__(
        self,
        url: str | None = None,
        encoding: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url or settings.feed_url
        self.encoding = encoding or settings.feed_encoding
        self.timeout = timeout or settings.fetch_timeout_seconds
        self._transport = transport

    async def load(self) -> SourceResult:
        log.info("fetching_remote_feed", url=self.url)
        headers = {"Accept": "text/csv,text/plain,*/*", "User-Agent": settings.user_agent}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport, follow_redirects=True
            ) as client:
                resp = await client.get(self.url, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise FeedUnavailable(self.kind, f"{type(exc).__name__}: {exc}") from exc

        content_type = resp.headers.get("content-type", "")
        if content_type and "text/" not in content_type and "csv" not in content_type:
            log.warning("unexpected_content_type", content_type=content_type)

        entries = parse(decode_feed(resp.content, self.encoding))
        if not entries:
            raise FeedUnavailable(self.kind, "feed parsed to an empty list")
        return SourceResult(self.kind, entries)


class CachedSnapshotSource(SourceStrategy):
    kind = FeedSource.CACHE

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def load(self) -> SourceResult:
        snapshot = await read_snapshot(self.store)
        if snapshot is None:
            raise FeedUnavailable(self.kind, "no cached snapshot")
        last_update = None
        if snapshot.last_update:
            try:
                last_update = datetime.fromisoformat(snapshot.last_update)
            except ValueError:
                log.warning("snapshot_bad_timestamp", value=snapshot.last_update)
        # already persisted, nothing to write back
        return SourceResult(self.kind, snapshot.as_mapping(), last_update, persist=False)


class BundledFeedSource(SourceStrategy):
    kind = FeedSource.BUNDLED

    def __init__(self, path: str | Path | None = None, encoding: str | None = None) -> None:
        self.path = path or settings.bundled_feed_path or None
        self.encoding = encoding or settings.feed_encoding

    def _read(self) -> bytes:
        if self.path:
            return Path(self.path).read_bytes()
        return (Path(__file__).parent / "data" / "rizikove-seznam.csv").read_bytes()

    async def load(self) -> SourceResult:
        try:
            raw = await asyncio.to_thread(self._read)
        except OSError as exc:
            raise FeedUnavailable(self.kind, str(exc)) from exc
        entries = parse(decode_feed(raw, self.encoding))
        if not entries:
            raise FeedUnavailable(self.kind, "bundled feed is empty")
        return SourceResult(self.kind, entries)


async def first_success(
    strategies: Sequence[SourceStrategy],
    timeout: float | None = None,
) -> SourceResult | None:
    """Try each strategy in order; the first one that returns wins.

    Every attempt is bounded by ``timeout`` seconds. Returns ``None`` when
    all of them fail.
    """
    timeout = timeout or settings.source_timeout_seconds
    for strategy in strategies:
        try:
            return await asyncio.wait_for(strategy.load(), timeout=timeout)
        except FeedUnavailable as exc:
            log.warning("feed_source_failed", source=strategy.kind, error=exc.detail)
        except asyncio.TimeoutError:
            log.warning("feed_source_timeout", source=strategy.kind, timeout=timeout)
        except Exception:
            log.exception("feed_source_error", source=strategy.kind)
    return None

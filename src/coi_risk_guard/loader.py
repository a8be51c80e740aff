"""Reload the risk index from the source chain and persist the result."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

import structlog

from .config import settings
from .models import FeedSource, LoadResult
from .risk_index import RiskIndex
from .sources import (
    BundledFeedSource,
    CachedSnapshotSource,
    RemoteFeedSource,
    SourceStrategy,
    first_success,
)
from .storage import KeyValueStore, write_snapshot

log = structlog.get_logger()


class FeedLoader:
    """Runs remote -> cache -> bundled and swaps the index on success.

    Remote fetches are rate limited: a reload within
    ``min_fetch_interval`` of the previous attempt tries the cache first.
    If every source fails the current index is left untouched.
    """

    def __init__(
        self,
        index: RiskIndex,
        store: KeyValueStore,
        remote: SourceStrategy | None = None,
        bundled: SourceStrategy | None = None,
        min_fetch_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.index = index
        self.store = store
        self.remote = remote or RemoteFeedSource()
        self.cache = CachedSnapshotSource(store)
        self.bundled = bundled or BundledFeedSource()
        self.min_fetch_interval = (
            settings.min_fetch_interval_seconds if min_fetch_interval is None else min_fetch_interval
        )
        self._clock = clock
        self._last_fetch_attempt: float | None = None

    def _chain(self) -> Sequence[SourceStrategy]:
        now = self._clock()
        if (
            self._last_fetch_attempt is not None
            and now - self._last_fetch_attempt < self.min_fetch_interval
        ):
            log.info("feed_rate_limited", seconds_since_last=round(now - self._last_fetch_attempt, 1))
            return (self.cache, self.remote, self.bundled)
        self._last_fetch_attempt = now
        return (self.remote, self.cache, self.bundled)

    async def reload(self) -> LoadResult:
        return await self._run(self._chain())

    async def restore(self) -> LoadResult:
        """Rebuild the index without touching the network: cache, then bundled."""
        return await self._run((self.cache, self.bundled))

    async def _run(self, chain: Sequence[SourceStrategy]) -> LoadResult:
        result = await first_success(chain)
        if result is None:
            log.error("feed_all_sources_failed", kept_entries=self.index.size)
            return LoadResult(source=FeedSource.NONE, count=self.index.size, last_update=self.index.last_update)

        last_update = result.last_update or datetime.now(timezone.utc)
        self.index.replace(result.entries, last_update=last_update)
        if result.persist:
            await write_snapshot(self.store, self.index.snapshot())

        log.info("feed_loaded", source=result.source, count=self.index.size)
        return LoadResult(source=result.source, count=self.index.size, last_update=last_update)

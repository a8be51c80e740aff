"""Global on/off switch for acting on risky verdicts."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog

from .errors import StorageUnavailable
from .storage import PROTECTION_KEY, KeyValueStore

log = structlog.get_logger()

ProtectionObserver = Callable[[bool], Awaitable[None]]


class ProtectionState:
    """Session-scoped protection flag, enabled by default.

    The value is mirrored to the session store so it survives a popup
    close, and reset to enabled on every session start. Reads that fail
    fall back to enabled.
    """

    def __init__(self, store: KeyValueStore | None = None) -> None:
        self._enabled = True
        self._store = store
        self._observers: list[ProtectionObserver] = []

    def is_enabled(self) -> bool:
        return self._enabled

    def subscribe(self, observer: ProtectionObserver) -> None:
        self._observers.append(observer)

    async def set_enabled(self, enabled: bool) -> None:
        """Update the flag, persist it and notify every observer."""
        self._enabled = bool(enabled)
        log.info("protection_changed", enabled=self._enabled)
        await self._persist()
        for observer in self._observers:
            try:
                await observer(self._enabled)
            except Exception:
                log.exception("protection_observer_failed")

    async def load(self) -> bool:
        """Restore the flag from the session store; missing or unreadable -> enabled."""
        if self._store is None:
            return self._enabled
        try:
            stored = await self._store.get([PROTECTION_KEY])
        except StorageUnavailable:
            log.exception("protection_read_failed")
            stored = {}
        value = stored.get(PROTECTION_KEY)
        self._enabled = value if isinstance(value, bool) else True
        return self._enabled

    async def reset(self) -> None:
        """Force protection on; called unconditionally at session start."""
        self._enabled = True
        await self._persist()

    async def _persist(self) -> None:
        if self._store is None:
            return
        try:
            await self._store.set({PROTECTION_KEY: self._enabled})
        except StorageUnavailable:
            log.exception("protection_write_failed", enabled=self._enabled)

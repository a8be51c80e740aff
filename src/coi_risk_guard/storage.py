"""Key/value storage collaborators and the persisted snapshot helpers."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from .errors import StorageUnavailable
from .models import RiskSnapshot

log = structlog.get_logger()

SNAPSHOT_KEYS = ("scamDomains", "lastUpdate")
PROTECTION_KEY = "protectionEnabled"


class KeyValueStore(ABC):
    """Backend-agnostic async key/value store.

    Implementations:
        - InMemoryStore: session-scoped storage, gone when the process exits
        - JsonFileStore: durable local storage in a single JSON file

    Both raise StorageUnavailable when the backend cannot be used.
    """

    @abstractmethod
    async def get(self, keys: list[str] | tuple[str, ...]) -> dict[str, Any]:
        """Return the stored values for ``keys``; missing keys are omitted."""

    @abstractmethod
    async def set(self, items: dict[str, Any]) -> None:
        """Store every item, replacing previous values."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove everything."""


class InMemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    async def get(self, keys: list[str] | tuple[str, ...]) -> dict[str, Any]:
        return {k: self._data[k] for k in keys if k in self._data}

    async def set(self, items: dict[str, Any]) -> None:
        self._data.update(items)

    async def clear(self) -> None:
        self._data.clear()


class JsonFileStore(KeyValueStore):
    """All keys in one JSON object on disk; file I/O runs in a worker thread."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            raise StorageUnavailable(f"cannot read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageUnavailable(f"unexpected content in {self._path}")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            tmp.replace(self._path)
        except OSError as exc:
            raise StorageUnavailable(f"cannot write {self._path}: {exc}") from exc

    async def get(self, keys: list[str] | tuple[str, ...]) -> dict[str, Any]:
        data = await asyncio.to_thread(self._read)
        return {k: data[k] for k in keys if k in data}

    async def set(self, items: dict[str, Any]) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data.update(items)
            await asyncio.to_thread(self._write, data)

    async def clear(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write, {})


async def read_snapshot(store: KeyValueStore) -> RiskSnapshot | None:
    """Load the cached risk list; ``None`` when absent, empty or unreadable."""
    try:
        stored = await store.get(SNAPSHOT_KEYS)
    except StorageUnavailable:
        log.exception("snapshot_read_failed")
        return None
    if not stored.get("scamDomains"):
        return None
    try:
        return RiskSnapshot.model_validate(stored)
    except ValidationError:
        log.exception("snapshot_invalid")
        return None


async def write_snapshot(store: KeyValueStore, snapshot: RiskSnapshot) -> bool:
    """Persist the risk list. Returns False (and logs) when the store fails."""
    try:
        await store.set(snapshot.model_dump(by_alias=True, mode="json"))
    except StorageUnavailable:
        log.exception("snapshot_write_failed")
        return False
    log.info("snapshot_written", entries=len(snapshot.scam_domains), last_update=snapshot.last_update)
    return True

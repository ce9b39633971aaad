"""Short-lived read cache for group summaries and attendance history.

Entries are keyed by resource id and expire after a fixed TTL. Every mutation
path invalidates explicitly, so the TTL only bounds staleness caused by other
processes writing to the same database.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


def group_key(group_id: str) -> str:
    return f"group:{group_id}"


def history_key(group_id: str) -> str:
    return f"history:{group_id}"


class TTLCache:
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        # bumped on every invalidation so loads that raced one are not stored
        self._generation = 0

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return default
        return value

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        now = self._clock()
        self.prune(now)
        self._entries[key] = (now + self.ttl_seconds, value)

    def prune(self, now: Optional[float] = None) -> int:
        """Drop every expired entry; returns how many were dropped."""
        if now is None:
            now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[T]]) -> T:
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        generation = self._generation
        value = await loader()
        if generation == self._generation:
            self.set(key, value)
        return value

    def invalidate(self, key: str) -> bool:
        self._generation += 1
        return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        self._generation += 1
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        self._generation += 1
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def invalidate_group(cache: TTLCache, group_id: str) -> None:
    cache.invalidate(group_key(group_id))
    cache.invalidate(history_key(group_id))
    logger.debug("Invalidated cached reads for group %s", group_id)

"""Bounded in-memory cache for decoded images."""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from threading import Lock


class ImageCache:
    """Least-recently-used map from storage path to image data URL.

    Owned by whoever constructs it; entries expire after ``ttl_seconds``
    when a TTL is given.
    """

    def __init__(
        self,
        max_entries: int = 128,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[str, float]] = OrderedDict()
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def get(self, path: str) -> str | None:
        with self._lock:
            entry = self._entries.get(path)
            if entry is None:
                self.misses += 1
                return None
            value, stored_at = entry
            if self.ttl_seconds is not None and self._clock() - stored_at > self.ttl_seconds:
                del self._entries[path]
                self.misses += 1
                return None
            self._entries.move_to_end(path)
            self.hits += 1
            return value

    def set(self, path: str, value: str) -> None:
        with self._lock:
            self._entries[path] = (value, self._clock())
            self._entries.move_to_end(path)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    async def get_or_load(self, path: str, loader: Callable[[str], Awaitable[str]]) -> str:
        """Return the cached value, loading and storing it on a miss."""
        cached = self.get(path)
        if cached is not None:
            return cached
        value = await loader(path)
        self.set(path, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

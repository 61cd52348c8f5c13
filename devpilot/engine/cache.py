"""In-process result cache used on the hot path of every analysis.

Namespaced LRU caches with per-entry TTL. A value set is immediately
gettable until its TTL elapses; eviction only removes the least recently
used entry once a namespace is full.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from devpilot.rules.text import canonical_json

logger = logging.getLogger(__name__)

# Default namespace sizes
_NAMESPACES: dict[str, int] = {
    "analysis": 500,
    "ai": 5_000,
    "api": 1_000,
}


class Cache(Protocol):
    """What the decision loop needs from a cache."""

    def get(self, namespace: str, key: str) -> Any | None: ...

    def set(self, namespace: str, key: str, value: Any, ttl: int | None) -> None: ...

    def generate_key(self, namespace: str, data: Any) -> str: ...


@dataclass
class _Entry:
    value: Any
    expires_at: float | None


@dataclass
class CacheStats:
    size: int
    max_size: int
    hits: int
    misses: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class TTLCache:
    """Thread-safe LRU cache with optional per-entry TTL (seconds)."""

    def __init__(
        self,
        max_size: int = 1_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expires_at is not None and entry.expires_at <= self._clock():
                del self._entries[key]
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: int | None = 3_600) -> None:
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache evicted: %s", evicted)
            self._entries[key] = _Entry(value=value, expires_at=expires_at)
            self._entries.move_to_end(key)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def cleanup(self) -> int:
        """Drop expired entries, returning how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [
                k for k, e in self._entries.items()
                if e.expires_at is not None and e.expires_at <= now
            ]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_size=self._max_size,
                hits=self._hits,
                misses=self._misses,
            )


class CacheManager:
    """A set of named TTLCaches plus deterministic key generation."""

    def __init__(
        self,
        sizes: dict[str, int] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._caches = {
            name: TTLCache(size, clock) for name, size in (sizes or _NAMESPACES).items()
        }

    @staticmethod
    def generate_key(namespace: str, data: Any) -> str:
        """``<namespace>:<md5 of canonical JSON>`` — equal data, equal key."""
        digest = hashlib.md5(
            canonical_json(data).encode(), usedforsecurity=False,
        ).hexdigest()
        return f"{namespace}:{digest}"

    def get(self, namespace: str, key: str) -> Any | None:
        cache = self._caches.get(namespace)
        if cache is None:
            logger.warning("Cache %s not found", namespace)
            return None
        return cache.get(key)

    def set(self, namespace: str, key: str, value: Any, ttl: int | None) -> None:
        cache = self._caches.get(namespace)
        if cache is None:
            logger.warning("Cache %s not found", namespace)
            return
        cache.set(key, value, ttl)

    def clear(self, namespace: str | None = None) -> None:
        targets = [self._caches[namespace]] if namespace else list(self._caches.values())
        for cache in targets:
            cache.clear()
        logger.info("Cache %s cleared", namespace or "all")

    def cleanup(self) -> int:
        removed = sum(cache.cleanup() for cache in self._caches.values())
        if removed:
            logger.debug("Cache cleanup: removed %d expired entries", removed)
        return removed

    def stats(self) -> dict[str, CacheStats]:
        return {name: cache.stats() for name, cache in self._caches.items()}

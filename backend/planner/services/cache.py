"""In-process TTL cache for suggestion generation results."""
from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from planner.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    size: int = 0


class CacheTTL:
    """Time-to-live per cached payload, in seconds."""

    PLAN_GENERATION = settings.cache_ttl_plan_s
    BRIEFING_GENERATION = settings.cache_ttl_briefing_s
    RESCHEDULE_GENERATION = settings.cache_ttl_reschedule_s
    USER_CONTEXT = settings.cache_ttl_user_context_s
    TASKS_DATA = 10 * 60.0
    HABITS_DATA = 30 * 60.0


class ResultCache:
    """TTL-only memoization; there is no size bound or LRU eviction."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._stats = CacheStats()

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None
        if entry.expired(self._clock()):
            del self._entries[key]
            self._stats.misses += 1
            self._stats.size = len(self._entries)
            return None
        self._stats.hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock(), ttl=ttl)
        self._stats.size = len(self._entries)

    def delete(self, key: str) -> bool:
        removed = self._entries.pop(key, None) is not None
        self._stats.size = len(self._entries)
        return removed

    def clear(self) -> None:
        self._entries.clear()
        self._stats = CacheStats()

    def cleanup(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        self._stats.size = len(self._entries)
        if expired:
            logger.info("Cache cleanup: removed %s expired entries", len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._stats.hits, misses=self._stats.misses, size=self._stats.size)

    def __len__(self) -> int:
        return len(self._entries)


def generate_key(prefix: str, params: Mapping[str, Any]) -> str:
    """Build a key that ignores parameter order: ``prefix:a:1|b:2``."""
    joined = "|".join(f"{name}:{params[name]}" for name in sorted(params))
    return f"{prefix}:{joined}"


def hash_key(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


result_cache = ResultCache()

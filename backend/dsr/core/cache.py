from __future__ import annotations
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from dsr.core.clock import SYSTEM_CLOCK, Clock


@dataclass(frozen=True)
class CacheEntry:
    data: Any
    fetched_at: datetime


def is_fresh(entry: Optional[CacheEntry], ttl_seconds: float, now: datetime) -> bool:
    if entry is None:
        return False
    return now - entry.fetched_at < timedelta(seconds=ttl_seconds)


class TimedCache:
    """Single-value cache whose expiry is decided by ``is_fresh`` against an injected clock."""

    def __init__(self, ttl_seconds: float, clock: Clock = SYSTEM_CLOCK):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.entry: Optional[CacheEntry] = None
        self._lock = threading.Lock()

    def get(self) -> Optional[Any]:
        entry = self.entry
        if is_fresh(entry, self.ttl_seconds, self.clock.now()):
            return entry.data
        return None

    def get_or_load(self, loader: Callable[[], Any]) -> Any:
        with self._lock:
            entry = self.entry
            if is_fresh(entry, self.ttl_seconds, self.clock.now()):
                return entry.data
            data = loader()
            self.entry = CacheEntry(data=data, fetched_at=self.clock.now())
            return data

    def invalidate(self) -> None:
        with self._lock:
            self.entry = None


__all__ = ['CacheEntry', 'is_fresh', 'TimedCache']

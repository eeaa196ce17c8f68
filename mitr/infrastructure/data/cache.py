"""
In-process TTL caches for analysis results and conversation messages.

Expiry is enforced lazily on read and swept opportunistically on write.
Concurrent writers to the same key are last-write-wins.
"""
import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ...config import CACHE_EXPIRY_SECONDS

logger = logging.getLogger("cache")


@dataclass
class CacheEntry:
    """A cached value and when it was written."""
    data: Any
    timestamp: float


class TTLStore:
    """A key-value store whose entries expire after ``ttl_seconds``."""

    def __init__(self,
                 ttl_seconds: float = CACHE_EXPIRY_SECONDS,
                 clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > self.ttl_seconds

    def set(self, key: str, data: Any) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(data=data, timestamp=now)
            self._sweep(now)

    def get(self, key: str) -> Optional[Any]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry, now):
                del self._entries[key]
                return None
            return entry.data

    def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def values(self) -> List[Any]:
        """All live values, oldest write first."""
        now = self._clock()
        with self._lock:
            live = [e for e in self._entries.values() if not self._expired(e, now)]
        live.sort(key=lambda e: e.timestamp)
        return [e.data for e in live]

    def cleanup(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        with self._lock:
            return self._sweep(self._clock())

    def _sweep(self, now: float) -> int:
        stale = [k for k, e in self._entries.items() if self._expired(e, now)]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("Swept %d expired cache entries", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)


class AnalysisCache(TTLStore):
    """Analysis results keyed by an application-chosen string."""


class MessageCache(TTLStore):
    """Conversation messages keyed by message id."""

    def store_message(self, message_id: str, message: Any) -> None:
        self.set(message_id, message)

    def get_messages(self) -> List[Any]:
        return self.values()


def make_cache_key(user_message: str, context: Any = None, prefix: str = "response") -> str:
    """
    Build a stable key from a message and its (JSON-serialisable) context.
    """
    context_string = json.dumps(context, sort_keys=True, default=str) if context is not None else ""
    digest = hashlib.sha256(f"{user_message}_{context_string}".encode("utf-8")).hexdigest()[:16]
    return f"{prefix}_{digest}"

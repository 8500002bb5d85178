import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from django.utils import timezone


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    fetched_at: datetime


class ResponseCache:
    """
    Keeps API payloads for a fixed TTL.

    Entries are only replaced when a key is fetched again after expiry; there is
    no size bound, so memory grows with the number of distinct requests.
    """

    def __init__(self, ttl: timedelta, clock: Callable[[], datetime] = timezone.now):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.fetched_at < self.ttl

    def get(self, key: str) -> tuple[bool, Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not self._is_fresh(entry):
                return False, None
            return True, entry.payload

    def set(self, key: str, payload: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(payload=payload, fetched_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

import threading
import time
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

from devicegeo.models.common import LocationRecord

DEFAULT_TTL_SECONDS = 24 * 60 * 60  # 24 hours


class CacheEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    data: LocationRecord
    stored_at: float


class LocationCache:
    """In-process TTL cache of resolved locations keyed by IP (or ``"auto"``).

    Expired entries stay in the map until overwritten or cleared but are never
    returned by :meth:`get`. The lock only guards map access; it is never held
    while a provider is being called.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def now(self) -> float:
        return self._clock()

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.stored_at < self._ttl_seconds

    def get(self, key: str) -> LocationRecord | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or not self.is_fresh(entry):
            return None
        return entry.data

    def set(self, key: str, data: LocationRecord) -> CacheEntry:
        entry = CacheEntry(key=key, data=data, stored_at=self._clock())
        with self._lock:
            self._entries[key] = entry
        return entry

    def entries(self) -> list[CacheEntry]:
        with self._lock:
            return list(self._entries.values())

    def clear(self) -> int:
        """Evict everything; returns the number of entries removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

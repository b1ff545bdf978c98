"""Per-process TTL cache for generation results."""
import time
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

T = TypeVar("T")


class TTLCache(Generic[T]):
    """Keyed in-memory cache with pure time-based expiry.

    Last write wins. Entries older than ``ttl_seconds`` are treated as
    missing and dropped on access. The clock is injectable so tests can
    advance time without sleeping.
    """

    def __init__(self, ttl_seconds: float = 24 * 60 * 60, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._items: Dict[str, Tuple[T, float]] = {}

    def get(self, key: str) -> Optional[T]:
        """Return the cached value, or None if missing or expired."""
        item = self._items.get(key)
        if item is None:
            return None

        value, stored_at = item
        if self._clock() - stored_at > self.ttl_seconds:
            del self._items[key]
            return None
        return value

    def set(self, key: str, value: T) -> None:
        self._items[key] = (value, self._clock())

    def clear(self) -> None:
        self._items.clear()

    def clean_up(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        expired = [k for k, (_, stored_at) in self._items.items() if now - stored_at > self.ttl_seconds]
        for key in expired:
            del self._items[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

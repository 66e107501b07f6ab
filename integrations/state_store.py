"""Ephemeral key/value storage with lazy expiry.

Holds OAuth ``state`` values and post-callback handoff records. Entries carry
an absolute deadline that is compared to the clock on every read, so no timer
thread is needed; ``sweep()`` only reclaims memory.

Usage:
    store = InMemoryTTLStore()
    store.put("abc", {"user_id": 1}, ttl=600)
    record = store.take("abc")  # atomic read-then-delete
"""

import logging
import time
from abc import ABC, abstractmethod
from threading import Lock
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class TTLStore(ABC):
    """Interface for expiring storage.

    Implementations must make ``take`` atomic: two concurrent callers for the
    same key may not both receive the value.
    """

    @abstractmethod
    def put(self, key: str, value: Any, ttl: float) -> None:
        """Store value under key for ttl seconds, replacing any prior entry."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the live value, or None when missing or expired."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present."""

    @abstractmethod
    def take(
        self,
        key: str,
        predicate: Optional[Callable[[Any], bool]] = None,
    ) -> Optional[Any]:
        """Atomically return and remove the live value.

        When predicate is given and rejects the value, nothing is removed and
        None is returned.
        """

    @abstractmethod
    def ttl_remaining(self, key: str) -> Optional[float]:
        """Seconds left for key, or None when missing or expired."""

    def sweep(self) -> int:
        """Reclaim expired entries. Returns how many were removed."""
        return 0


class InMemoryTTLStore(TTLStore):
    """Process-local TTL store guarded by a single lock."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_every: int = 100,
    ):
        self._clock = clock
        self._sweep_every = sweep_every
        self._entries: dict[str, tuple[float, Any]] = {}
        self._writes = 0
        self._lock = Lock()

    def _live(self, key: str) -> Optional[tuple[float, Any]]:
        # Caller holds the lock.
        entry = self._entries.get(key)
        if entry is None:
            return None
        deadline, _ = entry
        if self._clock() >= deadline:
            del self._entries[key]
            return None
        return entry

    def put(self, key: str, value: Any, ttl: float) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)
            self._writes += 1
            should_sweep = self._sweep_every and self._writes % self._sweep_every == 0
        if should_sweep:
            self.sweep()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._live(key)
            return entry[1] if entry else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def take(
        self,
        key: str,
        predicate: Optional[Callable[[Any], bool]] = None,
    ) -> Optional[Any]:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            value = entry[1]
            if predicate is not None and not predicate(value):
                return None
            del self._entries[key]
            return value

    def ttl_remaining(self, key: str) -> Optional[float]:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            return entry[0] - self._clock()

    def sweep(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [key for key, (deadline, _) in self._entries.items() if now >= deadline]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired entries")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

"""
TTL store for Keygate.

In-memory key/value store with per-key expiration, shaped after the handful of
Redis commands the session layer relies on (SET with TTL, GET, EXISTS, EXPIRE,
DEL). Everything lives in process memory and is discarded on exit.

Expiration model:
- Every operation checks the entry deadline under the store lock, so an
  expired value is never handed out (observable staleness is zero).
- ExpiryReaper sweeps expired entries in the background, so memory held by
  abandoned keys is reclaimed within one sweep interval.
- A deadline lives on the entry itself. Writing or refreshing a key replaces
  it under the lock, which means an old deadline cannot outlive the write.
"""

import asyncio
import logging
import threading
import time
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Generic, Literal, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

V = TypeVar("V")


class Missing(Enum):
    """Sentinel type returned for absent or expired keys."""

    NOT_FOUND = "NOT_FOUND"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return self.value


NOT_FOUND = Missing.NOT_FOUND
NotFound = Literal[Missing.NOT_FOUND]


@dataclass
class Entry(Generic[V]):
    """Stored value plus its deadline (None means it never expires)."""

    value: V
    deadline: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.deadline is not None and self.deadline <= now


class TTLStore(Generic[V]):
    """
    Thread-safe mapping of string keys to values with sliding expiration.

    A single lock guards the map and is held only for the in-memory
    mutation, never across logging or I/O.
    """

    def __init__(self, default_ttl: float = 0, clock: Callable[[], float] = time.monotonic):
        """
        Initialize store.

        Args:
            default_ttl: TTL in seconds applied when none is given (0 = never expire)
            clock: Monotonic time source, injectable for tests
        """
        self._default_ttl = self._check_ttl(default_ttl)
        self._clock = clock
        self._data: Dict[str, Entry[V]] = {}
        self._dropped = 0
        self._lock = threading.Lock()

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @staticmethod
    def _check_ttl(ttl: float) -> float:
        if ttl < 0:
            raise ValueError(f"TTL must be non-negative, got {ttl}")
        return ttl

    def _deadline(self, ttl: Optional[float]) -> Optional[float]:
        ttl = self._default_ttl if ttl is None else self._check_ttl(ttl)
        if ttl == 0:
            return None
        return self._clock() + ttl

    def _live_entry(self, key: str) -> Optional[Entry[V]]:
        """Return the entry for key, dropping it if expired. Lock must be held."""
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._data[key]
            self._dropped += 1
            return None
        return entry

    def set(self, key: str, value: V, ttl: Optional[float] = None) -> None:
        """
        Insert or overwrite a key.

        Args:
            key: Key to write
            value: Value to store
            ttl: Seconds until expiry; None uses the default, 0 never expires
        """
        deadline = self._deadline(ttl)
        with self._lock:
            self._live_entry(key)
            self._data[key] = Entry(value=value, deadline=deadline)

    def get(self, key: str) -> Union[V, NotFound]:
        """Return the live value for key, or NOT_FOUND. Leaves the deadline alone."""
        with self._lock:
            entry = self._live_entry(key)
            return NOT_FOUND if entry is None else entry.value

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def refresh(self, key: str, ttl: Optional[float] = None) -> bool:
        """
        Reset the deadline of an existing key, keeping its value.

        Args:
            key: Key to refresh
            ttl: New TTL in seconds; None uses the default, 0 clears the deadline

        Returns:
            True if the key was live and its deadline was replaced
        """
        deadline = self._deadline(ttl)
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return False
            entry.deadline = deadline
            return True

    def delete(self, key: str) -> Union[V, NotFound]:
        """Remove key immediately. Returns the removed value or NOT_FOUND."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return NOT_FOUND
            del self._data[key]
            return entry.value

    def ttl(self, key: str) -> Union[float, None, NotFound]:
        """
        Remaining lifetime of key in seconds.

        Returns:
            Seconds left, None if the key never expires, NOT_FOUND if absent
        """
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return NOT_FOUND
            if entry.deadline is None:
                return None
            return max(0.0, entry.deadline - self._clock())

    def purge_expired(self) -> int:
        """
        Physically remove every entry whose deadline has passed.

        Deadlines are read under the lock at sweep time, so an entry
        refreshed before the sweep is kept.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._data.items() if entry.is_expired(now)]
            for key in expired:
                del self._data[key]
        return len(expired)

    def pop_dropped(self) -> int:
        """
        Number of expired entries removed on access since the last call.

        Operations drop an expired entry as soon as they touch it, so those
        expiries never reach purge_expired(). The counter resets on read.
        """
        with self._lock:
            dropped, self._dropped = self._dropped, 0
        return dropped

    def __len__(self) -> int:
        """Number of entries currently held, including expired ones not yet swept."""
        with self._lock:
            return len(self._data)


class ExpiryReaper:
    """Background asyncio task that sweeps a TTLStore at a fixed interval."""

    def __init__(
        self,
        store: TTLStore,
        interval: float = 1.0,
        on_expired: Optional[Callable[[int], None]] = None,
    ):
        """
        Initialize reaper.

        Args:
            store: Store to sweep
            interval: Seconds between sweeps (bounds how long expired entries linger)
            on_expired: Optional callback receiving the expired count of each sweep
        """
        if interval <= 0:
            raise ValueError(f"Sweep interval must be positive, got {interval}")
        self.store = store
        self.interval = interval
        self.on_expired = on_expired
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start sweeping. Must be called from a running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="keygate-expiry-reaper")
        logger.info(f"Expiry reaper started (interval={self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Expiry reaper stopped")

    def sweep(self) -> int:
        """
        Run one sweep immediately.

        Returns:
            Expired entries removed by this sweep plus those dropped on
            access since the previous one
        """
        removed = self.store.purge_expired() + self.store.pop_dropped()
        if removed:
            logger.debug(f"Reaped {removed} expired entries")
            if self.on_expired:
                self.on_expired(removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Expiry sweep failed: {e}")

"""Counter store abstraction + in-memory implementation."""

import math
import time
from abc import ABC, abstractmethod
from typing import Callable

from storegate.stores.models import WindowCounter

SWEEP_EVERY = 1000


class StoreError(Exception):
    """Raised when the backing store cannot complete an operation."""


class CounterStore(ABC):
    """Abstract base for fixed-window counter storage.

    Implementations must make ``increment`` atomic per key: concurrent
    callers each observe a distinct resulting count, and the expiry is
    set exactly once, when the key is created.
    """

    @abstractmethod
    async def increment(self, key: str, window_seconds: int) -> WindowCounter:
        """Add one to the counter at key, creating it with a TTL if absent."""
        ...

    @abstractmethod
    async def get(self, key: str) -> WindowCounter | None:
        """Read the counter without modifying it. Returns None if absent."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the counter. No-op if absent."""
        ...

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Remove every counter whose key starts with prefix. Returns count."""
        ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class MemoryCounterStore(CounterStore):
    """Per-process store for development and tests.

    No ``await`` happens between reading and writing an entry, so each
    operation is atomic within one event loop. Running several workers
    multiplies the effective limit.

    Expired entries are dropped when their key is touched, and every
    ``sweep_every`` increments a full sweep removes the rest, so one-off
    identifiers do not accumulate in a long-running process.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_every: int = SWEEP_EVERY):
        self._clock = clock
        self._sweep_every = sweep_every
        self._since_sweep = 0
        # key -> (count, expires_at)
        self._counters: dict[str, tuple[int, float]] = {}

    def _live_entry(self, key: str) -> tuple[int, float] | None:
        entry = self._counters.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            # Expired: drop it like the store TTL would
            del self._counters[key]
            return None
        return entry

    def _ttl(self, expires_at: float) -> int:
        return max(0, math.ceil(expires_at - self._clock()))

    def _sweep(self) -> int:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._counters.items() if expires_at <= now]
        for key in expired:
            del self._counters[key]
        return len(expired)

    async def increment(self, key: str, window_seconds: int) -> WindowCounter:
        self._since_sweep += 1
        if self._since_sweep >= self._sweep_every:
            self._since_sweep = 0
            self._sweep()

        entry = self._live_entry(key)
        if entry is None:
            expires_at = self._clock() + window_seconds
            self._counters[key] = (1, expires_at)
            return WindowCounter(count=1, ttl=window_seconds)

        count, expires_at = entry
        count += 1
        self._counters[key] = (count, expires_at)
        return WindowCounter(count=count, ttl=self._ttl(expires_at))

    async def get(self, key: str) -> WindowCounter | None:
        entry = self._live_entry(key)
        if entry is None:
            return None
        count, expires_at = entry
        return WindowCounter(count=count, ttl=self._ttl(expires_at))

    async def delete(self, key: str) -> None:
        self._counters.pop(key, None)

    async def delete_prefix(self, prefix: str) -> int:
        matched = [k for k in self._counters if k.startswith(prefix)]
        for key in matched:
            del self._counters[key]
        return len(matched)

    async def close(self) -> None:
        self._counters.clear()

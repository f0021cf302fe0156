"""
Bounded in-memory caches with fixed-staleness expiry.

Every cache in FlightBoard is an explicit instance of `TTLCache` (or a
subclass) created with its own TTL and size and owned by a service
object, instead of module-level dictionaries:

- token cache:     size 1, per-entry TTL = token lifetime minus a margin
- route cache:     ~1 hour TTL, 2000 entries, caches negative lookups too
- schedule cache:  10 minute TTL plus a minimum refresh floor
- rate counters:   1 minute window per client

Expiry is measured from insertion. Reads never extend an entry's life,
and eviction at capacity removes the oldest-inserted entry, not the
least recently read one.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

from flightboard.config import config

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class CacheEntry(Generic[T]):
    """A cached value and the time it was inserted."""
    value: T
    inserted_at: float
    ttl: Optional[float] = None

    def age(self, now: float) -> float:
        return now - self.inserted_at


class TTLCache(Generic[T]):
    """
    Thread-safe TTL cache with a hard size limit.

    Entries older than their TTL are treated as absent by readers and
    removed lazily. Inserting a new key while the cache is full evicts
    exactly one entry: the one with the smallest `inserted_at`.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_size: int,
        name: str = 'cache',
        clock: Optional[Callable[[], float]] = None,
    ):
        if max_size < 1:
            raise ValueError('max_size must be at least 1')

        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.name = name
        self._clock = clock or time.time

        # Insertion-ordered: the first item is always the oldest
        self._entries: 'OrderedDict[Hashable, CacheEntry[T]]' = OrderedDict()
        self._lock = threading.RLock()

        # Statistics
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _now(self) -> float:
        return self._clock()

    def _is_fresh(self, entry: CacheEntry[T], now: float) -> bool:
        ttl = entry.ttl if entry.ttl is not None else self.ttl_seconds
        return entry.age(now) < ttl

    def get_entry(self, key: Hashable) -> Optional[CacheEntry[T]]:
        """
        Get the live entry for a key.

        Returns None if not cached or expired. A returned entry may hold
        a None value (a cached negative result).
        """
        now = self._now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if self._is_fresh(entry, now):
                    self._hits += 1
                    return entry
                # Expired
                del self._entries[key]
            self._misses += 1
        return None

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Get a cached value, or `default` if absent or expired."""
        entry = self.get_entry(key)
        if entry is None:
            return default
        return entry.value

    def set(self, key: Hashable, value: T, ttl: Optional[float] = None) -> CacheEntry[T]:
        """
        Insert or replace a value.

        Replacing an existing key restarts its age. A new key at capacity
        evicts the oldest-inserted entry first.
        """
        entry = CacheEntry(value=value, inserted_at=self._now(), ttl=ttl)
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                self._evict_oldest()
            self._entries[key] = entry
        return entry

    def _evict_oldest(self) -> None:
        """Remove the single oldest-inserted entry."""
        oldest_key, _ = self._entries.popitem(last=False)
        self._evictions += 1
        logger.debug(f'[{self.name}] Evicted oldest entry: {oldest_key}')

    def invalidate(self, key: Hashable) -> None:
        """Remove specific entry from cache."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Clear entire cache."""
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = self._now()
        with self._lock:
            expired = [
                key for key, entry in self._entries.items()
                if not self._is_fresh(entry, now)
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f'[{self.name}] Purged {len(expired)} expired entries')
        return len(expired)

    def items(self) -> List[Tuple[Hashable, T]]:
        """Snapshot of all live (key, value) pairs, oldest first."""
        now = self._now()
        with self._lock:
            return [
                (key, entry.value)
                for key, entry in self._entries.items()
                if self._is_fresh(entry, now)
            ]

    def __contains__(self, key: Hashable) -> bool:
        now = self._now()
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._is_fresh(entry, now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def stats(self) -> dict:
        """Get cache statistics."""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                'name': self.name,
                'entries': len(self._entries),
                'max_entries': self.max_size,
                'hits': self._hits,
                'misses': self._misses,
                'evictions': self._evictions,
                'hit_rate': self._hits / lookups if lookups > 0 else 0,
            }


class ScheduleCache(TTLCache[T]):
    """
    TTL cache with a minimum refresh floor.

    An entry is served unchanged while it is younger than either the TTL
    or the refresh floor, which caps how often the upstream schedule
    source can be hit. Expired entries are kept so the last known good
    value stays available through `get_stale`.
    """

    def __init__(
        self,
        ttl_seconds: float,
        refresh_floor_seconds: float,
        max_size: int = 16,
        name: str = 'schedule',
        clock: Optional[Callable[[], float]] = None,
    ):
        super().__init__(ttl_seconds, max_size, name=name, clock=clock)
        self.refresh_floor_seconds = refresh_floor_seconds

    def _is_fresh(self, entry: CacheEntry[T], now: float) -> bool:
        age = entry.age(now)
        return age < self.ttl_seconds or age < self.refresh_floor_seconds

    def get_entry(self, key: Hashable) -> Optional[CacheEntry[T]]:
        now = self._now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry, now):
                self._hits += 1
                return entry
            self._misses += 1
        return None

    def get_stale(self, key: Hashable) -> Optional[CacheEntry[T]]:
        """Return the entry for a key regardless of its age."""
        with self._lock:
            return self._entries.get(key)


@dataclass
class RateLimitDecision:
    """Outcome of counting one request against a client's budget."""
    allowed: bool
    count: int
    remaining: int
    retry_after_seconds: int


@dataclass
class _RateWindow:
    count: int = 0


class RateLimiter:
    """
    Per-client request counters over a fixed window.

    The window opens on a client's first request and is not extended by
    later ones; once it expires the next request starts a fresh count.
    """

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
        max_clients: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        limits = config.rate_limit
        self.max_requests = max_requests if max_requests is not None else limits.max_requests
        self.window_seconds = window_seconds if window_seconds is not None else limits.window_seconds
        self._windows: TTLCache[_RateWindow] = TTLCache(
            self.window_seconds,
            max_clients if max_clients is not None else limits.max_clients,
            name='rate_limit',
            clock=clock,
        )
        self._lock = threading.Lock()

    def hit(self, client_id: str) -> RateLimitDecision:
        """Count one request for `client_id` and decide whether to allow it."""
        with self._lock:
            entry = self._windows.get_entry(client_id)
            if entry is None:
                entry = self._windows.set(client_id, _RateWindow())

            # Mutate in place so the window start is not reset
            entry.value.count += 1
            count = entry.value.count
            elapsed = entry.age(self._windows._now())

        allowed = count <= self.max_requests
        retry_after = max(0, int(round(self.window_seconds - elapsed)))
        if not allowed:
            logger.warning(f'Client {client_id} exceeded rate limit ({count}/{self.max_requests})')

        return RateLimitDecision(
            allowed=allowed,
            count=count,
            remaining=max(0, self.max_requests - count),
            retry_after_seconds=retry_after if not allowed else 0,
        )

    def purge_expired(self) -> int:
        """Forget clients whose window has closed."""
        return self._windows.purge_expired()

    @property
    def stats(self) -> Dict[str, Any]:
        return self._windows.stats

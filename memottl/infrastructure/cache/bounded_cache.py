"""Concrete implementation of the bounded LRU + TTL cache.

Every entry carries an absolute expiry instant. Expired entries are removed
lazily (on access) or by an explicit cleanup sweep; when the store is full the
least recently used entry is evicted.
"""

import logging
import numbers
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, List, Optional

from memottl.domain.errors import CacheOperationError, ConfigurationError
from memottl.domain.interfaces.cache import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL_SECONDS = 60

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """Internal representation of a cache entry with expiry."""
    value: Any
    expires_at: float  # clock reading after which the entry is stale


def validate_max_size(max_size: Any) -> int:
    """Returns max_size if it is a positive integer, raises otherwise."""
    if isinstance(max_size, bool) or not isinstance(max_size, numbers.Integral) or max_size <= 0:
        raise ConfigurationError(f"max_size must be a positive integer, got {max_size!r}")
    return int(max_size)


def validate_ttl(ttl: Any) -> float:
    """Returns ttl if it is a positive number of seconds, raises otherwise."""
    if isinstance(ttl, bool) or not isinstance(ttl, numbers.Real) or not ttl > 0:
        raise ConfigurationError(f"ttl must be a positive number of seconds, got {ttl!r}")
    return ttl


class BoundedCache(CacheStore):
    """Fixed-capacity store combining LRU eviction with per-entry TTL.

    The OrderedDict's order is the recency order: the last item is the most
    recently used, the first item is the next eviction victim.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Optional[Clock] = None,
    ):
        """Initializes the cache.

        Args:
            max_size: Maximum number of entries kept at once.
            ttl: Seconds each entry stays valid after it is stored.
            clock: Callable returning the current time in seconds
                (defaults to time.monotonic).

        Raises:
            ConfigurationError: If max_size or ttl is not positive.
        """
        self._max_size = validate_max_size(max_size)
        self._ttl = validate_ttl(ttl)
        self._clock: Clock = clock or time.monotonic
        self._entries: "OrderedDict[Hashable, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        logger.debug(f"BoundedCache created (max_size={self._max_size}, ttl={self._ttl}s)")

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.contains_key(key)

    def __repr__(self) -> str:
        return f"BoundedCache(max_size={self._max_size}, ttl={self._ttl}, size={len(self)})"

    # --- CacheStore Interface Implementation ---

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Retrieves a live value and marks it most recently used."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default

            if self._clock() > entry.expires_at:
                del self._entries[key]
                logger.debug(f"Entry expired on access: key={key!r}")
                return default

            self._entries.move_to_end(key)
            return entry.value

    def set(self, key: Hashable, value: Any) -> Any:
        """Stores a value under key, refreshing its expiry and recency."""
        with self._lock:
            self._entries.pop(key, None)
            if len(self._entries) >= self._max_size:
                self._evict()
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + self._ttl)
            return value

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def cleanup(self) -> int:
        """Removes every entry whose expiry instant has passed."""
        with self._lock:
            now = self._clock()
            expired_keys = [k for k, entry in self._entries.items() if entry.expires_at < now]
            for k in expired_keys:
                del self._entries[k]
            if expired_keys:
                logger.debug(f"Cleanup removed {len(expired_keys)} expired entries")
            return len(expired_keys)

    def contains_key(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> List[Hashable]:
        """Keys ordered most recently used first."""
        with self._lock:
            return list(reversed(self._entries))

    # --- Internals ---

    def _evict(self) -> None:
        """Removes the least recently used entry."""
        try:
            oldest_key, _ = self._entries.popitem(last=False)
        except KeyError as e:
            raise CacheOperationError(
                f"eviction requested on an empty cache (max_size={self._max_size})", cause=e
            ) from e
        logger.debug(f"Evicted least recently used entry: key={oldest_key!r}")

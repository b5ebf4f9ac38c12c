"""Interface for the per-operation cache store.

Defines the contract for storing, retrieving, and expiring cached results
of a single memoized operation.
"""

import abc
from typing import Any, ContextManager, Hashable, List


class CacheStore(abc.ABC):
    """Abstract Base Class for a bounded, expiring key/value store."""

    @property
    @abc.abstractmethod
    def lock(self) -> ContextManager[Any]:
        """Reentrant lock serializing all traffic on this store."""
        pass

    @abc.abstractmethod
    def get(self, key: Hashable, default: Any = None) -> Any:
        """Retrieves a live value, marking it most recently used.

        Args:
            key: The cache key to retrieve.
            default: Returned when the key is absent or expired.

        Returns:
            The cached value, or `default`.
        """
        pass

    @abc.abstractmethod
    def set(self, key: Hashable, value: Any) -> Any:
        """Stores a value, evicting the least recently used entry if full.

        Args:
            key: The cache key to store the value under.
            value: The value to store (None is a valid value).

        Returns:
            The value, unchanged.
        """
        pass

    @abc.abstractmethod
    def delete(self, key: Hashable) -> bool:
        """Removes a key. Returns whether it was present."""
        pass

    @abc.abstractmethod
    def cleanup(self) -> int:
        """Removes every expired entry. Returns how many were removed."""
        pass

    @abc.abstractmethod
    def contains_key(self, key: Hashable) -> bool:
        """Membership test that ignores expiry."""
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        """Removes every entry."""
        pass

    @abc.abstractmethod
    def keys(self) -> List[Hashable]:
        """Keys ordered most recently used first."""
        pass

"""memottl: thread-safe method memoization with TTL and LRU eviction.

Example:

    from memottl import Memoizable, memoize

    class Report(Memoizable):
        @memoize(ttl=30, max_size=10)
        def render(self, period):
            ...
"""

from memottl.core.memoization_manager import MemoizationManager
from memottl.core.memoize import (
    Memoizable,
    MemoizedMethod,
    cleanup_memoized_operations,
    clear_all_memoized_operations,
    clear_memoized_operation,
    is_memoized,
    memoize,
    memoize_operation,
)
from memottl.core.registry import MemoizationRegistry, default_registry
from memottl.domain.errors import (
    CacheOperationError,
    ConfigurationError,
    KeyDerivationError,
    MemoTTLError,
)
from memottl.domain.models.common import MISSING, CleanupOutcome
from memottl.infrastructure.cache.bounded_cache import BoundedCache

__version__ = "0.2.0"

__all__ = [
    "BoundedCache",
    "CacheOperationError",
    "CleanupOutcome",
    "ConfigurationError",
    "KeyDerivationError",
    "MISSING",
    "MemoTTLError",
    "Memoizable",
    "MemoizationManager",
    "MemoizationRegistry",
    "MemoizedMethod",
    "cleanup_memoized_operations",
    "clear_all_memoized_operations",
    "clear_memoized_operation",
    "default_registry",
    "is_memoized",
    "memoize",
    "memoize_operation",
]

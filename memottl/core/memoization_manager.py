"""Per-owner memoization state and the fetch-or-compute orchestration.

One MemoizationManager exists per owning object. It holds one BoundedCache
per memoized operation, derives cache keys from call arguments and runs the
wrapped computation on a miss.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from memottl.domain.errors import CacheOperationError, ConfigurationError, KeyDerivationError
from memottl.domain.events.cache_events import (
    CacheCleared, CacheHit, CacheMiss, CleanupCompleted, DomainEvent, ResultStored,
)
from memottl.domain.models.common import (
    KWARGS_MARK, MISSING, NO_CALLBACK, CacheKey, CleanupOutcome, OperationId, OwnerToken,
)
from memottl.infrastructure.cache.bounded_cache import BoundedCache, Clock

logger = logging.getLogger(__name__)

# compute_fn(args, kwargs, callback) -> result
ComputeFn = Callable[[Tuple[Any, ...], Dict[str, Any], Optional[Callable[..., Any]]], Any]
EventHandler = Callable[[DomainEvent], None]


class _CallbackToken:
    """Identity contribution of a callback: equal only for the same object.

    Holds the callback so its id cannot be reused while the key is cached.
    """
    __slots__ = ("callback",)

    def __init__(self, callback: Callable[..., Any]):
        self.callback = callback

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _CallbackToken) and other.callback is self.callback

    def __hash__(self) -> int:
        return id(self.callback)

    def __repr__(self) -> str:
        return f"<callback {self.callback!r}>"


class MemoizationManager:
    """Owns the caches of every memoized operation of one owner."""

    def __init__(
        self,
        owner_token: OwnerToken,
        clock: Optional[Clock] = None,
        event_handler: Optional[EventHandler] = None,
    ):
        """Initializes an empty manager.

        Args:
            owner_token: Stable identity of the owner (its id()).
            clock: Clock handed to every cache this manager creates.
            event_handler: Optional callable receiving DomainEvents.
        """
        self.owner_token = owner_token
        self._clock = clock
        self._event_handler = event_handler
        self._caches: Dict[OperationId, BoundedCache] = {}
        self._registered: set = set()
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"MemoizationManager(owner={self.owner_token:#x}, operations={sorted(self._registered)})"

    def _dispatch(self, event: DomainEvent) -> None:
        if self._event_handler is None:
            return
        try:
            self._event_handler(event)
        except Exception as e:
            logger.warning(f"Event handler failed for {type(event).__name__}: {e}", exc_info=True)

    # --- Cache registry ---

    def resolve_cache(self, operation_id: OperationId, ttl: float, max_size: int) -> BoundedCache:
        """Returns the cache for operation_id, creating and registering it on first use.

        Raises:
            ConfigurationError: If the operation already has a cache built with
                a different ttl or max_size, or if ttl/max_size are invalid.
        """
        with self._lock:
            cache = self._caches.get(operation_id)
            if cache is not None:
                if cache.ttl != ttl or cache.max_size != max_size:
                    raise ConfigurationError(
                        f"conflicting configuration: cache exists with ttl={cache.ttl}, "
                        f"max_size={cache.max_size}; requested ttl={ttl}, max_size={max_size}",
                        operation_id=operation_id,
                    )
                return cache

            try:
                cache = BoundedCache(max_size=max_size, ttl=ttl, clock=self._clock)
            except ConfigurationError as e:
                raise ConfigurationError(e.reason, operation_id=operation_id) from e
            self._caches[operation_id] = cache
            self._registered.add(operation_id)
            logger.debug(f"Created cache for {operation_id} (ttl={ttl}s, max_size={max_size})")
            return cache

    def exists(self, operation_id: OperationId) -> bool:
        with self._lock:
            return operation_id in self._registered

    def operation_ids(self) -> List[OperationId]:
        with self._lock:
            return sorted(self._registered)

    def cache_for(self, operation_id: OperationId) -> Optional[BoundedCache]:
        with self._lock:
            return self._caches.get(operation_id)

    # --- Keys ---

    def derive_key(
        self,
        operation_id: OperationId,
        args: Sequence[Any],
        kwargs: Optional[Mapping[str, Any]] = None,
        callback: Optional[Callable[..., Any]] = None,
    ) -> CacheKey:
        """Builds the cache key for one call.

        The key is the owner token, the operation id, the positional
        arguments in order, the keyword arguments sorted by name, and the
        callback's identity (or NO_CALLBACK). Each argument is paired with its
        type so that equal values of different types (1, 1.0, True) get
        separate entries. Every argument must be hashable.

        Raises:
            KeyDerivationError: If an argument cannot be hashed.
        """
        parts: List[Any] = [self.owner_token, operation_id]
        for position, arg in enumerate(args):
            self._check_hashable(operation_id, f"positional argument {position}", arg)
            parts.append((type(arg), arg))
        if kwargs:
            parts.append(KWARGS_MARK)
            for name in sorted(kwargs):
                value = kwargs[name]
                self._check_hashable(operation_id, f"keyword argument '{name}'", value)
                parts.append((name, type(value), value))
        if callback is None:
            parts.append(NO_CALLBACK)
        else:
            parts.append(_CallbackToken(callback))
        return CacheKey(tuple(parts))

    @staticmethod
    def _check_hashable(operation_id: OperationId, label: str, value: Any) -> None:
        try:
            hash(value)
        except TypeError as e:
            raise KeyDerivationError(
                f"{label} of type {type(value).__name__} is not hashable",
                operation_id=operation_id,
                cause=e,
            ) from e

    # --- Orchestration ---

    def fetch_or_compute(
        self,
        operation_id: OperationId,
        ttl: float,
        max_size: int,
        args: Sequence[Any],
        kwargs: Optional[Mapping[str, Any]],
        callback: Optional[Callable[..., Any]],
        compute_fn: ComputeFn,
    ) -> Any:
        """Returns the cached result for this call, computing it on a miss.

        The cache lock is held while compute_fn runs so concurrent callers
        with the same key compute it once. Exceptions from compute_fn
        propagate unchanged and nothing is stored.
        """
        cache = self.resolve_cache(operation_id, ttl, max_size)
        key = self.derive_key(operation_id, args, kwargs, callback)
        call_kwargs = dict(kwargs) if kwargs else {}

        with cache.lock:
            result = cache.get(key, MISSING)
            if result is not MISSING:
                logger.debug(f"Cache hit for {operation_id}")
                self._dispatch(CacheHit(operation_id=operation_id))
                return result

            logger.debug(f"Cache miss for {operation_id}, computing")
            self._dispatch(CacheMiss(operation_id=operation_id))
            start_time = time.perf_counter()
            result = compute_fn(tuple(args), call_kwargs, callback)
            compute_ms = (time.perf_counter() - start_time) * 1000
            cache.set(key, result)
            self._dispatch(ResultStored(operation_id=operation_id, compute_ms=compute_ms))
            return result

    # --- Maintenance ---

    def clear(self, operation_id: OperationId) -> bool:
        """Destroys the cache for operation_id. Returns whether one existed."""
        with self._lock:
            cache = self._caches.pop(operation_id, None)
            self._registered.discard(operation_id)
        if cache is None:
            return False
        cache.clear()
        logger.debug(f"Cleared cache for {operation_id}")
        self._dispatch(CacheCleared(operation_id=operation_id))
        return True

    def clear_all(self) -> int:
        """Destroys every registered cache. Returns how many were cleared."""
        with self._lock:
            operation_ids = list(self._registered)
        return sum(1 for operation_id in operation_ids if self.clear(operation_id))

    def cleanup_all(self) -> Dict[OperationId, CleanupOutcome]:
        """Runs cleanup on every registered cache.

        A failure in one cache is recorded in its outcome and does not stop
        the sweep over the others.
        """
        with self._lock:
            caches = [(op, self._caches[op]) for op in sorted(self._registered)]

        outcomes: Dict[OperationId, CleanupOutcome] = {}
        for operation_id, cache in caches:
            try:
                removed = cache.cleanup()
            except CacheOperationError as e:
                error = CacheOperationError(e.reason, operation_id=operation_id, cause=e.cause or e)
            except Exception as e:
                error = CacheOperationError("cleanup failed", operation_id=operation_id, cause=e)
            else:
                outcomes[operation_id] = CleanupOutcome(operation_id, success=True, removed=removed)
                continue
            logger.error(f"Cleanup failed for {operation_id}: {error}", exc_info=True)
            outcomes[operation_id] = CleanupOutcome(operation_id, success=False, error=str(error))

        self._dispatch(CleanupCompleted(
            removed={op: o.removed for op, o in outcomes.items() if o.success},
            failed={op: o.error for op, o in outcomes.items() if not o.success} or None,
        ))
        return outcomes

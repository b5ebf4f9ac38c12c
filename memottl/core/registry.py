"""Side table mapping owning objects to their MemoizationManager.

Owners are tracked by id() and a weakref finalizer drops their state when
they are garbage collected, so nothing is stored on the owner itself.
"""

import logging
import threading
import weakref
from typing import Any, Dict, Optional

from memottl.core.memoization_manager import EventHandler, MemoizationManager
from memottl.domain.errors import ConfigurationError
from memottl.domain.models.common import OwnerToken
from memottl.infrastructure.cache.bounded_cache import Clock

logger = logging.getLogger(__name__)


class MemoizationRegistry:
    """Creates, finds, and tears down per-owner managers.

    Cached results and callbacks are held strongly. A memoized method whose
    result refers back to its owner (one returning self, say) keeps the
    owner alive, so its state is never released by garbage collection.
    Drop such state explicitly with discard() or
    clear_all_memoized_operations().
    """

    def __init__(self, clock: Optional[Clock] = None, event_handler: Optional[EventHandler] = None):
        """Initializes an empty registry.

        Args:
            clock: Clock for every cache created through this registry
                (None means time.monotonic).
            event_handler: Handler passed to every manager created here.
        """
        self.clock = clock
        self.event_handler = event_handler
        self._managers: Dict[OwnerToken, MemoizationManager] = {}
        self._finalizers: Dict[OwnerToken, weakref.finalize] = {}
        # Reentrant: a finalizer may fire from a collection triggered under the lock
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._managers)

    def manager_for(self, owner: Any, operation_id: Optional[str] = None) -> MemoizationManager:
        """Returns the owner's manager, creating it on first use.

        operation_id only labels the error raised for unsupported owners.

        Raises:
            ConfigurationError: If the owner cannot be weakly referenced.
        """
        token = OwnerToken(id(owner))
        with self._lock:
            manager = self._managers.get(token)
            if manager is not None:
                return manager

            try:
                finalizer = weakref.finalize(owner, self._release, token)
            except TypeError as e:
                raise ConfigurationError(
                    f"owner of type {type(owner).__name__} does not support weak references; "
                    f"add '__weakref__' to its __slots__",
                    operation_id=operation_id,
                    cause=e,
                ) from e
            finalizer.atexit = False

            manager = MemoizationManager(token, clock=self.clock, event_handler=self.event_handler)
            self._managers[token] = manager
            self._finalizers[token] = finalizer
            logger.debug(f"Registered memoization state for {type(owner).__name__} at {token:#x}")
            return manager

    def lookup(self, owner: Any) -> Optional[MemoizationManager]:
        """Returns the owner's manager without creating one."""
        with self._lock:
            return self._managers.get(OwnerToken(id(owner)))

    def discard(self, owner: Any) -> bool:
        """Drops all memoization state of owner. Returns whether any existed."""
        token = OwnerToken(id(owner))
        with self._lock:
            finalizer = self._finalizers.pop(token, None)
            manager = self._managers.pop(token, None)
        if finalizer is not None:
            finalizer.detach()
        if manager is None:
            return False
        manager.clear_all()
        return True

    def _release(self, token: OwnerToken) -> None:
        """Finalizer callback: the owner was garbage collected."""
        with self._lock:
            self._finalizers.pop(token, None)
            manager = self._managers.pop(token, None)
        if manager is not None:
            manager.clear_all()
            logger.debug(f"Released memoization state of collected owner {token:#x}")


default_registry = MemoizationRegistry()

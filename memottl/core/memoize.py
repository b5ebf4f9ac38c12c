"""Decoration surface: turning instance methods into memoized methods.

`memoize` wraps a method in a MemoizedMethod descriptor; calls go through
the owner's MemoizationManager. The per-instance management calls are
available both as module functions and through the Memoizable mixin.
"""

import functools
import inspect
import logging
from types import MethodType
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from memottl.core.registry import MemoizationRegistry, default_registry
from memottl.domain.errors import ConfigurationError
from memottl.domain.models.common import CleanupOutcome, OperationId
from memottl.infrastructure.cache.bounded_cache import validate_max_size, validate_ttl
from memottl.infrastructure.config.settings import get_default_max_size, get_default_ttl

logger = logging.getLogger(__name__)


class MemoizedMethod:
    """Descriptor standing in for a memoized instance method.

    Holds the wrapped function and the cache configuration. The
    operation id becomes '<Class qualname>.<attribute name>' once the
    descriptor is assigned to a class.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        ttl: float,
        max_size: int,
        callback_param: Optional[str] = None,
        registry: Optional[MemoizationRegistry] = None,
    ):
        if isinstance(func, (staticmethod, classmethod)) or not callable(func):
            raise ConfigurationError(
                f"only plain instance methods can be memoized, got {type(func).__name__}"
            )
        functools.update_wrapper(self, func)
        self.original = func
        self.name = func.__name__
        self.operation_id = OperationId(func.__qualname__)
        try:
            self.ttl = validate_ttl(ttl)
            self.max_size = validate_max_size(max_size)
        except ConfigurationError as e:
            raise ConfigurationError(e.reason, operation_id=self.operation_id) from e
        self.callback_param = callback_param
        self._registry = registry

    def __set_name__(self, owner_cls: type, name: str) -> None:
        self.name = name
        self.operation_id = OperationId(f"{owner_cls.__qualname__}.{name}")

    def __get__(self, instance: Any, owner_cls: Optional[type] = None) -> Any:
        if instance is None:
            return self
        return MethodType(self, instance)

    def __repr__(self) -> str:
        return f"<MemoizedMethod {self.operation_id} ttl={self.ttl} max_size={self.max_size}>"

    @property
    def registry(self) -> MemoizationRegistry:
        return self._registry if self._registry is not None else default_registry

    def __call__(self, owner: Any, *args: Any, **kwargs: Any) -> Any:
        callback = None
        if self.callback_param is not None and self.callback_param in kwargs:
            callback = kwargs.pop(self.callback_param)

        manager = self.registry.manager_for(owner, self.operation_id)
        return manager.fetch_or_compute(
            self.operation_id, self.ttl, self.max_size, args, kwargs, callback,
            lambda call_args, call_kwargs, call_callback: self.invoke_original(
                owner, call_args, call_kwargs, call_callback
            ),
        )

    def invoke_original(
        self,
        owner: Any,
        args: Sequence[Any] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
        callback: Optional[Callable[..., Any]] = None,
    ) -> Any:
        """Calls the un-memoized implementation on owner."""
        call_kwargs = dict(kwargs or {})
        if callback is not None:
            call_kwargs[self.callback_param] = callback
        return self.original(owner, *args, **call_kwargs)


def _resolve_settings(ttl: Optional[float], max_size: Optional[int]) -> Tuple[Any, Any]:
    return (
        get_default_ttl() if ttl is None else ttl,
        get_default_max_size() if max_size is None else max_size,
    )


def memoize(
    func: Optional[Callable[..., Any]] = None,
    *,
    ttl: Optional[float] = None,
    max_size: Optional[int] = None,
    callback_param: Optional[str] = None,
    registry: Optional[MemoizationRegistry] = None,
) -> Any:
    """Memoizes an instance method with TTL and LRU eviction.

    Usable bare (``@memoize``) or with options (``@memoize(ttl=10)``).

    Args:
        func: The method being decorated (when used bare).
        ttl: Seconds a result stays valid; configured default when None.
        max_size: Results kept per owner; configured default when None.
        callback_param: Keyword argument treated as a trailing callback:
            it is keyed by identity and forwarded to the original method.
        registry: Registry holding per-owner state (default_registry if None).

    Raises:
        ConfigurationError: If ttl or max_size is not positive.
    """
    ttl, max_size = _resolve_settings(ttl, max_size)

    def decorator(f: Callable[..., Any]) -> MemoizedMethod:
        return MemoizedMethod(f, ttl=ttl, max_size=max_size,
                              callback_param=callback_param, registry=registry)

    if func is not None:
        return decorator(func)
    return decorator


def memoize_operation(
    cls: type,
    name: str,
    *,
    ttl: Optional[float] = None,
    max_size: Optional[int] = None,
    callback_param: Optional[str] = None,
    registry: Optional[MemoizationRegistry] = None,
) -> MemoizedMethod:
    """Memoizes the method `name` of `cls` in place.

    Raises:
        ConfigurationError: If `cls` has no callable attribute `name`, if
            ttl/max_size are invalid, or if the method is already memoized
            with a different configuration.
    """
    operation_id = f"{cls.__qualname__}.{name}"
    attr = inspect.getattr_static(cls, name, None)
    if attr is None:
        raise ConfigurationError(f"{cls.__qualname__} has no method '{name}'", operation_id=operation_id)

    ttl, max_size = _resolve_settings(ttl, max_size)
    if isinstance(attr, MemoizedMethod):
        if (attr.ttl, attr.max_size, attr.callback_param) != (ttl, max_size, callback_param):
            raise ConfigurationError(
                f"already memoized with ttl={attr.ttl}, max_size={attr.max_size}; "
                f"requested ttl={ttl}, max_size={max_size}",
                operation_id=attr.operation_id,
            )
        return attr
    if not inspect.isfunction(attr):
        raise ConfigurationError(
            f"'{name}' is a {type(attr).__name__}, not an instance method", operation_id=operation_id
        )

    try:
        wrapper = MemoizedMethod(attr, ttl=ttl, max_size=max_size,
                                 callback_param=callback_param, registry=registry)
    except ConfigurationError as e:
        raise ConfigurationError(e.reason, operation_id=operation_id) from e
    setattr(cls, name, wrapper)
    wrapper.__set_name__(cls, name)
    logger.debug(f"Memoized {wrapper.operation_id} (ttl={wrapper.ttl}s, max_size={wrapper.max_size})")
    return wrapper


# --- Per-instance management ---

def _resolve(owner: Any, name: str) -> Tuple[MemoizationRegistry, OperationId]:
    attr = inspect.getattr_static(type(owner), name, None)
    if isinstance(attr, MemoizedMethod):
        return attr.registry, attr.operation_id
    # A full operation id may name a base-class method shadowed by an override
    for klass in type(owner).__mro__:
        for candidate in vars(klass).values():
            if isinstance(candidate, MemoizedMethod) and candidate.operation_id == name:
                return candidate.registry, candidate.operation_id
    return default_registry, OperationId(name)


def _registries(owner: Any) -> list:
    registries: list = []
    for klass in type(owner).__mro__:
        for attr in vars(klass).values():
            if isinstance(attr, MemoizedMethod) and all(attr.registry is not r for r in registries):
                registries.append(attr.registry)
    return registries or [default_registry]


def clear_memoized_operation(owner: Any, name: str) -> bool:
    """Drops owner's cache for one method (by name or operation id)."""
    registry, operation_id = _resolve(owner, name)
    manager = registry.lookup(owner)
    return manager.clear(operation_id) if manager is not None else False


def clear_all_memoized_operations(owner: Any) -> int:
    """Drops every memoization cache of owner. Returns how many were dropped."""
    cleared = 0
    for registry in _registries(owner):
        manager = registry.lookup(owner)
        if manager is not None:
            cleared += manager.clear_all()
    return cleared


def cleanup_memoized_operations(owner: Any) -> Dict[OperationId, CleanupOutcome]:
    """Removes expired entries from every memoization cache of owner."""
    outcomes: Dict[OperationId, CleanupOutcome] = {}
    for registry in _registries(owner):
        manager = registry.lookup(owner)
        if manager is not None:
            outcomes.update(manager.cleanup_all())
    return outcomes


def is_memoized(owner: Any, name: str) -> bool:
    """Whether owner already has a cache for the method (by name or operation id)."""
    registry, operation_id = _resolve(owner, name)
    manager = registry.lookup(owner)
    return manager is not None and manager.exists(operation_id)


class Memoizable:
    """Mixin exposing the memoization management calls on instances."""

    __slots__ = ()

    def clear_memoized_operation(self, name: str) -> bool:
        return clear_memoized_operation(self, name)

    def clear_all_memoized_operations(self) -> int:
        return clear_all_memoized_operations(self)

    def cleanup_memoized_operations(self) -> Dict[OperationId, CleanupOutcome]:
        return cleanup_memoized_operations(self)

    def is_memoized(self, name: str) -> bool:
        return is_memoized(self, name)

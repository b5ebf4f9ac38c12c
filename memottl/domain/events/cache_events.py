"""Domain Events related to memoized calls and cache maintenance."""

from dataclasses import dataclass, field
import time
from typing import Dict, Optional

from memottl.domain.models.common import OperationId


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class CacheHit(DomainEvent):
    """A memoized call was answered from the cache."""
    operation_id: OperationId
    timestamp: float = field(default_factory=time.time)


@dataclass
class CacheMiss(DomainEvent):
    """A memoized call found nothing usable and will compute."""
    operation_id: OperationId
    timestamp: float = field(default_factory=time.time)


@dataclass
class ResultStored(DomainEvent):
    """A freshly computed result was stored."""
    operation_id: OperationId
    compute_ms: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class CacheCleared(DomainEvent):
    """One operation's cache was destroyed."""
    operation_id: OperationId
    timestamp: float = field(default_factory=time.time)


@dataclass
class CleanupCompleted(DomainEvent):
    """A cleanup sweep over all of an owner's caches finished."""
    removed: Dict[OperationId, int]
    failed: Optional[Dict[OperationId, str]] = None
    timestamp: float = field(default_factory=time.time)

"""Defines common Value Objects used across the memoization layers.

These objects represent simple values or concepts like operation ids,
cache keys and cleanup outcomes, ensuring consistency and type safety.
"""

from dataclasses import dataclass
from typing import Any, NewType, Optional, Tuple

# === Caching Context ===
OperationId = NewType("OperationId", str)                 # e.g. 'Report.render'
CacheKey = NewType("CacheKey", Tuple[Any, ...])          # Unique key for a cache entry
OwnerToken = NewType("OwnerToken", int)                  # id() of the owning object


class _Sentinel:
    """Named marker object; compares by identity only."""

    __slots__ = ("_name",)

    def __init__(self, name: str):
        self._name = name

    def __repr__(self) -> str:
        return f"<{self._name}>"

    def __reduce__(self) -> str:
        # Keep identity across copy/pickle
        return self._name


# Returned by lookups when nothing is stored (a stored None is a real value)
MISSING = _Sentinel("MISSING")
# Key contribution of a call made without a callback
NO_CALLBACK = _Sentinel("NO_CALLBACK")
# Separates positional from keyword arguments inside a key
KWARGS_MARK = _Sentinel("KWARGS_MARK")


# --- Structured Data ---
@dataclass(frozen=True)
class CleanupOutcome:
    """Result of running cleanup on one memoized operation's cache."""
    operation_id: OperationId
    success: bool
    removed: int = 0
    error: Optional[str] = None

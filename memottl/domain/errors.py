"""Error taxonomy for memoization.

Failures raised by the memoized methods themselves are not wrapped: they
propagate unchanged to the caller and are never cached.
"""

from typing import Optional


class MemoTTLError(Exception):
    """Base class for every error raised by memottl."""

    def __init__(
        self,
        message: str,
        operation_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.operation_id = operation_id
        self.cause = cause
        self.reason = message
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        text = message
        if self.operation_id:
            text = f"[{self.operation_id}] {text}"
        if self.cause is not None:
            text = f"{text} (cause: {type(self.cause).__name__}: {self.cause})"
        return text


class ConfigurationError(MemoTTLError):
    """Invalid ttl/max_size, missing operation, or conflicting registration."""


class KeyDerivationError(MemoTTLError):
    """Argument vector cannot be reduced to a deterministic cache key."""


class CacheOperationError(MemoTTLError):
    """Internal invariant violation inside a BoundedCache."""

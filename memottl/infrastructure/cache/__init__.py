"""Cache Store Implementation.

Provides the concrete CacheStore used for every memoized operation:
an in-memory store with LRU eviction and per-entry TTL.
Bounded Context: Cache Management
"""

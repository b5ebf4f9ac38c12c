"""Domain Event definitions.

Represents significant occurrences in a memoized call's life (hits, misses,
clears) that callers can observe through a manager's event handler.
"""

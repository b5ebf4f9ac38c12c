"""Domain Interfaces (Ports):

Defines the contracts (Abstract Base Classes) that infrastructure components
must implement. The memoization manager depends on these interfaces, not
concrete implementations.
"""

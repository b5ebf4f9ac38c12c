"""Domain Layer: value objects, errors, events and interfaces.

Contains no threading or storage logic; everything here is shared by the
core memoization layer and the infrastructure adapters.
"""

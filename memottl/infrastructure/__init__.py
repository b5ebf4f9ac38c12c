"""Infrastructure Layer: Contains concrete implementations and adapters.

Implements the interfaces defined in the domain layer (the bounded cache)
and connects the library to the outside world: configuration files,
logging, and the console benchmark.
"""

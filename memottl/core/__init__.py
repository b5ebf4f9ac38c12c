"""Core Application Layer: memoization orchestration.

Connects memoized methods (the decoration surface) with the per-owner
managers and the bounded caches they own.
"""

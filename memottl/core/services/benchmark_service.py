"""Service comparing plain and memoized calls of a slow operation.

Runs the same workload twice, once on a plain object and once on an
object whose `compute` method is memoized, and reports the timings.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from memottl.core.memoize import clear_all_memoized_operations, memoize_operation

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 10
DEFAULT_DELAY_SECONDS = 0.1


@dataclass
class BenchmarkResult:
    """Timings of one benchmark run."""
    iterations: int
    delay_seconds: float
    plain_seconds: float
    memoized_seconds: float
    plain_computations: int
    memoized_computations: int

    @property
    def saved_seconds(self) -> float:
        return self.plain_seconds - self.memoized_seconds


class Workload:
    """Simulates a heavy operation (e.g., a DB query or an API call)."""

    def __init__(self, delay_seconds: float, sleep: Callable[[float], None] = time.sleep):
        self.delay_seconds = delay_seconds
        self.computations = 0
        self._sleep = sleep

    def compute(self, value: int) -> int:
        self.computations += 1
        self._sleep(self.delay_seconds)
        return value * 42


class BenchmarkService:
    """Times plain vs memoized calls of Workload.compute."""

    def __init__(
        self,
        sleep: Callable[[float], None] = time.sleep,
        timer: Callable[[], float] = time.perf_counter,
    ):
        self._sleep = sleep
        self._timer = timer

    def run(
        self,
        iterations: int = DEFAULT_ITERATIONS,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        ttl: float = 60,
        max_size: int = 100,
        value: int = 5,
    ) -> BenchmarkResult:
        """Calls compute(value) `iterations` times on each object.

        Raises:
            ValueError: If iterations is not positive or delay is negative.
            ConfigurationError: If ttl or max_size is invalid.
        """
        if iterations <= 0:
            raise ValueError(f"iterations must be positive, got {iterations}")
        if delay_seconds < 0:
            raise ValueError(f"delay must not be negative, got {delay_seconds}")

        memoized_cls = type("MemoizedWorkload", (Workload,), {})
        memoize_operation(memoized_cls, "compute", ttl=ttl, max_size=max_size)

        plain = Workload(delay_seconds, sleep=self._sleep)
        memoized = memoized_cls(delay_seconds, sleep=self._sleep)

        logger.info(f"Benchmark: {iterations} iterations, delay={delay_seconds}s")
        plain_seconds = self._time(plain, iterations, value)
        memoized_seconds = self._time(memoized, iterations, value)
        clear_all_memoized_operations(memoized)

        result = BenchmarkResult(
            iterations=iterations,
            delay_seconds=delay_seconds,
            plain_seconds=plain_seconds,
            memoized_seconds=memoized_seconds,
            plain_computations=plain.computations,
            memoized_computations=memoized.computations,
        )
        logger.info(f"Benchmark finished: saved {result.saved_seconds * 1000:.2f} ms")
        return result

    def _time(self, workload: Workload, iterations: int, value: int) -> float:
        start = self._timer()
        for _ in range(iterations):
            workload.compute(value)
        return self._timer() - start

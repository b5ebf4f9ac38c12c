import threading
import time
from unittest.mock import MagicMock

import pytest

from memottl.core.memoization_manager import MemoizationManager
from memottl.domain.errors import CacheOperationError, ConfigurationError, KeyDerivationError
from memottl.domain.events.cache_events import CacheCleared, CacheHit, CacheMiss, CleanupCompleted, ResultStored
from memottl.domain.models.common import NO_CALLBACK, OperationId, OwnerToken

OP = OperationId("Service.fetch")


@pytest.fixture
def events():
    return []


@pytest.fixture
def manager(fake_clock, events):
    return MemoizationManager(OwnerToken(0x1234), clock=fake_clock, event_handler=events.append)


@pytest.fixture
def compute():
    """Compute function doubling its first argument, counting calls."""
    return MagicMock(side_effect=lambda args, kwargs, callback: args[0] * 2)


def fetch(manager: MemoizationManager, compute_fn, *args, ttl=10, max_size=3, callback=None, **kwargs):
    return manager.fetch_or_compute(OP, ttl, max_size, args, kwargs, callback, compute_fn)


# --- resolve_cache / exists ---

def test_resolve_cache_creates_once(manager: MemoizationManager):
    assert not manager.exists(OP)

    first = manager.resolve_cache(OP, ttl=10, max_size=3)
    second = manager.resolve_cache(OP, ttl=10, max_size=3)

    assert first is second
    assert first.ttl == 10 and first.max_size == 3
    assert manager.exists(OP)
    assert manager.operation_ids() == [OP]


def test_resolve_cache_rejects_conflicting_configuration(manager: MemoizationManager):
    manager.resolve_cache(OP, ttl=10, max_size=3)

    with pytest.raises(ConfigurationError) as exc_info:
        manager.resolve_cache(OP, ttl=20, max_size=3)

    assert exc_info.value.operation_id == OP
    assert "Service.fetch" in str(exc_info.value)
    assert manager.cache_for(OP).ttl == 10


def test_resolve_cache_invalid_settings_name_the_operation(manager: MemoizationManager):
    with pytest.raises(ConfigurationError, match=r"\[Service.fetch\] max_size"):
        manager.resolve_cache(OP, ttl=10, max_size=0)
    assert not manager.exists(OP)


# --- derive_key ---

def test_equal_arguments_derive_equal_keys(manager: MemoizationManager):
    assert manager.derive_key(OP, (1, "a")) == manager.derive_key(OP, (1, "a"))
    assert manager.derive_key(OP, (1,), {"x": 1, "y": 2}) == manager.derive_key(OP, (1,), {"y": 2, "x": 1})


def test_argument_order_matters(manager: MemoizationManager):
    assert manager.derive_key(OP, (1, 2)) != manager.derive_key(OP, (2, 1))
    assert manager.derive_key(OP, (3, 3)) == manager.derive_key(OP, (3, 3))


def test_equal_values_of_different_types_derive_different_keys(manager: MemoizationManager):
    int_key = manager.derive_key(OP, [1])
    float_key = manager.derive_key(OP, [1.0])
    bool_key = manager.derive_key(OP, [True])

    assert int_key != float_key
    assert float_key != bool_key
    assert int_key != bool_key
    assert manager.derive_key(OP, (), {"x": 1}) != manager.derive_key(OP, (), {"x": 1.0})


def test_equal_values_of_different_types_compute_separately(manager: MemoizationManager, compute: MagicMock):
    assert type(fetch(manager, compute, 1)) is int
    assert type(fetch(manager, compute, 1.0)) is float
    assert compute.call_count == 2


def test_keyword_and_positional_arguments_differ(manager: MemoizationManager):
    assert manager.derive_key(OP, (1,)) != manager.derive_key(OP, (), {"x": 1})


def test_operation_and_owner_are_part_of_the_key(manager: MemoizationManager):
    other_owner = MemoizationManager(OwnerToken(0x5678))

    assert manager.derive_key(OP, (1,)) != manager.derive_key(OperationId("Service.other"), (1,))
    assert manager.derive_key(OP, (1,)) != other_owner.derive_key(OP, (1,))


def test_callback_contributes_by_identity(manager: MemoizationManager):
    def on_done():
        pass

    def on_other():
        pass

    without = manager.derive_key(OP, (1,))
    with_cb = manager.derive_key(OP, (1,), callback=on_done)

    assert without[-1] is NO_CALLBACK
    assert with_cb != without
    assert with_cb == manager.derive_key(OP, (1,), callback=on_done)
    assert with_cb != manager.derive_key(OP, (1,), callback=on_other)


def test_unhashable_callback_still_keys_by_identity(manager: MemoizationManager):
    class Listener:
        __hash__ = None

        def __call__(self):
            pass

    listener = Listener()
    assert manager.derive_key(OP, (), callback=listener) == manager.derive_key(OP, (), callback=listener)


def test_unhashable_positional_argument_is_rejected(manager: MemoizationManager):
    with pytest.raises(KeyDerivationError) as exc_info:
        manager.derive_key(OP, (1, [2, 3]))

    message = str(exc_info.value)
    assert "Service.fetch" in message
    assert "positional argument 1" in message
    assert isinstance(exc_info.value.cause, TypeError)


def test_unhashable_keyword_argument_is_rejected(manager: MemoizationManager):
    with pytest.raises(KeyDerivationError, match="keyword argument 'opts'"):
        manager.derive_key(OP, (), {"opts": {"deep": True}})


# --- fetch_or_compute ---

def test_identical_calls_compute_once(manager: MemoizationManager, compute: MagicMock):
    assert fetch(manager, compute, 5) == 10
    assert fetch(manager, compute, 5) == 10
    assert compute.call_count == 1


def test_different_arguments_compute_separately(manager: MemoizationManager, compute: MagicMock):
    fetch(manager, compute, 5)
    fetch(manager, compute, 6)
    assert compute.call_count == 2


def test_compute_receives_args_kwargs_and_callback(manager: MemoizationManager, compute: MagicMock):
    callback = MagicMock()
    fetch(manager, compute, 4, callback=callback, scale=2)
    compute.assert_called_once_with((4,), {"scale": 2}, callback)


def test_none_result_is_cached(manager: MemoizationManager):
    compute = MagicMock(return_value=None)

    assert fetch(manager, compute, 1) is None
    assert fetch(manager, compute, 1) is None
    assert compute.call_count == 1


def test_failed_computation_is_not_cached(manager: MemoizationManager):
    compute = MagicMock(side_effect=[RuntimeError("backend down"), 42])

    with pytest.raises(RuntimeError, match="backend down"):
        fetch(manager, compute, 1)
    assert fetch(manager, compute, 1) == 42
    assert compute.call_count == 2


def test_key_derivation_failure_skips_computation(manager: MemoizationManager, compute: MagicMock):
    with pytest.raises(KeyDerivationError):
        fetch(manager, compute, [1])
    compute.assert_not_called()


def test_expired_result_is_recomputed(manager: MemoizationManager, compute: MagicMock, fake_clock):
    fetch(manager, compute, 5)
    fake_clock.advance(11)
    fetch(manager, compute, 5)
    assert compute.call_count == 2


def test_concurrent_misses_compute_once(fake_clock):
    manager = MemoizationManager(OwnerToken(1))
    calls = []
    barrier = threading.Barrier(6)
    results = []

    def slow(args, kwargs, callback):
        calls.append(args)
        time.sleep(0.05)
        return args[0] + 1

    def worker():
        barrier.wait()
        results.append(manager.fetch_or_compute(OP, 10, 3, (1,), {}, None, slow))

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert results == [2] * 6


def test_recursive_computation_reenters_same_cache(manager: MemoizationManager):
    def fib(args, kwargs, callback):
        n = args[0]
        if n < 2:
            return n
        return fetch(manager, fib, n - 1, max_size=50) + fetch(manager, fib, n - 2, max_size=50)

    assert fetch(manager, fib, 20, max_size=50) == 6765


# --- clear / clear_all / cleanup_all ---

def test_clear_forces_recomputation(manager: MemoizationManager, compute: MagicMock):
    fetch(manager, compute, 5)

    assert manager.clear(OP) is True
    assert not manager.exists(OP)
    assert manager.clear(OP) is False

    fetch(manager, compute, 5)
    assert compute.call_count == 2


def test_clear_all_counts_cleared_caches(manager: MemoizationManager, compute: MagicMock):
    manager.fetch_or_compute(OperationId("A.one"), 10, 3, (1,), {}, None, compute)
    manager.fetch_or_compute(OperationId("A.two"), 10, 3, (1,), {}, None, compute)

    assert manager.clear_all() == 2
    assert manager.operation_ids() == []
    assert manager.clear_all() == 0


def test_cleanup_all_reports_removed_entries(manager: MemoizationManager, compute: MagicMock, fake_clock):
    fetch(manager, compute, 1)
    fetch(manager, compute, 2)
    fake_clock.advance(11)

    outcomes = manager.cleanup_all()

    assert outcomes[OP].success is True
    assert outcomes[OP].removed == 2
    assert len(manager.cache_for(OP)) == 0


def test_cleanup_all_records_failures_and_continues(manager: MemoizationManager, compute: MagicMock, fake_clock, mocker):
    broken = OperationId("A.broken")
    manager.fetch_or_compute(broken, 10, 3, (1,), {}, None, compute)
    fetch(manager, compute, 1)
    mocker.patch.object(manager.cache_for(broken), "cleanup", side_effect=RuntimeError("corrupted order"))
    fake_clock.advance(11)

    outcomes = manager.cleanup_all()

    assert outcomes[broken].success is False
    assert "A.broken" in outcomes[broken].error
    assert "corrupted order" in outcomes[broken].error
    assert outcomes[OP].success is True
    assert outcomes[OP].removed == 1


def test_cleanup_all_keeps_cache_operation_errors(manager: MemoizationManager, compute: MagicMock, mocker):
    fetch(manager, compute, 1)
    mocker.patch.object(
        manager.cache_for(OP), "cleanup", side_effect=CacheOperationError("recency order out of sync")
    )

    outcome = manager.cleanup_all()[OP]

    assert outcome.success is False
    assert outcome.error.startswith("[Service.fetch] recency order out of sync")


# --- events ---

def test_events_are_dispatched(manager: MemoizationManager, compute: MagicMock, events: list, fake_clock):
    fetch(manager, compute, 1)
    fetch(manager, compute, 1)
    manager.cleanup_all()
    manager.clear(OP)

    kinds = [type(e) for e in events]
    assert kinds == [CacheMiss, ResultStored, CacheHit, CleanupCompleted, CacheCleared]
    assert events[0].operation_id == OP
    assert events[3].removed == {OP: 0}


def test_failing_event_handler_does_not_break_calls(compute: MagicMock):
    manager = MemoizationManager(OwnerToken(2), event_handler=MagicMock(side_effect=ValueError("bad handler")))

    assert fetch(manager, compute, 3) == 6
    assert fetch(manager, compute, 3) == 6
    assert compute.call_count == 1

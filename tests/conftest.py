import pytest
from typer.testing import CliRunner

from memottl.core.registry import MemoizationRegistry, default_registry
from memottl.infrastructure.config.settings import clear_test_config


class FakeClock:
    """Manually advanced clock standing in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def registry(fake_clock):
    """A private registry whose caches all run on the fake clock."""
    return MemoizationRegistry(clock=fake_clock)


@pytest.fixture
def default_clock(monkeypatch, fake_clock):
    """Puts the default registry (used by plain @memoize) on the fake clock."""
    monkeypatch.setattr(default_registry, "clock", fake_clock)
    return fake_clock


@pytest.fixture(autouse=True)
def reset_test_config():
    """Drops configuration overrides set by a test."""
    yield
    clear_test_config()

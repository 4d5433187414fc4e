"""Shared fixtures for device gate tests."""

import pytest

from devicegate import MemoryStore, SecurityCore


# Low PBKDF2 cost keeps the suite fast; the algorithm is unchanged.
TEST_HASH_ITERATIONS = 1000


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def core(store, clock):
    """Initialized SecurityCore with no PIN configured."""
    security = SecurityCore(store, clock=clock, hash_iterations=TEST_HASH_ITERATIONS)
    security.initialize()
    return security


@pytest.fixture
def pin_core(core):
    """Initialized SecurityCore with PIN 1234 configured (not yet unlocked)."""
    assert core.setup_pin("1234")
    return core


@pytest.fixture
def restart(clock):
    """Build a fresh SecurityCore over an existing store, as a new process would."""
    def _restart(existing_store):
        security = SecurityCore(existing_store, clock=clock, hash_iterations=TEST_HASH_ITERATIONS)
        security.initialize()
        return security
    return _restart

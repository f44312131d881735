"""Shared fixtures for the test suite."""

from datetime import datetime, timedelta, timezone

import pytest

from briefgate.app.api.deps import reset_gates
from briefgate.app.providers.factory import set_provider
from briefgate.app.services.gate import InMemoryGateStore, reset_gate_store


class FakeClock:
    """UTC clock that only moves when a test advances it."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)

    def set(self, moment: datetime) -> None:
        self.current = moment


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryGateStore()


@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop process-wide gates, store and provider between tests."""
    yield
    reset_gates()
    reset_gate_store()
    set_provider(None)

"""Shared fixtures for the rate limiter tests."""

import fakeredis
import pytest

from slidegate.app.core.clock import MockClock
from slidegate.app.rate_limit.storage import InMemoryStorage

START = 1_700_000_000.0


@pytest.fixture
def clock():
    """Deterministic clock starting at a fixed epoch."""
    return MockClock(START)


@pytest.fixture
def storage(clock):
    return InMemoryStorage(clock=clock)


@pytest.fixture
def redis_client():
    client = fakeredis.FakeStrictRedis()
    client.flushall()
    return client

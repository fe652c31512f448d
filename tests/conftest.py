"""Shared fixtures for gateway tests."""

import pytest

from tests.helpers import FakeClock, FakePool


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_pool():
    return FakePool()

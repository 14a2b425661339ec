"""Pytest configuration and fixtures for edgesteer testing."""

import pytest

from edgesteer.core.config import EdgeSteerSettings
from tests.fakes import AUTH_URL, DISCOVERY_URL, FakePlayer


@pytest.fixture
def player() -> FakePlayer:
    return FakePlayer()


@pytest.fixture
def settings() -> EdgeSteerSettings:
    return EdgeSteerSettings(
        discovery_url=DISCOVERY_URL,
        auth_refresh_url=AUTH_URL,
        probe_timeout_seconds=0.2,
        auth_refresh_timeout_seconds=0.2,
    )

"""Shared fixtures for catallax tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from catallax.api.actions import TaskActions
from catallax.api.service import CatallaxService
from catallax.models.config import ClientConfig
from catallax.storage.sqlite import SQLiteEventCache

from tests.mocks import MockPublisher, MockQuery

TEST_RELAYS = ["wss://relay.example.com", "wss://relay.example.org"]


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add client info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Protocol"] = "Catallax (kinds 33400 / 33401 / 3402)"
    meta["Funding"] = "NIP-57 zaps, NIP-75 goals"


def make_test_config(**overrides) -> ClientConfig:
    """Build a ClientConfig suitable for testing."""
    defaults = dict(
        log_level="debug",
        relays=list(TEST_RELAYS),
        query_timeout=2.0,
        receipt_timeout=1.0,
        query_limit=100,
        receipt_limit=50,
        db_path=":memory:",
        cache_enabled=False,
    )
    defaults.update(overrides)
    return ClientConfig(**defaults)


@pytest.fixture
def test_config():
    """Default ClientConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteEventCache."""
    s = SQLiteEventCache(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def mock_query():
    return MockQuery()


@pytest.fixture
def mock_publisher(mock_query):
    """Publisher whose events become visible to ``mock_query``."""
    return MockPublisher(sink=mock_query)


@pytest.fixture
def service(mock_query, test_config):
    return CatallaxService(mock_query, config=test_config)


@pytest.fixture
def actions(mock_publisher, test_config):
    return TaskActions(mock_publisher, test_config.relays)

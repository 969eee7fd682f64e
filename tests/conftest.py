"""Shared test fixtures."""

from unittest.mock import AsyncMock

import pytest

from redis_memory.config import Settings
from redis_memory.memory.client import MemoryServerClient
from redis_memory.memory.models import MemorySearchResults
from redis_memory.memory.session import SessionTracker
from redis_memory.memory.store import MemoryStore
from redis_memory.memory.summary_view import SummaryViewManager


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Drop shared component instances between tests."""
    yield
    MemoryServerClient._reset()
    MemoryStore._reset()
    SummaryViewManager._reset()
    SessionTracker._reset()


@pytest.fixture
def cfg(tmp_path) -> Settings:
    """Settings with a user filter and an isolated session state file."""
    return Settings(
        namespace="test",
        user_id="alice",
        session_state_path=tmp_path / "sessions.json",
    )


@pytest.fixture
def client(cfg: Settings) -> AsyncMock:
    """A mocked memory server client."""
    mock = AsyncMock(spec=MemoryServerClient)
    mock.settings = cfg
    mock.search_long_term_memory.return_value = MemorySearchResults()
    mock.list_summary_views.return_value = []
    mock.list_summary_view_partitions.return_value = []
    return mock


@pytest.fixture
def installed(cfg: Settings, client: AsyncMock) -> AsyncMock:
    """Install shared components around the mocked client."""
    MemoryServerClient._instance = client
    MemoryStore._instance = MemoryStore(client, cfg)
    SummaryViewManager._instance = SummaryViewManager(client, cfg)
    SessionTracker._instance = SessionTracker(cfg.session_state_path, override="")
    return client

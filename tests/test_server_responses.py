"""Malformed but successful server responses must degrade, not raise."""

import httpx
import pytest

from redis_memory.config import Settings
from redis_memory.memory.recall import build_context
from redis_memory.memory.summary_view import SummaryViewManager, ViewState
from redis_memory.plugin import MemoryPlugin
from redis_memory.tools import registry

PROMPT = "what do I like to drink?"


class RawBody(str):
    """A 200 body sent verbatim instead of JSON-encoded."""


class RoutedServer:
    """Mock transport handler answering fixed 200 bodies per (method, path)."""

    def __init__(self, routes: dict) -> None:
        self.routes = routes

    def __call__(self, request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"detail": "not found"})
        body = self.routes[key]
        if isinstance(body, RawBody):
            return httpx.Response(200, text=body)
        return httpx.Response(200, json=body)


SUMMARY_ROUTES = {
    ("GET", "/v1/summary-views"): [{"id": "v1", "name": "agent_user_summary"}],
    ("GET", "/v1/summary-views/v1/partitions"): [
        {"group": {"user_id": "alice"}, "summary": "Likes tea", "memory_count": 3}
    ],
}
NULL_DISTANCE_HIT = {"memories": [{"id": "m1", "text": "tea", "dist": None}], "total": 1}


@pytest.fixture
def server_cfg(tmp_path) -> Settings:
    return Settings(
        server_url="http://memory.test",
        user_id="alice",
        session_state_path=tmp_path / "sessions.json",
    )


def _install(cfg: Settings, routes: dict) -> MemoryPlugin:
    return MemoryPlugin(cfg, transport=httpx.MockTransport(RoutedServer(routes)))


# -- Summary view ------------------------------------------------------------


async def test_ensure_with_view_missing_id(server_cfg: Settings) -> None:
    _install(server_cfg, {("GET", "/v1/summary-views"): [{"name": "agent_user_summary"}]})

    manager = SummaryViewManager.get()

    assert await manager.ensure() is None
    assert manager.state is ViewState.UNINITIALIZED


async def test_ensure_with_non_json_body(server_cfg: Settings) -> None:
    _install(server_cfg, {("GET", "/v1/summary-views"): RawBody("<html>oops</html>")})

    assert await SummaryViewManager.get().ensure() is None


async def test_start_survives_malformed_view_listing(server_cfg: Settings) -> None:
    plugin = _install(
        server_cfg,
        {
            ("GET", "/v1/health"): {"now": 1},
            ("GET", "/v1/summary-views"): {"views": "none"},
        },
    )

    assert await plugin.start() is True
    await plugin.stop()


async def test_fetch_partition_with_malformed_partitions(server_cfg: Settings) -> None:
    _install(
        server_cfg,
        {
            **SUMMARY_ROUTES,
            ("GET", "/v1/summary-views/v1/partitions"): [{"memory_count": "many"}],
        },
    )
    manager = SummaryViewManager.get()
    await manager.ensure()

    assert await manager.fetch_partition() is None
    assert manager.view_id == "v1"


# -- Recall ------------------------------------------------------------------


async def test_null_distance_keeps_both_blocks(server_cfg: Settings) -> None:
    _install(
        server_cfg,
        {
            **SUMMARY_ROUTES,
            ("POST", "/v1/long-term-memory/search"): NULL_DISTANCE_HIT,
        },
    )
    await SummaryViewManager.get().ensure()

    context = await build_context(PROMPT)

    assert context.startswith('<user-summary computed="unknown" memories="3">')
    assert "<relevant-memories" in context
    assert "- tea" in context


async def test_malformed_search_keeps_summary(server_cfg: Settings) -> None:
    _install(
        server_cfg,
        {
            **SUMMARY_ROUTES,
            ("POST", "/v1/long-term-memory/search"): {"memories": [{"text": "no id"}]},
        },
    )
    await SummaryViewManager.get().ensure()

    context = await build_context(PROMPT)

    assert context.startswith("<user-summary")
    assert "<relevant-memories" not in context


async def test_hook_with_null_distance_prepends_context(server_cfg: Settings) -> None:
    plugin = _install(
        server_cfg,
        {
            **SUMMARY_ROUTES,
            ("POST", "/v1/long-term-memory/search"): NULL_DISTANCE_HIT,
        },
    )
    await SummaryViewManager.get().ensure()

    result = await plugin.on("before_agent_start", {"prompt": PROMPT})

    assert "Likes tea" in result["prependContext"]
    assert "- tea" in result["prependContext"]
    await plugin.stop()


# -- Tools -------------------------------------------------------------------


async def test_recall_tool_reports_malformed_search(server_cfg: Settings) -> None:
    _install(
        server_cfg,
        {("POST", "/v1/long-term-memory/search"): RawBody("not json")},
    )

    result = await registry.execute("memory_recall", {"query": "tea"})

    assert result.text.startswith("Memory search failed:")
    assert not result.success


async def test_store_tool_reports_malformed_search(server_cfg: Settings) -> None:
    _install(
        server_cfg,
        {("POST", "/v1/long-term-memory/search"): {"memories": 3}},
    )

    result = await registry.execute("memory_store", {"text": "I prefer tea"})

    assert result.text.startswith("Memory store failed:")
    assert result.error != "internal"

"""Async HTTP client for the agent-memory-server REST API.

Only the endpoints the orchestration layer needs are wrapped here.
A 404 from the server raises ``MemoryNotFoundError`` so callers can
tell a vanished resource apart from a transient failure.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from redis_memory.config import Settings, settings
from redis_memory.memory.models import (
    MemoryMessage,
    MemoryRecord,
    MemorySearchResults,
    SummaryView,
    SummaryViewPartition,
    Task,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class MemoryServerError(Exception):
    """Raised when a memory server call fails."""


class MemoryNotFoundError(MemoryServerError):
    """Raised when the server reports a referenced resource does not exist."""


def _parse(model: type[ModelT], data: Any) -> ModelT:
    """Validate a response body, reporting a malformed one as a server error."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        msg = f"Malformed {model.__name__} from server: {exc.error_count()} error(s)"
        raise MemoryServerError(msg) from exc


def _parse_list(model: type[ModelT], data: Any, key: str) -> list[ModelT]:
    """Validate a list body, bare or wrapped as ``{key: [...]}``."""
    items = data.get(key, []) if isinstance(data, dict) else data
    if items is None:
        return []
    if not isinstance(items, list):
        msg = f"Expected a list of {model.__name__} from server"
        raise MemoryServerError(msg)
    return [_parse(model, item) for item in items]


class MemoryServerClient:
    """Thin async wrapper around the memory server API.

    Singleton accessed via ``MemoryServerClient.get()``.  Pass an explicit
    *cfg* and *transport* for test isolation (e.g. ``httpx.MockTransport``).
    """

    _instance: MemoryServerClient | None = None

    def __init__(
        self,
        cfg: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = cfg or settings
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @classmethod
    def get(cls) -> MemoryServerClient:
        """Return the shared client instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    @property
    def settings(self) -> Settings:
        return self._settings

    # -- Internal helpers ------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._settings.api_key:
            headers["X-API-Key"] = self._settings.api_key
        if self._settings.bearer_token:
            headers["Authorization"] = f"Bearer {self._settings.bearer_token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self._settings.server_url,
                headers=self._headers(),
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            )
        return self._http

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            resp = await self._client().request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            msg = f"{method} {path} failed: {exc}"
            raise MemoryServerError(msg) from exc

        logger.debug("%s %s -> %d", method, path, resp.status_code)
        if resp.status_code == 404:
            msg = f"{method} {path}: not found"
            raise MemoryNotFoundError(msg)
        if resp.status_code >= 400:
            msg = f"{method} {path} returned {resp.status_code}: {resp.text[:200]}"
            raise MemoryServerError(msg)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            msg = f"{method} {path} returned a non-JSON body"
            raise MemoryServerError(msg) from exc

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    # -- Health ----------------------------------------------------------------

    async def health_check(self) -> dict[str, Any]:
        return await self._request("GET", "/v1/health") or {}

    # -- Long-term memory ------------------------------------------------------

    async def search_long_term_memory(
        self,
        text: str,
        limit: int = 10,
        *,
        namespace: str | None = None,
        user_id: str | None = None,
        distance_threshold: float | None = None,
    ) -> MemorySearchResults:
        """Semantic search over long-term memory.

        Namespace and user filters are sent as ``{"eq": value}`` clauses.
        """
        body: dict[str, Any] = {"text": text, "limit": limit, "offset": 0}
        if namespace:
            body["namespace"] = {"eq": namespace}
        if user_id:
            body["user_id"] = {"eq": user_id}
        if distance_threshold is not None:
            body["distance_threshold"] = distance_threshold

        data = await self._request("POST", "/v1/long-term-memory/search", json=body)
        return _parse(MemorySearchResults, data or {})

    async def create_long_term_memory(
        self,
        memories: Sequence[MemoryRecord],
    ) -> dict[str, Any]:
        body = {"memories": [m.model_dump(exclude_none=True) for m in memories]}
        return await self._request("POST", "/v1/long-term-memory/", json=body) or {}

    async def delete_long_term_memories(self, memory_ids: Sequence[str]) -> dict[str, Any]:
        params = {"memory_ids": list(memory_ids)}
        return await self._request("DELETE", "/v1/long-term-memory", params=params) or {}

    # -- Working memory --------------------------------------------------------

    async def put_working_memory(
        self,
        session_id: str,
        messages: Sequence[MemoryMessage],
        *,
        namespace: str | None = None,
        user_id: str | None = None,
        long_term_memory_strategy: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Write a session's working-memory log for background extraction."""
        params: dict[str, Any] = {}
        body: dict[str, Any] = {
            "session_id": session_id,
            "messages": [m.model_dump() for m in messages],
        }
        if namespace:
            params["namespace"] = namespace
            body["namespace"] = namespace
        if user_id:
            params["user_id"] = user_id
            body["user_id"] = user_id
        if long_term_memory_strategy is not None:
            body["long_term_memory_strategy"] = long_term_memory_strategy

        path = f"/v1/working-memory/{quote(session_id, safe='')}"
        return await self._request("PUT", path, params=params, json=body) or {}

    # -- Summary views ---------------------------------------------------------

    async def list_summary_views(self) -> list[SummaryView]:
        data = await self._request("GET", "/v1/summary-views")
        return _parse_list(SummaryView, data, "views")

    async def create_summary_view(self, view: dict[str, Any]) -> SummaryView:
        data = await self._request("POST", "/v1/summary-views", json=view)
        return _parse(SummaryView, data)

    async def list_summary_view_partitions(
        self,
        view_id: str,
        *,
        namespace: str | None = None,
        user_id: str | None = None,
    ) -> list[SummaryViewPartition]:
        params: dict[str, Any] = {}
        if namespace:
            params["namespace"] = namespace
        if user_id:
            params["user_id"] = user_id

        path = f"/v1/summary-views/{quote(view_id, safe='')}/partitions"
        data = await self._request("GET", path, params=params)
        return _parse_list(SummaryViewPartition, data, "partitions")

    async def run_summary_view(self, view_id: str) -> Task:
        path = f"/v1/summary-views/{quote(view_id, safe='')}/run"
        data = await self._request("POST", path, json={})
        return _parse(Task, data or {"id": ""})

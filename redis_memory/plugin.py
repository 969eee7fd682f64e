"""Host-facing plugin: wires config into the memory components.

The host drives everything through this object:

- ``start()`` / ``stop()`` for the service lifecycle
- ``on(event, payload, ctx)`` for lifecycle hooks
- ``call_tool(name, arguments)`` for the explicit memory tools
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from redis_memory.config import Settings, parse_plugin_config, settings
from redis_memory.hooks import hook_registry
from redis_memory.memory.client import MemoryServerClient, MemoryServerError
from redis_memory.memory.session import SessionTracker
from redis_memory.memory.store import MemoryStore
from redis_memory.memory.summary_view import SummaryViewManager
from redis_memory.tools import registry

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

PLUGIN_ID = "redis-memory"


def configure(cfg: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
    """Install shared component instances built from *cfg*."""
    client = MemoryServerClient(cfg, transport=transport)
    MemoryServerClient._instance = client
    MemoryStore._instance = MemoryStore(client, cfg)
    SummaryViewManager._instance = SummaryViewManager(client, cfg)
    SessionTracker._instance = SessionTracker(
        cfg.session_state_path,
        override=cfg.working_memory_session_id or "",
    )

    registry.set_description("memory_recall", cfg.recall_description)
    registry.set_description("memory_store", cfg.store_description)
    registry.set_description("memory_forget", cfg.forget_description)


class MemoryPlugin:
    """Redis-backed long-term memory with auto-recall and auto-capture."""

    id = PLUGIN_ID
    name = "Redis Memory"
    description = "Redis-backed long-term memory via agent-memory-server with auto-recall/capture"
    kind = "memory"

    def __init__(
        self,
        cfg: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = cfg or settings
        configure(self.settings, transport)
        logger.info(
            "Plugin registered (server: %s, namespace: %s)",
            self.settings.server_url,
            self.settings.namespace or "default",
        )

    @classmethod
    def from_plugin_config(cls, value: Any) -> MemoryPlugin:
        """Build a plugin from the host's raw config mapping."""
        return cls(parse_plugin_config(value))

    # -- Service ---------------------------------------------------------------

    async def start(self) -> bool:
        """Check server health and resolve the summary view.

        Returns False (after logging) if the server is unreachable.
        """
        try:
            await MemoryServerClient.get().health_check()
        except MemoryServerError as exc:
            logger.warning("Server not reachable at %s: %s", self.settings.server_url, exc)
            return False

        logger.info(
            "Connected to server (%s, namespace: %s)",
            self.settings.server_url,
            self.settings.namespace or "default",
        )
        await SummaryViewManager.get().ensure()
        return True

    async def stop(self) -> None:
        await MemoryServerClient.get().close()
        logger.info("Stopped")

    # -- Hooks -----------------------------------------------------------------

    @property
    def hooks(self) -> list[str]:
        """Hook events this plugin acts on under the current config."""
        enabled = {
            "before_agent_start": self.settings.auto_recall,
            "agent_end": self.settings.auto_capture,
        }
        return [name for name in hook_registry.events if enabled.get(name, True)]

    async def on(
        self,
        event_name: str,
        payload: dict[str, Any] | None,
        ctx: dict[str, Any] | None = None,
    ) -> dict[str, str] | None:
        return await hook_registry.dispatch(event_name, payload, ctx)

    # -- Tools -----------------------------------------------------------------

    def tool_definitions(self) -> list[dict[str, Any]]:
        return registry.definitions()

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await registry.execute(name, arguments)
        return result.to_dict()

"""Hook handler registry: dispatches host lifecycle events by name."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from redis_memory.hooks.events import HookContext, HookEvent, HookResult, parse_event

logger = logging.getLogger(__name__)

# Handler signature: async (event, ctx) -> HookResult | None
HookHandler = Callable[[Any, HookContext], Awaitable[HookResult | None]]


class HookRegistry:
    """Registry for named hook handlers.

    Usage::

        registry = HookRegistry()

        @registry.handler("before_agent_start")
        async def recall(event: BeforeAgentStartEvent, ctx: HookContext) -> HookResult | None:
            ...
    """

    def __init__(self) -> None:
        self._handlers: dict[str, HookHandler] = {}

    def handler(self, event_name: str) -> Callable[[HookHandler], HookHandler]:
        """Decorator to register an async function as a hook handler."""

        def decorator(fn: HookHandler) -> HookHandler:
            self._handlers[event_name] = fn
            logger.debug("Registered hook handler: %s", event_name)
            return fn

        return decorator

    def get(self, event_name: str) -> HookHandler | None:
        """Look up a handler by event name."""
        return self._handlers.get(event_name)

    @property
    def events(self) -> list[str]:
        """All registered event names."""
        return list(self._handlers)

    async def dispatch(
        self,
        event_name: str,
        payload: dict[str, Any] | None,
        ctx: dict[str, Any] | None = None,
    ) -> dict[str, str] | None:
        """Validate and run the handler for *event_name*.

        Never raises: bad payloads and handler failures are logged and
        the hook contributes nothing.
        """
        handler = self._handlers.get(event_name)
        if handler is None:
            logger.debug("No hook handler for %s", event_name)
            return None

        try:
            event: HookEvent = parse_event(event_name, payload)
            context = HookContext.model_validate(ctx or {})
        except ValidationError as exc:
            logger.warning("Ignoring malformed %s event: %s", event_name, exc)
            return None

        try:
            result = await handler(event, context)
        except Exception:
            logger.exception("Hook '%s' failed (non-fatal)", event_name)
            return None

        if result is None:
            return None
        return result.to_dict() or None


hook_registry = HookRegistry()

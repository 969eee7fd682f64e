"""Tool registry: the memory tools as the host sees them."""

from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from redis_memory.tools.base import ToolParams, ToolResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    ToolHandler = Callable[..., Awaitable[ToolResult]]

logger = logging.getLogger(__name__)

_NO_PARAMETERS: dict[str, Any] = {"type": "object", "properties": {}}


@dataclass
class RegisteredTool:
    name: str
    label: str
    description: str
    handler: ToolHandler
    params_model: type[ToolParams] | None = None

    def parameters_schema(self) -> dict[str, Any]:
        if self.params_model is None:
            return dict(_NO_PARAMETERS)
        return self.params_model.model_json_schema()

    def definition(self) -> dict[str, Any]:
        """Host tool definition (name, label, description, JSON-schema parameters)."""
        return {
            "name": self.name,
            "label": self.label,
            "description": self.description,
            "parameters": self.parameters_schema(),
        }

    def bind(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Validate raw host arguments into handler keyword arguments.

        Raises ``pydantic.ValidationError`` if they don't fit the model.
        """
        if self.params_model is None:
            return dict(arguments)
        return self.params_model.model_validate(arguments).model_dump()


class ToolRegistry:
    """Registry of async tool handlers keyed by tool name.

    Example::

        @registry.tool(
            name="memory_recall",
            label="Memory Recall",
            description="Search long-term memory",
            params_model=RecallParams,
        )
        async def memory_recall(query: str, limit: int = 5) -> ToolResult:
            ...
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def tool(
        self,
        *,
        name: str,
        description: str,
        label: str = "",
        params_model: type[ToolParams] | None = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        def register(handler: ToolHandler) -> ToolHandler:
            if not inspect.iscoroutinefunction(handler):
                msg = f"Tool handler '{name}' must be an async function"
                raise TypeError(msg)
            self._tools[name] = RegisteredTool(
                name=name,
                label=label or name,
                description=description,
                handler=handler,
                params_model=params_model,
            )
            return handler

        return register

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def set_description(self, name: str, description: str) -> None:
        """Replace a tool's description (configurable per deployment)."""
        if name in self._tools:
            self._tools[name].description = description

    def definitions(self) -> list[dict[str, Any]]:
        return [registered.definition() for registered in self._tools.values()]

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Run the tool *name* with raw host *arguments*.

        Unknown tools, invalid arguments and handler exceptions all come
        back as failure results; nothing propagates to the host.
        """
        registered = self._tools.get(name)
        if registered is None:
            return ToolResult.failure(f"Unknown tool: {name}", "unknown_tool")

        try:
            kwargs = registered.bind(arguments)
        except ValidationError as exc:
            logger.warning("Rejected arguments for %s: %s", name, exc)
            return ToolResult.failure(
                f"Invalid arguments for {name}: {exc.error_count()} validation error(s).",
                "invalid_params",
            )

        logger.info("Running tool %s", name)
        started = time.monotonic()
        try:
            result = await registered.handler(**kwargs)
        except Exception:
            logger.exception("Tool %s raised after %.2fs", name, time.monotonic() - started)
            return ToolResult.failure(f"Tool '{name}' failed. Check logs for details.", "internal")

        elapsed = time.monotonic() - started
        if result.success:
            logger.info("Tool %s finished in %.2fs", name, elapsed)
        else:
            logger.warning("Tool %s reported %s in %.2fs", name, result.error, elapsed)
        return result


registry = ToolRegistry()

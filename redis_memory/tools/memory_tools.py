"""Explicit ("conscious") memory tools.

These are tools the agent can call when the user explicitly asks to
recall, remember, or forget something.
"""

import logging

from pydantic import Field

from redis_memory.config import settings
from redis_memory.memory.categories import MemoryCategory
from redis_memory.memory.client import MemoryServerError
from redis_memory.memory.store import MemoryStore
from redis_memory.tools.base import ToolParams, ToolResult
from redis_memory.tools.registry import registry

logger = logging.getLogger(__name__)

EMPTY_TEXT_MESSAGE = (
    "Error: The 'text' parameter is required and cannot be empty. "
    "Please provide the actual content you want to store in memory."
)


def _truncate(text: str, length: int) -> str:
    return text if len(text) <= length else f"{text[:length]}..."


# -- memory_recall -----------------------------------------------------------


class RecallParams(ToolParams):
    query: str = Field(description="Search query")
    limit: int = Field(default=5, description="Max results (default: 5)", ge=1, le=50)


@registry.tool(
    name="memory_recall",
    label="Memory Recall",
    description=settings.recall_description,
    params_model=RecallParams,
)
async def memory_recall(query: str, limit: int = 5) -> ToolResult:
    try:
        entries = await MemoryStore.get().recall(query, limit=limit)
    except MemoryServerError as exc:
        logger.warning("Recall failed: %s", exc)
        return ToolResult.failure(f"Memory search failed: {exc}", str(exc))

    if not entries:
        return ToolResult(text="No relevant memories found.", details={"count": 0})

    lines = "\n".join(
        f"{i}. {e.text} ({e.score * 100:.0f}%)" for i, e in enumerate(entries, start=1)
    )
    return ToolResult(
        text=f"Found {len(entries)} memories:\n\n{lines}",
        details={
            "count": len(entries),
            "memories": [e.model_dump(exclude_none=True) for e in entries],
        },
    )


# -- memory_store ------------------------------------------------------------


class StoreParams(ToolParams):
    text: str = Field(description="Information to remember")
    category: MemoryCategory | None = Field(
        default=None,
        description="Category: preference, fact, decision, entity, or other",
    )


@registry.tool(
    name="memory_store",
    label="Memory Store",
    description=settings.store_description,
    params_model=StoreParams,
)
async def memory_store(text: str, category: MemoryCategory | None = None) -> ToolResult:
    try:
        outcome = await MemoryStore.get().store(text, category)
    except MemoryServerError as exc:
        logger.warning("Store failed: %s", exc)
        return ToolResult.failure(f"Memory store failed: {exc}", str(exc))

    if outcome.action == "rejected":
        return ToolResult(
            text=EMPTY_TEXT_MESSAGE,
            details={"error": "empty_text", "action": "rejected"},
        )

    if outcome.action == "duplicate":
        return ToolResult(
            text=f'Similar memory already exists: "{outcome.text}"',
            details={
                "action": "duplicate",
                "existing_id": outcome.id,
                "existing_text": outcome.text,
            },
        )

    return ToolResult(
        text=f'Stored: "{_truncate(text, 100)}"',
        details={"action": "created", "id": outcome.id, "category": outcome.category},
    )


# -- memory_forget -----------------------------------------------------------


class ForgetParams(ToolParams):
    query: str | None = Field(default=None, description="Search to find memory")
    memory_id: str | None = Field(
        default=None,
        alias="memoryId",
        description="Specific memory ID",
    )


@registry.tool(
    name="memory_forget",
    label="Memory Forget",
    description=settings.forget_description,
    params_model=ForgetParams,
)
async def memory_forget(query: str | None = None, memory_id: str | None = None) -> ToolResult:
    try:
        outcome = await MemoryStore.get().forget(query=query, memory_id=memory_id)
    except MemoryServerError as exc:
        logger.warning("Forget failed: %s", exc)
        return ToolResult.failure(f"Memory forget failed: {exc}", str(exc))

    if outcome.action == "missing_param":
        return ToolResult(
            text="Provide query or memoryId.",
            details={"error": "missing_param"},
        )

    if outcome.action == "not_found":
        return ToolResult(text="No matching memories found.", details={"found": 0})

    if outcome.action == "deleted":
        text = (
            f'Forgotten: "{outcome.text}"' if outcome.text else f"Memory {outcome.id} forgotten."
        )
        return ToolResult(text=text, details={"action": "deleted", "id": outcome.id})

    listing = "\n".join(
        f"- [{c.id[:8]}] {_truncate(c.text, 60)} ({c.score * 100:.0f}%)"
        for c in outcome.candidates
    )
    return ToolResult(
        text=f"Found {len(outcome.candidates)} candidates. Specify memoryId:\n{listing}",
        details={
            "action": "candidates",
            "candidates": [
                {"id": c.id, "text": c.text, "score": c.score} for c in outcome.candidates
            ],
        },
    )

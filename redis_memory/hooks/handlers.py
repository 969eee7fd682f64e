"""Lifecycle hook handlers: auto-recall before a turn, auto-capture after."""

from redis_memory.hooks.events import AgentEndEvent, BeforeAgentStartEvent, HookContext, HookResult
from redis_memory.hooks.registry import hook_registry
from redis_memory.memory.capture import capture_messages
from redis_memory.memory.client import MemoryServerClient
from redis_memory.memory.recall import build_context


@hook_registry.handler("before_agent_start")
async def inject_memories(event: BeforeAgentStartEvent, ctx: HookContext) -> HookResult | None:
    if not MemoryServerClient.get().settings.auto_recall:
        return None

    context = await build_context(event.prompt)
    if context is None:
        return None
    return HookResult(prepend_context=context)


@hook_registry.handler("agent_end")
async def capture_conversation(event: AgentEndEvent, ctx: HookContext) -> None:
    if not MemoryServerClient.get().settings.auto_capture:
        return
    if not event.success or not event.messages:
        return

    await capture_messages(event.messages, ctx.session_key)

"""Typed payloads for host lifecycle hooks.

Hosts send loosely shaped dicts; they are validated here into one of the
event models below, keyed by event name, before anything else sees them.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class HookContext(BaseModel):
    """Per-invocation context supplied by the host."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    session_key: str | None = Field(default=None, alias="sessionKey")


class BeforeAgentStartEvent(BaseModel):
    """Fired before the agent handles a new prompt."""

    model_config = ConfigDict(extra="ignore")

    event: Literal["before_agent_start"] = "before_agent_start"
    prompt: str | None = None


class AgentEndEvent(BaseModel):
    """Fired after the agent finishes a turn."""

    model_config = ConfigDict(extra="ignore")

    event: Literal["agent_end"] = "agent_end"
    success: bool = False
    messages: list[Any] | None = None


HookEvent = Annotated[BeforeAgentStartEvent | AgentEndEvent, Field(discriminator="event")]

_event_adapter: TypeAdapter[HookEvent] = TypeAdapter(HookEvent)


class HookResult(BaseModel):
    """What a hook hands back to the host."""

    prepend_context: str | None = None

    def to_dict(self) -> dict[str, str]:
        if self.prepend_context is None:
            return {}
        return {"prependContext": self.prepend_context}


def parse_event(name: str, payload: dict[str, Any] | None) -> HookEvent:
    """Validate a raw payload as the event named *name*.

    Raises ``pydantic.ValidationError`` for unknown names or bad payloads.
    """
    return _event_adapter.validate_python({**(payload or {}), "event": name})

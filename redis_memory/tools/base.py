"""Base types for the memory tool surface."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict


@dataclass
class ToolResult:
    """Result of a tool execution.

    Every tool returns one of these. The host receives it as a list of
    text content blocks plus a structured ``details`` payload. Failures are
    plain text with an ``error`` entry in ``details``, never tracebacks.
    """

    text: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, text: str, error: str) -> "ToolResult":
        return cls(text=text, details={"error": error})

    @property
    def success(self) -> bool:
        return "error" not in self.details

    @property
    def error(self) -> str | None:
        return self.details.get("error")

    def to_content(self) -> list[dict[str, str]]:
        """Serialize as host tool-result content blocks."""
        return [{"type": "text", "text": self.text}]

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.to_content(), "details": self.details}


class ToolParams(BaseModel):
    """Base class for tool parameter models.

    Subclass with Field() definitions. The JSON schema is auto-generated
    via model_json_schema() for the host's tool definitions.
    """

    model_config = ConfigDict(populate_by_name=True)

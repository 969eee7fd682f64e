"""Data models for memory server payloads and canonical messages."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class MemoryMessage(BaseModel):
    """A canonical conversation message handed to working memory."""

    id: str
    role: Literal["user", "assistant"]
    content: str
    created_at: str


class MemoryRecord(BaseModel):
    """A long-term memory entry as sent to the server."""

    id: str
    text: str
    topics: list[str] = Field(default_factory=list)
    namespace: str | None = None
    user_id: str | None = None


class MemoryRecordResult(BaseModel):
    """A single long-term memory search hit."""

    id: str
    text: str = ""
    dist: float | None = None
    topics: list[str] | None = None
    entities: list[str] | None = None

    @property
    def score(self) -> float:
        return to_score(self.dist)


class MemorySearchResults(BaseModel):
    memories: list[MemoryRecordResult] = Field(default_factory=list)
    total: int = 0


class MemoryEntry(BaseModel):
    """A memory retrieved from the store, with its derived score."""

    id: str
    text: str
    score: float = 0.0
    topics: list[str] | None = None
    entities: list[str] | None = None


class SummaryView(BaseModel):
    id: str
    name: str | None = None
    source: str = "long_term"
    group_by: list[str] = Field(default_factory=list)
    filters: dict[str, Any] | None = None
    time_window_days: int | None = None
    continuous: bool = False
    prompt: str | None = None


class SummaryPartitionGroup(BaseModel):
    user_id: str | None = None
    namespace: str | None = None


class SummaryViewPartition(BaseModel):
    group: SummaryPartitionGroup = Field(default_factory=SummaryPartitionGroup)
    summary: str | None = None
    memory_count: int = 0
    computed_at: str | None = None


class Task(BaseModel):
    """A background task started on the server (e.g. a summary refresh)."""

    id: str
    status: str | None = None


def to_score(distance: float | None) -> float:
    """Convert a server distance into a relevance score clamped to [0, 1]."""
    if distance is None:
        distance = 0.0
    return max(0.0, min(1.0, 1.0 - distance))

"""Long-term memory store backed by agent-memory-server.

Wraps the server client with the scoring and conflict rules used by the
explicit memory tools:

- store: near-duplicates (score >= ``duplicate_score``) are reported
  instead of written.
- forget: an explicit id is deleted outright; a query auto-deletes only
  when exactly one hit clears ``auto_delete_score``, otherwise the hits
  come back as candidates and nothing is deleted.

Server errors are raised as ``MemoryServerError`` for the caller to
report.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Literal

from redis_memory.config import Settings, settings
from redis_memory.memory.categories import detect_category
from redis_memory.memory.client import MemoryServerClient
from redis_memory.memory.models import MemoryEntry, MemoryRecord, MemorySearchResults

logger = logging.getLogger(__name__)

FORGET_SEARCH_LIMIT = 5


@dataclass
class StoreOutcome:
    action: Literal["created", "duplicate", "rejected"]
    id: str | None = None
    text: str = ""
    category: str | None = None


@dataclass
class ForgetOutcome:
    action: Literal["deleted", "candidates", "not_found", "missing_param"]
    id: str | None = None
    text: str = ""
    candidates: list[MemoryEntry] = field(default_factory=list)


class MemoryStore:
    """Singleton memory store.

    Get the shared instance via ``MemoryStore.get()``.
    """

    _instance: MemoryStore | None = None

    def __init__(
        self,
        client: MemoryServerClient | None = None,
        cfg: Settings | None = None,
    ) -> None:
        self._client = client or MemoryServerClient.get()
        self._settings = cfg or settings

    @classmethod
    def get(cls) -> MemoryStore:
        """Return the shared MemoryStore instance."""
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

    # -- Read ----------------------------------------------------------------

    async def search(
        self,
        query: str,
        limit: int = 10,
        distance_threshold: float | None = None,
    ) -> list[MemoryEntry]:
        """Search long-term memory within the configured namespace/user.

        Returns:
            List of MemoryEntry in server rank order, with scores.
        """
        raw = await self._client.search_long_term_memory(
            query,
            limit,
            namespace=self._settings.namespace or None,
            user_id=self._settings.user_id,
            distance_threshold=distance_threshold,
        )
        return self._normalize(raw)

    async def recall(self, query: str, limit: int = 5) -> list[MemoryEntry]:
        """Search and keep only hits scoring at least ``min_score``."""
        entries = await self.search(query, limit=limit)
        return [e for e in entries if e.score >= self._settings.min_score]

    # -- Write ---------------------------------------------------------------

    async def add(self, text: str, category: str) -> str:
        """Create a long-term memory tagged with *category*. Returns its id."""
        memory_id = str(uuid.uuid4())
        record = MemoryRecord(
            id=memory_id,
            text=text,
            topics=[category],
            namespace=self._settings.namespace or None,
            user_id=self._settings.user_id,
        )
        await self._client.create_long_term_memory([record])
        logger.debug("Stored memory [%s]: %s", category, text[:80])
        return memory_id

    async def store(self, text: str, category: str | None = None) -> StoreOutcome:
        """Store *text* unless an almost identical memory already exists.

        Args:
            text: The information to remember.
            category: Explicit category; detected from the text if omitted.
        """
        if not text or not text.strip():
            return StoreOutcome(action="rejected")

        existing = await self.search(text, limit=1)
        if existing and existing[0].score >= self._settings.duplicate_score:
            top = existing[0]
            logger.info("Skipping duplicate memory (matches %s, score %.3f)", top.id, top.score)
            return StoreOutcome(action="duplicate", id=top.id, text=top.text)

        category = category or detect_category(text)
        memory_id = await self.add(text, category)
        return StoreOutcome(action="created", id=memory_id, text=text, category=category)

    # -- Delete --------------------------------------------------------------

    async def delete(self, memory_id: str) -> None:
        await self._client.delete_long_term_memories([memory_id])
        logger.info("Deleted memory: %s", memory_id)

    async def forget(
        self,
        query: str | None = None,
        memory_id: str | None = None,
    ) -> ForgetOutcome:
        """Resolve a forget request by explicit id or by search query."""
        if memory_id:
            await self.delete(memory_id)
            return ForgetOutcome(action="deleted", id=memory_id)

        if not query:
            return ForgetOutcome(action="missing_param")

        matches = await self.search(query, limit=FORGET_SEARCH_LIMIT)
        if not matches:
            return ForgetOutcome(action="not_found")

        confident = [m for m in matches if m.score > self._settings.auto_delete_score]
        if len(confident) == 1:
            target = confident[0]
            await self.delete(target.id)
            return ForgetOutcome(action="deleted", id=target.id, text=target.text)

        return ForgetOutcome(action="candidates", candidates=matches)

    # -- Helpers -------------------------------------------------------------

    @staticmethod
    def _normalize(raw: MemorySearchResults) -> list[MemoryEntry]:
        return [
            MemoryEntry(
                id=hit.id,
                text=hit.text,
                score=hit.score,
                topics=hit.topics,
                entities=hit.entities,
            )
            for hit in raw.memories
        ]

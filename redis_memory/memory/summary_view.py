"""Lifecycle of the server-side rolling summary view.

The view id is cached in process memory. The server may delete the view
underneath us; any call that hits a not-found clears the cache and the
next use re-resolves (adopt by name, or create).
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Any

from redis_memory.config import Settings, settings
from redis_memory.memory.client import MemoryNotFoundError, MemoryServerClient, MemoryServerError

if TYPE_CHECKING:
    from redis_memory.memory.models import SummaryViewPartition

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = (
    "Summarize key facts, preferences, decisions, and important context about the user. "
    "Focus on information that would be useful for future conversations. "
    "Be concise but comprehensive."
)


class ViewState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    RESOLVED = "resolved"
    STALE = "stale"


class SummaryViewManager:
    """Owns the single configured summary view.

    Singleton accessed via ``SummaryViewManager.get()``. The cached view
    id is only read and written through this class.
    """

    _instance: SummaryViewManager | None = None

    def __init__(
        self,
        client: MemoryServerClient | None = None,
        cfg: Settings | None = None,
    ) -> None:
        self._client = client or MemoryServerClient.get()
        self._settings = cfg or settings
        self._view_id: str | None = None
        self._state = ViewState.UNINITIALIZED

    @classmethod
    def get(cls) -> SummaryViewManager:
        """Return the shared SummaryViewManager instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def view_id(self) -> str | None:
        return self._view_id

    # -- State cell ------------------------------------------------------------

    def _set(self, view_id: str) -> None:
        self._view_id = view_id
        self._state = ViewState.RESOLVED

    def _invalidate(self, stale_id: str) -> None:
        """Clear the cached id, but only if it still holds *stale_id*."""
        if self._view_id == stale_id:
            self._view_id = None
            self._state = ViewState.STALE

    # -- Resolution ------------------------------------------------------------

    def _view_spec(self) -> dict[str, Any]:
        spec: dict[str, Any] = {
            "name": self._settings.summary_view_name,
            "source": "long_term",
            "group_by": list(self._settings.summary_group_by),
            "time_window_days": self._settings.summary_time_window_days,
            "continuous": False,
            "prompt": SUMMARY_PROMPT,
        }
        if self._settings.namespace:
            spec["filters"] = {"namespace": self._settings.namespace}
        return spec

    async def ensure(self) -> str | None:
        """Adopt the view with the configured name, creating it if missing.

        Returns the view id, or None (and UNINITIALIZED) on any failure.
        """
        name = self._settings.summary_view_name
        try:
            views = await self._client.list_summary_views()
            existing = next((v for v in views if v.name == name), None)
            if existing is not None:
                logger.info('Using existing summary view "%s" (id: %s)', name, existing.id)
                self._set(existing.id)
                return existing.id

            created = await self._client.create_summary_view(self._view_spec())
            logger.info('Created summary view "%s" (id: %s)', name, created.id)
            self._set(created.id)
            return created.id
        except MemoryServerError as exc:
            logger.warning("Failed to initialize summary view: %s", exc)
            self._view_id = None
            self._state = ViewState.UNINITIALIZED
            return None

    async def resolve(self) -> str | None:
        """Id to use for the next call, re-resolving after a not-found."""
        if self._state is ViewState.STALE:
            logger.info("Summary view not found earlier, re-creating...")
            return await self.ensure()
        return self._view_id

    # -- Partitions ------------------------------------------------------------

    def _matches(self, partition: SummaryViewPartition) -> bool:
        for field in self._settings.summary_group_by:
            if field == "user_id" and partition.group.user_id != self._settings.user_id:
                return False
            if field == "namespace" and partition.group.namespace != self._settings.namespace:
                return False
        return True

    def select_partition(
        self,
        partitions: list[SummaryViewPartition],
    ) -> SummaryViewPartition | None:
        """Pick the partition matching every group-by field, else the first."""
        if not partitions:
            return None
        partition = next((p for p in partitions if self._matches(p)), partitions[0])
        if not partition.summary or partition.memory_count <= 0:
            return None
        return partition

    async def fetch_partition(self) -> SummaryViewPartition | None:
        """Return this user's summary partition, or None if none is usable.

        A not-found marks the view stale and returns None; the view is
        recreated on the next use rather than retried inline.
        """
        view_id = await self.resolve()
        if view_id is None:
            return None

        try:
            partitions = await self._client.list_summary_view_partitions(
                view_id,
                namespace=self._settings.namespace,
                user_id=self._settings.user_id,
            )
        except MemoryNotFoundError:
            logger.info("Summary view %s not found; will re-create on next use", view_id)
            self._invalidate(view_id)
            return None
        except MemoryServerError as exc:
            logger.debug("Summary view fetch failed: %s", exc)
            return None

        return self.select_partition(partitions)

    async def trigger_refresh(self) -> None:
        """Kick off a background recompute; never waits for it to finish."""
        view_id = await self.resolve()
        if view_id is None:
            return

        try:
            task = await self._client.run_summary_view(view_id)
            logger.debug("Triggered summary refresh (task: %s)", task.id)
        except MemoryNotFoundError:
            logger.info("Summary view %s not found; will re-create on next use", view_id)
            self._invalidate(view_id)
        except MemoryServerError as exc:
            logger.debug("Summary refresh trigger failed: %s", exc)

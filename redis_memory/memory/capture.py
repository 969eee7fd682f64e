"""Post-turn capture ("auto-capture") into server working memory.

After each successful agent turn the new user/assistant messages are
written to the session's working memory, where the server extracts
long-term memories in the background. Only messages newer than the
session's last capture boundary are sent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from redis_memory.memory.client import MemoryServerClient, MemoryServerError
from redis_memory.memory.normalizer import convert_to_memory_messages, latest_timestamp_ms
from redis_memory.memory.session import SessionTracker
from redis_memory.memory.summary_view import SummaryViewManager

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


async def capture_messages(messages: Sequence[Any], session_key: str | None = None) -> int:
    """Write new messages to working memory and trigger a summary refresh.

    Returns the number of messages written (0 when there was nothing new
    or the write failed).
    """
    tracker = SessionTracker.get()
    session_id = tracker.resolve_session_id(session_key)

    async with tracker.lock_for(session_id):
        cutoff = tracker.get_cutoff(session_id)
        memory_messages = convert_to_memory_messages(messages, cutoff_ms=cutoff or None)
        if not memory_messages:
            logger.debug("No new messages to capture for session %s", session_id)
            return 0

        client = MemoryServerClient.get()
        cfg = client.settings
        try:
            await client.put_working_memory(
                session_id,
                memory_messages,
                namespace=cfg.namespace or None,
                user_id=cfg.user_id,
                long_term_memory_strategy=cfg.get_long_term_memory_strategy(),
            )
        except MemoryServerError as exc:
            logger.warning("Capture failed: %s", exc)
            return 0

        tracker.record_cutoff(session_id, latest_timestamp_ms(memory_messages))

    logger.info("Saved %d messages to working memory (session %s)", len(memory_messages), session_id)
    await SummaryViewManager.get().trigger_refresh()
    return len(memory_messages)

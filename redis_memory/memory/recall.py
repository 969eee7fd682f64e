"""Pre-turn context injection ("auto-recall").

Two independent blocks are prepended to the agent prompt, summary first:

1. ``<user-summary>``: the rolling summary partition, if one is ready.
2. ``<relevant-memories>``: a semantic search on the prompt itself.

Neither block suppresses the other; a failure in one just drops it.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from redis_memory.memory.client import MemoryServerError
from redis_memory.memory.normalizer import RELEVANT_MEMORIES_TAG, USER_SUMMARY_TAG
from redis_memory.memory.store import MemoryStore
from redis_memory.memory.summary_view import SummaryViewManager

if TYPE_CHECKING:
    from redis_memory.memory.models import MemoryEntry, SummaryViewPartition

logger = logging.getLogger(__name__)

MIN_PROMPT_LENGTH = 5

_MESSAGE_ID_LINE_RE = re.compile(r"^\[message_id:\s*[^\]]+\]$")
_ENVELOPE_HEADER_RE = re.compile(r"^\[([^\]]+)\]\s*")
_LINE_SPLIT_RE = re.compile(r"\r?\n")


def strip_envelope_for_search(text: str) -> str:
    """Remove channel envelope metadata from a prompt before searching.

    Drops standalone ``[message_id: ...]`` lines and a leading
    ``[channel user timestamp]`` header (a bracketed run of two or more
    whitespace-separated tokens).
    """
    lines = [
        line for line in _LINE_SPLIT_RE.split(text) if not _MESSAGE_ID_LINE_RE.match(line.strip())
    ]
    result = "\n".join(lines)

    match = _ENVELOPE_HEADER_RE.match(result)
    if match and len(match.group(1).split()) >= 2:
        result = result[match.end() :]

    return result.strip()


def format_summary_block(partition: SummaryViewPartition) -> str:
    computed = partition.computed_at or "unknown"
    return (
        f'<{USER_SUMMARY_TAG} computed="{computed}" memories="{partition.memory_count}">\n'
        f"{partition.summary}\n"
        f"</{USER_SUMMARY_TAG}>"
    )


def format_memories_block(entries: list[MemoryEntry]) -> str:
    memory_list = "\n".join(f"- {e.text}" for e in entries)
    return (
        f'<{RELEVANT_MEMORIES_TAG} query-specific="true">\n'
        f"{memory_list}\n"
        f"</{RELEVANT_MEMORIES_TAG}>"
    )


async def _summary_block() -> str | None:
    partition = await SummaryViewManager.get().fetch_partition()
    if partition is None:
        return None
    logger.info("Injecting summary (%d memories)", partition.memory_count)
    return format_summary_block(partition)


async def _query_block(prompt: str, min_length: int) -> str | None:
    query = strip_envelope_for_search(prompt)
    if len(query) < min_length:
        return None

    store = MemoryStore.get()
    min_score = store.settings.min_score
    try:
        entries = await store.search(
            query,
            limit=store.settings.recall_limit,
            distance_threshold=1 - min_score,
        )
    except MemoryServerError as exc:
        logger.warning("Semantic search failed: %s", exc)
        return None

    relevant = [e for e in entries if e.score >= min_score]
    if not relevant:
        return None
    logger.info("Injecting %d query-specific memories", len(relevant))
    return format_memories_block(relevant)


async def build_context(prompt: str | None, min_length: int = MIN_PROMPT_LENGTH) -> str | None:
    """Build the context to prepend before an agent turn.

    Returns None for missing/trivial prompts or when nothing relevant is
    available.
    """
    if not prompt or len(prompt) < min_length:
        return None

    parts = [
        block
        for block in (await _summary_block(), await _query_block(prompt, min_length))
        if block
    ]
    if not parts:
        return None
    return "\n\n".join(parts)

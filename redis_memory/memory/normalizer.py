"""Conversation turn normalization for working-memory capture.

Turns arriving from the host are loosely shaped: content may be a plain
string or a list of content blocks, ids and timestamps are optional, and
system/tool turns are mixed in. Everything here is pure and never raises;
anything that doesn't fit is dropped.
"""

from __future__ import annotations

import math
import time
import uuid
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from redis_memory.memory.models import MemoryMessage

if TYPE_CHECKING:
    from collections.abc import Iterable

CAPTURE_ROLES = ("user", "assistant")

# Wrapper tags the recall composer emits into the prompt.
RELEVANT_MEMORIES_TAG = "relevant-memories"
USER_SUMMARY_TAG = "user-summary"
INJECTED_CONTEXT_MARKERS = (f"<{RELEVANT_MEMORIES_TAG}", f"<{USER_SUMMARY_TAG}")

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
# Representable range for ISO formatting (years 1..9999)
_MIN_MS = -62135596800000
_MAX_MS = 253402300799999


def extract_text_content(content: Any) -> str:
    """Return the text of a turn's content (string or list of blocks)."""
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        texts = [
            block["text"]
            for block in content
            if isinstance(block, dict)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
        ]
        return "\n".join(texts)

    return ""


def is_injected_context(text: str) -> bool:
    return any(marker in text for marker in INJECTED_CONTEXT_MARKERS)


def timestamp_ms(value: Any) -> int | None:
    """Parse a turn timestamp (epoch ms or ISO-8601 string) into epoch ms."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.isascii() and raw.lstrip("-").isdigit():
            try:
                return int(raw)
            except ValueError:
                # Longer than the interpreter's int-string limit
                return None
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return (parsed - _EPOCH) // timedelta(milliseconds=1)
    return None


def ms_to_iso(ms: int) -> str:
    """Format epoch milliseconds as an ISO-8601 UTC instant (``...Z``)."""
    dt = _EPOCH + timedelta(milliseconds=ms)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_ms() -> int:
    return int(time.time() * 1000)


def convert_to_memory_messages(
    messages: Iterable[Any],
    cutoff_ms: int | None = None,
) -> list[MemoryMessage]:
    """Convert raw host turns into canonical working-memory messages.

    Args:
        messages: Raw turns, oldest first.
        cutoff_ms: If given, only turns strictly newer than this epoch-ms
            boundary are kept. Turns without a timestamp count as "now".

    Returns:
        Canonical messages in source order. A repeated turn id keeps only
        its first occurrence.
    """
    result: list[MemoryMessage] = []
    seen_ids: set[str] = set()

    for msg in messages:
        if not isinstance(msg, dict):
            continue

        role = msg.get("role")
        if not isinstance(role, str) or role not in CAPTURE_ROLES:
            continue

        text = extract_text_content(msg.get("content")).strip()
        if not text:
            continue

        # Never re-capture memories we injected ourselves
        if is_injected_context(text):
            continue

        ts = timestamp_ms(msg.get("timestamp"))
        if ts is None:
            ts = timestamp_ms(msg.get("created_at"))
        effective_ts = ts if ts is not None and _MIN_MS <= ts <= _MAX_MS else now_ms()

        if cutoff_ms is not None and effective_ts <= cutoff_ms:
            continue

        msg_id = msg.get("id")
        if isinstance(msg_id, str) and msg_id:
            # Hosts may replay the same turn within one batch
            if msg_id in seen_ids:
                continue
            seen_ids.add(msg_id)
        else:
            msg_id = str(uuid.uuid4())

        result.append(
            MemoryMessage(
                id=msg_id,
                role=role,
                content=text,
                created_at=ms_to_iso(effective_ts),
            )
        )

    return result


def latest_timestamp_ms(messages: Iterable[MemoryMessage]) -> int:
    """Return the newest ``created_at`` among *messages* as epoch ms (0 if none)."""
    latest = 0
    for msg in messages:
        ts = timestamp_ms(msg.created_at)
        if ts is not None and ts > latest:
            latest = ts
    return latest

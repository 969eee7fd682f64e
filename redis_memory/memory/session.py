"""Capture session identity and incremental cutoff tracking.

Each capture session remembers the timestamp of the newest message it has
already written to working memory, so a later ``agent_end`` only sends what
is new. Boundaries live in a small JSON side-store keyed by session id.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import re
import uuid
import weakref
from typing import TYPE_CHECKING

from redis_memory.config import settings
from redis_memory.memory.normalizer import now_ms

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE_SESSION_CHARS_RE = re.compile(r"[^a-zA-Z0-9._\-]")


def session_id_from_key(session_key: str) -> str:
    """Deterministically map a host session key to a server-safe session id."""
    return _UNSAFE_SESSION_CHARS_RE.sub("-", session_key.strip())


def generate_session_id() -> str:
    return f"session-{now_ms()}-{uuid.uuid4().hex[:8]}"


def derive_session_id(session_key: str | None, override: str | None = None) -> str:
    """Pick the capture session id.

    A configured override wins, then the host session key, and finally a
    freshly generated time-tagged id.
    """
    if override:
        return override
    if session_key and session_key.strip():
        return session_id_from_key(session_key)
    return generate_session_id()


class SessionTracker:
    """Tracks the last capture boundary per session.

    Singleton accessed via ``SessionTracker.get()``.  Pass an explicit
    *state_path* for test isolation (e.g. ``tmp_path / "sessions.json"``).

    Reads and writes are synchronous; the state file is tiny.
    """

    _instance: SessionTracker | None = None

    def __init__(self, state_path: Path | None = None, override: str | None = None) -> None:
        self._path = state_path or settings.session_state_path
        self._override = override if override is not None else settings.working_memory_session_id
        self._fallback_id: str | None = None
        # Entries vanish once no capture holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @classmethod
    def get(cls) -> SessionTracker:
        """Return the shared SessionTracker instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Identity --------------------------------------------------------------

    def resolve_session_id(self, session_key: str | None) -> str:
        """Session id for a hook invocation.

        Without an override or a host key, one generated id is reused for
        the life of the process so consecutive turns still capture
        incrementally.
        """
        if self._override or (session_key and session_key.strip()):
            return derive_session_id(session_key, self._override)
        if self._fallback_id is None:
            self._fallback_id = generate_session_id()
            logger.info("No session key from host; using generated session %s", self._fallback_id)
        return self._fallback_id

    def lock_for(self, session_id: str) -> asyncio.Lock:
        """Per-session lock serializing capture for one session id."""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    # -- Cutoffs ---------------------------------------------------------------

    def _load(self) -> dict[str, int]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Session state at %s is unreadable; treating as empty", self._path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Session state at %s is malformed; treating as empty", self._path)
            return {}
        return {
            key: int(value)
            for key, value in data.items()
            if isinstance(value, int | float)
            and not isinstance(value, bool)
            and math.isfinite(value)
        }

    def get_cutoff(self, session_id: str) -> int:
        """Epoch-ms boundary of the last successful capture (0 if unknown)."""
        return self._load().get(session_id, 0)

    def record_cutoff(self, session_id: str, timestamp_ms: int) -> None:
        """Persist a capture boundary. Never moves a boundary backwards."""
        state = self._load()
        if timestamp_ms <= state.get(session_id, 0):
            return
        state[session_id] = timestamp_ms
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(state, indent=2, sort_keys=True), encoding="utf-8")
            tmp.replace(self._path)
        except OSError:
            logger.warning("Failed to persist capture cutoff for session %s", session_id)

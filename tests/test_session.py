"""Tests for capture session identity and cutoff tracking."""

import asyncio
import gc
import json

import pytest

from redis_memory.memory.session import (
    SessionTracker,
    derive_session_id,
    session_id_from_key,
)

# -- derive_session_id -------------------------------------------------------


def test_override_wins() -> None:
    assert derive_session_id("agent:main:telegram:1", "fixed") == "fixed"


def test_session_key_is_transformed_deterministically() -> None:
    first = derive_session_id("agent:main/telegram 1")
    second = derive_session_id("agent:main/telegram 1")

    assert first == second == "agent-main-telegram-1"


def test_session_id_from_key_keeps_safe_chars() -> None:
    assert session_id_from_key("abc_DEF-1.2") == "abc_DEF-1.2"


def test_fallback_is_generated_and_time_tagged() -> None:
    generated = derive_session_id(None)

    assert generated.startswith("session-")
    assert derive_session_id("   ") != generated


# -- SessionTracker identity -------------------------------------------------


def test_tracker_reuses_fallback_within_process(tmp_path) -> None:
    tracker = SessionTracker(tmp_path / "s.json", override="")

    assert tracker.resolve_session_id(None) == tracker.resolve_session_id("")


def test_tracker_prefers_override(tmp_path) -> None:
    tracker = SessionTracker(tmp_path / "s.json", override="continuous")

    assert tracker.resolve_session_id("agent:1") == "continuous"
    assert tracker.resolve_session_id(None) == "continuous"


def test_lock_for_is_per_session(tmp_path) -> None:
    tracker = SessionTracker(tmp_path / "s.json", override="")

    assert tracker.lock_for("a") is tracker.lock_for("a")
    assert tracker.lock_for("a") is not tracker.lock_for("b")
    assert isinstance(tracker.lock_for("a"), asyncio.Lock)


async def test_released_locks_are_dropped(tmp_path) -> None:
    tracker = SessionTracker(tmp_path / "s.json", override="")

    async with tracker.lock_for("a"):
        assert "a" in tracker._locks
    gc.collect()

    assert "a" not in tracker._locks


# -- Cutoffs -----------------------------------------------------------------


@pytest.fixture
def tracker(tmp_path) -> SessionTracker:
    return SessionTracker(tmp_path / "state" / "sessions.json", override="")


def test_cutoff_defaults_to_zero(tracker: SessionTracker) -> None:
    assert tracker.get_cutoff("unknown") == 0


def test_record_and_read_cutoff(tracker: SessionTracker) -> None:
    tracker.record_cutoff("s1", 1000)
    tracker.record_cutoff("s2", 2000)

    assert tracker.get_cutoff("s1") == 1000
    assert tracker.get_cutoff("s2") == 2000


def test_cutoff_never_moves_backwards(tracker: SessionTracker) -> None:
    tracker.record_cutoff("s1", 5000)
    tracker.record_cutoff("s1", 3000)
    tracker.record_cutoff("s1", 5000)

    assert tracker.get_cutoff("s1") == 5000


def test_cutoff_persists_across_instances(tmp_path) -> None:
    path = tmp_path / "sessions.json"
    SessionTracker(path, override="").record_cutoff("s1", 42)

    assert SessionTracker(path, override="").get_cutoff("s1") == 42
    assert json.loads(path.read_text()) == {"s1": 42}


def test_corrupt_state_is_treated_as_empty(tmp_path) -> None:
    path = tmp_path / "sessions.json"
    path.write_text("{not json")
    tracker = SessionTracker(path, override="")

    assert tracker.get_cutoff("s1") == 0

    tracker.record_cutoff("s1", 10)
    assert tracker.get_cutoff("s1") == 10


def test_malformed_values_are_ignored(tmp_path) -> None:
    path = tmp_path / "sessions.json"
    path.write_text(json.dumps({"s1": "soon", "s2": 7, "s3": True}))
    tracker = SessionTracker(path, override="")

    assert tracker.get_cutoff("s1") == 0
    assert tracker.get_cutoff("s2") == 7
    assert tracker.get_cutoff("s3") == 0


def test_non_object_state_is_treated_as_empty(tmp_path) -> None:
    path = tmp_path / "sessions.json"
    path.write_text("[1, 2, 3]")

    assert SessionTracker(path, override="").get_cutoff("s1") == 0

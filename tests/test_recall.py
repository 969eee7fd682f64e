"""Tests for pre-turn context injection."""

from unittest.mock import AsyncMock

import pytest

from redis_memory.memory.client import MemoryServerError
from redis_memory.memory.models import (
    MemoryRecordResult,
    MemorySearchResults,
    SummaryPartitionGroup,
    SummaryViewPartition,
)
from redis_memory.memory.recall import (
    build_context,
    format_summary_block,
    strip_envelope_for_search,
)
from redis_memory.memory.summary_view import SummaryViewManager

# -- strip_envelope_for_search -----------------------------------------------


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("[general user 12:00] Hello", "Hello"),
        ("[message_id: abc]\nWhat's the weather?", "What's the weather?"),
        ("[Telegram Alice 2024-02-02 18:53] Favourite color?", "Favourite color?"),
        ("Hello world\n[message_id: 123]", "Hello world"),
        ("[Telegram Alice 2024]\nHi\r\n[message_id: 9]", "Hi"),
        ("[note] keep this", "[note] keep this"),
        ("  plain prompt  ", "plain prompt"),
    ],
)
def test_strip_envelope_for_search(text: str, expected: str) -> None:
    assert strip_envelope_for_search(text) == expected


def test_format_summary_block_without_timestamp() -> None:
    partition = SummaryViewPartition(summary="Likes tea", memory_count=2)

    assert format_summary_block(partition) == (
        '<user-summary computed="unknown" memories="2">\nLikes tea\n</user-summary>'
    )


# -- build_context -----------------------------------------------------------


def _hits(*pairs: tuple[str, float]) -> MemorySearchResults:
    memories = [MemoryRecordResult(id=f"m{i}", text=t, dist=d) for i, (t, d) in enumerate(pairs)]
    return MemorySearchResults(memories=memories, total=len(memories))


def _with_summary(installed: AsyncMock) -> None:
    SummaryViewManager.get()._set("v1")
    installed.list_summary_view_partitions.return_value = [
        SummaryViewPartition(
            group=SummaryPartitionGroup(user_id="alice"),
            summary="Alice likes tea.",
            memory_count=4,
            computed_at="2024-02-02T18:53:20Z",
        )
    ]


async def test_trivial_prompt_returns_none(installed: AsyncMock) -> None:
    assert await build_context(None) is None
    assert await build_context("hey") is None
    installed.search_long_term_memory.assert_not_called()


async def test_nothing_relevant_returns_none(installed: AsyncMock) -> None:
    assert await build_context("What do I like to drink?") is None


async def test_query_block_only(installed: AsyncMock) -> None:
    installed.search_long_term_memory.return_value = _hits(("Likes tea", 0.2), ("Owns a cat", 0.8))

    context = await build_context("What do I like to drink?")

    assert context == (
        '<relevant-memories query-specific="true">\n- Likes tea\n</relevant-memories>'
    )
    kwargs = installed.search_long_term_memory.call_args.kwargs
    assert kwargs["distance_threshold"] == pytest.approx(0.7)
    assert installed.search_long_term_memory.call_args.args[1] == 3


async def test_summary_block_only(installed: AsyncMock) -> None:
    _with_summary(installed)

    context = await build_context("What do I like to drink?")

    assert context == (
        '<user-summary computed="2024-02-02T18:53:20Z" memories="4">\n'
        "Alice likes tea.\n"
        "</user-summary>"
    )


async def test_summary_comes_before_query_block(installed: AsyncMock) -> None:
    _with_summary(installed)
    installed.search_long_term_memory.return_value = _hits(("Likes tea", 0.1))

    context = await build_context("What do I like to drink?")

    summary, memories = context.split("\n\n")
    assert summary.startswith("<user-summary")
    assert memories.startswith("<relevant-memories")


async def test_search_uses_stripped_prompt(installed: AsyncMock) -> None:
    await build_context("[Telegram Alice 2024-02-02] favourite drink?\n[message_id: 5]")

    assert installed.search_long_term_memory.call_args.args[0] == "favourite drink?"


async def test_envelope_only_prompt_skips_search(installed: AsyncMock) -> None:
    assert await build_context("[Telegram Alice 2024-02-02] ok") is None
    installed.search_long_term_memory.assert_not_called()


async def test_search_failure_keeps_summary(installed: AsyncMock) -> None:
    _with_summary(installed)
    installed.search_long_term_memory.side_effect = MemoryServerError("down")

    context = await build_context("What do I like to drink?")

    assert context.startswith("<user-summary")
    assert "<relevant-memories" not in context


async def test_summary_failure_keeps_query_block(installed: AsyncMock) -> None:
    SummaryViewManager.get()._set("v1")
    installed.list_summary_view_partitions.side_effect = MemoryServerError("down")
    installed.search_long_term_memory.return_value = _hits(("Likes tea", 0.1))

    context = await build_context("What do I like to drink?")

    assert context.startswith("<relevant-memories")


async def test_hit_without_distance_counts_as_exact(installed: AsyncMock) -> None:
    _with_summary(installed)
    installed.search_long_term_memory.return_value = MemorySearchResults(
        memories=[MemoryRecordResult(id="m1", text="Likes tea", dist=None)], total=1
    )

    context = await build_context("What do I like to drink?")

    assert context.startswith("<user-summary")
    assert context.endswith(
        '<relevant-memories query-specific="true">\n- Likes tea\n</relevant-memories>'
    )

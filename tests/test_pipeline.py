"""
Tests for the ingestion pipeline.

Tests:
- Self-suppression and deduplication across ticks
- Participant id derivation
- Auto-replies in one-to-one conversations
- Commands in group conversations
- Poll and delivery failures
- Tick overlap policy
"""

import asyncio
import random
from unittest.mock import AsyncMock

import pytest

from statbot.auto_reply.commands import CommandInterpreter
from statbot.auto_reply.dedup import DedupCache
from statbot.auto_reply.replies import render_replies
from statbot.config.schema import BotConfig, PipelineConfig
from statbot.pipeline.ingest import IngestionPipeline, derive_participant_id


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def build_pipeline(channel, store, bot_config=None, pipeline_config=None, sleep=None):
    bot_config = bot_config or BotConfig(bot_name="StatBot", admin_ids=["admin"])
    return IngestionPipeline(
        source=channel,
        actuator=channel,
        store=store,
        dedup=DedupCache(),
        interpreter=CommandInterpreter(store, bot_config, persist=AsyncMock(return_value=True)),
        bot_config=bot_config,
        pipeline_config=pipeline_config or PipelineConfig(),
        rng=random.Random(7),
        sleep=sleep or RecordingSleep(),
    )


class TestDeriveParticipantId:

    @pytest.mark.parametrize("name,expected", [
        ("Alice", "alice"),
        ("Nguyen Van  A", "nguyen_van_a"),
        ("Bob\tSmith", "bob_smith"),
    ])
    def test_normalizes_whitespace_and_case(self, name, expected):
        assert derive_participant_id(name) == expected

    def test_same_display_name_collides(self):
        assert derive_participant_id("John Smith") == derive_participant_id("john  smith")


class TestTick:

    @pytest.mark.asyncio
    async def test_skips_own_messages(self, make_channel, make_message, store):
        channel = make_channel([[make_message("G1", "!ping", "StatBot", is_group=True)]])
        pipeline = build_pipeline(channel, store)

        assert await pipeline.tick() == 0
        assert store.conversations == {}
        assert channel.sent == []
        assert pipeline.get_stats()["self_messages"] == 1

    @pytest.mark.asyncio
    async def test_same_message_across_ticks_recorded_once(self, make_channel, make_message, store):
        repeated = make_message("G1", "hello", "Alice", is_group=True, observed_at=100.0)
        channel = make_channel([[repeated], [repeated], [repeated]])
        pipeline = build_pipeline(channel, store)

        for _ in range(3):
            await pipeline.tick()

        assert store.get_conversation_summary("G1").total_messages == 1
        assert pipeline.get_stats()["duplicates"] == 2

    @pytest.mark.asyncio
    async def test_same_text_new_timestamp_is_new(self, make_channel, make_message, store):
        channel = make_channel([[
            make_message("G1", "ok", "Alice", is_group=True, observed_at=1.0),
            make_message("G1", "ok", "Alice", is_group=True, observed_at=2.0),
        ]])
        pipeline = build_pipeline(channel, store)

        assert await pipeline.tick() == 2
        assert store.users["alice"].total_messages == 2

    @pytest.mark.asyncio
    async def test_uses_derived_or_supplied_identity(self, make_channel, make_message, store):
        channel = make_channel([[
            make_message("G1", "hi", "Mary Jane", is_group=True, observed_at=1.0),
            make_message("G1", "hi", "Mary Jane", is_group=True, observed_at=2.0, sender_id="uid-42"),
        ]])
        pipeline = build_pipeline(channel, store)
        await pipeline.tick()

        assert set(store.conversations["G1"].members) == {"mary_jane", "uid-42"}

    @pytest.mark.asyncio
    async def test_processes_in_source_order(self, make_channel, make_message, store):
        channel = make_channel([[
            make_message("G1", "first", "Bob", is_group=True, observed_at=1.0),
            make_message("G1", "second", "Alice", is_group=True, observed_at=2.0),
        ]])
        pipeline = build_pipeline(channel, store)
        await pipeline.tick()

        assert list(store.conversations["G1"].members) == ["bob", "alice"]


class TestReplies:

    @pytest.mark.asyncio
    async def test_auto_reply_in_one_to_one(self, make_channel, make_message, store):
        sleep = RecordingSleep()
        channel = make_channel([[make_message("D1", "hey", "Alice")]])
        pipeline = build_pipeline(channel, store, sleep=sleep)

        await pipeline.tick()

        assert len(channel.sent) == 1
        conversation_id, text = channel.sent[0]
        assert conversation_id == "D1"
        assert text in render_replies("Alice", "StatBot", "!")
        assert len(sleep.delays) == 1
        assert 1.0 <= sleep.delays[0] <= 3.0

    @pytest.mark.asyncio
    async def test_commands_are_not_answered_in_one_to_one_with_auto_reply(
        self, make_channel, make_message, store
    ):
        channel = make_channel([[make_message("D1", "!ping", "Alice")]])
        pipeline = build_pipeline(channel, store)

        await pipeline.tick()

        assert len(channel.sent) == 1
        assert channel.sent[0][1] != "🏓 Pong! Bot is running"
        assert pipeline.get_stats()["commands"] == 0

    @pytest.mark.asyncio
    async def test_commands_in_one_to_one_without_auto_reply(self, make_channel, make_message, store):
        channel = make_channel([[make_message("D1", "!ping", "Alice")]])
        bot_config = BotConfig(bot_name="StatBot", auto_reply=False)
        pipeline = build_pipeline(channel, store, bot_config=bot_config)

        await pipeline.tick()

        assert channel.sent == [("D1", "🏓 Pong! Bot is running")]

    @pytest.mark.asyncio
    async def test_group_command_gets_response(self, make_channel, make_message, store):
        channel = make_channel([[
            make_message("G1", "hello", "Alice", is_group=True, observed_at=1.0),
            make_message("G1", "!stats", "Bob", is_group=True, observed_at=2.0),
        ]])
        pipeline = build_pipeline(channel, store)

        await pipeline.tick()

        assert len(channel.sent) == 1
        conversation_id, text = channel.sent[0]
        assert conversation_id == "G1"
        # The command message itself is counted before the command runs
        assert "Total messages: 2" in text

    @pytest.mark.asyncio
    async def test_plain_group_message_gets_no_reply(self, make_channel, make_message, store):
        channel = make_channel([[make_message("G1", "hello", "Alice", is_group=True)]])
        pipeline = build_pipeline(channel, store)

        await pipeline.tick()

        assert channel.sent == []
        assert store.get_conversation_summary("G1").total_messages == 1

    @pytest.mark.asyncio
    async def test_admin_clean_in_group(self, make_channel, make_message, store):
        for _ in range(10):
            store.record_message("G1", "alice", "Alice", is_group=True)
        channel = make_channel([[make_message("G1", "!clean", "Admin", is_group=True)]])
        pipeline = build_pipeline(channel, store)

        await pipeline.tick()

        assert store.get_conversation_summary("G1").total_messages == 0
        assert channel.sent[0][1].startswith("✅")


class TestFailures:

    @pytest.mark.asyncio
    async def test_poll_failure_is_logged_not_raised(self, make_channel, store):
        channel = make_channel()
        channel.poll = AsyncMock(side_effect=ConnectionError("bridge down"))
        pipeline = build_pipeline(channel, store)

        assert await pipeline.tick() == 0
        assert pipeline.get_stats()["poll_errors"] == 1

    @pytest.mark.asyncio
    async def test_delivery_failure_is_counted(self, make_channel, make_message, store):
        channel = make_channel([[make_message("D1", "hey", "Alice")]], deliver_ok=False)
        pipeline = build_pipeline(channel, store)

        assert await pipeline.tick() == 1
        assert pipeline.get_stats()["delivery_failures"] == 1
        assert store.get_conversation_summary("D1").total_messages == 1

    @pytest.mark.asyncio
    async def test_delivery_exception_is_contained(self, make_channel, make_message, store):
        channel = make_channel([[make_message("D1", "hey", "Alice")]])
        channel.deliver = AsyncMock(side_effect=RuntimeError("tab crashed"))
        pipeline = build_pipeline(channel, store)

        assert await pipeline.tick() == 1
        assert pipeline.get_stats()["delivery_failures"] == 1


class BlockingChannel:
    """Source whose poll() blocks until released."""

    def __init__(self):
        self.release = asyncio.Event()
        self.polls = 0

    async def poll(self):
        self.polls += 1
        await self.release.wait()
        return []

    async def deliver(self, conversation_id, text):
        return True


class TestScheduling:

    @pytest.mark.asyncio
    async def test_slow_tick_causes_skips(self, store):
        channel = BlockingChannel()
        pipeline = build_pipeline(
            channel, store, pipeline_config=PipelineConfig(poll_interval_ms=10, max_concurrent_ticks=1)
        )

        pipeline.start()
        await asyncio.sleep(0.1)
        stats = pipeline.get_stats()
        await pipeline.stop()

        assert channel.polls == 1
        assert stats["skipped_ticks"] >= 1
        assert not pipeline.is_running

    @pytest.mark.asyncio
    async def test_overlap_allowed_up_to_limit(self, store):
        channel = BlockingChannel()
        pipeline = build_pipeline(
            channel, store, pipeline_config=PipelineConfig(poll_interval_ms=10, max_concurrent_ticks=3)
        )

        pipeline.start()
        await asyncio.sleep(0.1)
        inflight = pipeline.get_stats()["inflight_ticks"]
        await pipeline.stop()

        assert channel.polls == 3
        assert inflight == 3

    @pytest.mark.asyncio
    async def test_ticks_repeat_on_interval(self, make_channel, store):
        channel = make_channel()
        pipeline = build_pipeline(channel, store, pipeline_config=PipelineConfig(poll_interval_ms=10))

        pipeline.start()
        await asyncio.sleep(0.1)
        await pipeline.stop()

        assert channel.polls >= 3

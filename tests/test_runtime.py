"""
Tests for the StatBot lifecycle.

Tests:
- Startup creates and saves an empty store before polling
- Startup failure shuts down cleanly
- Stop flushes statistics
- Statistics survive a restart
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from statbot.pipeline.runtime import BotState, StatBot


def make_bot(config, channel):
    return StatBot(config, channel_factory=lambda: channel)


class TestStart:

    @pytest.mark.asyncio
    async def test_absent_snapshot_is_written_before_polling(self, config, make_channel, snapshot_path):
        channel = make_channel()
        bot = make_bot(config, channel)

        assert await bot.start() is True
        try:
            assert snapshot_path.exists()
            assert channel.polls == 0
            data = json.loads(snapshot_path.read_text())
            assert set(data) == {"messages", "users", "groups", "global"}
            assert bot.state == BotState.RUNNING
        finally:
            await bot.stop()

    @pytest.mark.asyncio
    async def test_corrupt_snapshot_starts_empty(self, config, make_channel, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text("{not json")
        bot = make_bot(config, make_channel())

        await bot.start()
        await bot.stop()

        assert bot.store.conversations == {}
        assert json.loads(snapshot_path.read_text())["global"]["totalMessages"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [
        "[" * 100_000,
        '{"global": {"startTime": 1e400}}',
    ], ids=["deeply-nested", "timestamp-overflow"])
    async def test_undecodable_snapshot_does_not_block_start(
        self, config, make_channel, snapshot_path, content
    ):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text(content)
        bot = make_bot(config, make_channel())

        assert await bot.start() is True
        await bot.stop()

        assert bot.state == BotState.STOPPED
        assert bot.store.counters.total_messages == 0

    @pytest.mark.asyncio
    async def test_load_failure_sets_error_state(self, config, make_channel):
        channel = make_channel()
        bot = make_bot(config, channel)
        real_load = bot.persistence.load
        bot.persistence.load = AsyncMock(side_effect=PermissionError("read-only data dir"))

        assert await bot.start() is False
        assert bot.state == BotState.ERROR
        assert "read-only data dir" in bot.error

        bot.persistence.load = real_load
        assert await bot.start() is True
        await bot.stop()

    @pytest.mark.asyncio
    async def test_second_start_is_rejected(self, config, make_channel):
        bot = make_bot(config, make_channel())

        assert await bot.start() is True
        try:
            assert await bot.start() is False
        finally:
            await bot.stop()

    @pytest.mark.asyncio
    async def test_startup_failure(self, config, make_channel, snapshot_path):
        channel = make_channel(fail_start=True)
        bot = make_bot(config, channel)

        assert await bot.start() is False

        assert bot.state == BotState.ERROR
        assert "login failed" in bot.error
        assert channel.closed
        assert snapshot_path.exists()
        assert bot.pipeline is None

    @pytest.mark.asyncio
    async def test_can_start_after_failure(self, config, make_channel):
        channels = [make_channel(fail_start=True), make_channel()]
        bot = StatBot(config, channel_factory=lambda: channels.pop(0))

        assert await bot.start() is False
        assert await bot.start() is True
        assert bot.error is None
        await bot.stop()


class TestStop:

    @pytest.mark.asyncio
    async def test_stop_flushes_and_closes(self, config, make_channel, make_message, snapshot_path):
        channel = make_channel([[make_message("G1", "hello", "Alice", is_group=True)]])
        bot = make_bot(config, channel)
        await bot.start()

        await bot.pipeline.tick()
        assert bot.store.dirty
        await bot.stop()

        assert bot.state == BotState.STOPPED
        assert channel.closed
        assert not bot.store.dirty
        data = json.loads(snapshot_path.read_text())
        assert data["messages"]["G1"]["total"] == 1
        assert data["users"]["alice"]["totalMessages"] == 1
        assert data["groups"]["G1"]["name"] == "Group_G1"

    @pytest.mark.asyncio
    async def test_stop_when_stopped_is_noop(self, config, make_channel):
        bot = make_bot(config, make_channel())
        await bot.stop()
        assert bot.state == BotState.STOPPED

    @pytest.mark.asyncio
    async def test_statistics_survive_restart(self, config, make_channel, make_message):
        first = make_bot(config, make_channel([[make_message("G1", "hi", "Alice", is_group=True)]]))
        await first.start()
        await first.pipeline.tick()
        await first.stop()

        second = make_bot(config, make_channel())
        await second.start()
        await second.stop()

        assert second.store.get_conversation_summary("G1").total_messages == 1
        assert second.store.counters.total_messages == 1


class TestStatus:

    @pytest.mark.asyncio
    async def test_status_reports_counters(self, config, make_channel):
        bot = make_bot(config, make_channel())
        await bot.start()
        status = bot.get_status()
        await bot.stop()

        assert status["state"] == "running"
        assert status["is_running"] is True
        assert status["bot_name"] == "StatBot"
        assert status["pipeline"]["ticks"] == 0
        assert status["dedup"]["capacity"] == 200
        assert status["persistence"]["has_saved"] is True


class TestPeriodicFlush:

    @pytest.mark.asyncio
    async def test_flushes_only_when_dirty(self, config, make_channel, snapshot_path):
        config.storage.flush_interval_seconds = 0.05
        bot = make_bot(config, make_channel())
        await bot.start()

        saves = []
        real_save = bot.persistence.save

        async def counting_save(store):
            saves.append(store.version)
            return await real_save(store)

        bot.persistence.save = counting_save
        try:
            await asyncio.sleep(0.2)
            assert saves == []

            bot.store.record_message("G1", "alice", "Alice", is_group=True)
            await asyncio.sleep(0.2)

            assert len(saves) == 1
            assert not bot.store.dirty
            data = json.loads(snapshot_path.read_text())
            assert data["messages"]["G1"]["total"] == 1
        finally:
            await bot.stop()

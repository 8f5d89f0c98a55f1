"""
Pytest configuration and shared fixtures for StatBot tests.
"""

import pytest
import sys
from pathlib import Path

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from statbot.channels.base import BaseChannel, ObservedMessage
from statbot.config.schema import BotConfig, Config, PipelineConfig, StorageConfig
from statbot.errors import ChannelStartupError
from statbot.stats.store import StatsStore


class FakeChannel(BaseChannel):
    """Channel that replays scripted poll batches and records deliveries."""

    name = "fake"

    def __init__(self, batches=None, fail_start=False, deliver_ok=True):
        super().__init__()
        self.batches = list(batches or [])
        self.fail_start = fail_start
        self.deliver_ok = deliver_ok
        self.sent: list[tuple[str, str]] = []
        self.polls = 0
        self.closed = False

    async def start(self) -> None:
        if self.fail_start:
            raise ChannelStartupError("login failed")
        self._running = True

    async def poll(self) -> list[ObservedMessage]:
        self.polls += 1
        return self.batches.pop(0) if self.batches else []

    async def deliver(self, conversation_id: str, text: str) -> bool:
        self.sent.append((conversation_id, text))
        return self.deliver_ok

    async def close(self) -> None:
        self.closed = True
        self._running = False


def message(conversation_id, text, sender, is_group=False, observed_at=1.0, sender_id=None):
    """Shorthand for an ObservedMessage."""
    return ObservedMessage(
        conversation_id=conversation_id,
        text=text,
        sender_display_name=sender,
        is_group=is_group,
        observed_at=observed_at,
        sender_id=sender_id,
    )


@pytest.fixture
def snapshot_path(tmp_path):
    """Snapshot location inside a temporary data directory."""
    return tmp_path / "data" / "storage.json"


@pytest.fixture
def config(snapshot_path):
    """Config with an admin, a temp snapshot path and no reply delay."""
    return Config(
        bot=BotConfig(bot_name="StatBot", command_prefix="!", admin_ids=["admin"]),
        pipeline=PipelineConfig(reply_delay_min_ms=0, reply_delay_max_ms=0),
        storage=StorageConfig(persist_path=str(snapshot_path)),
    )


@pytest.fixture
def store():
    return StatsStore()


@pytest.fixture
def make_channel():
    """Factory for FakeChannel instances."""
    return FakeChannel


@pytest.fixture
def make_message():
    return message

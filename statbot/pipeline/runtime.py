"""
Bot lifecycle for StatBot.

Provides:
- State machine for the bot (stopped -> starting -> running -> stopping)
- Load-or-create of the statistics store at startup
- Periodic flushing and a final flush on shutdown
- Orderly shutdown when the channel fails to start
"""

import asyncio
import random
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from loguru import logger

from statbot.auto_reply.commands import CommandInterpreter
from statbot.auto_reply.dedup import DedupCache
from statbot.channels.base import BaseChannel
from statbot.config.schema import Config
from statbot.pipeline.ingest import IngestionPipeline
from statbot.stats.persistence import SnapshotPersistence
from statbot.stats.store import StatsStore


class BotState(Enum):
    """Bot lifecycle states."""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"  # Last start failed


ChannelFactory = Callable[[], BaseChannel]


class StatBot:
    """
    Owns the statistics store and runs the ingestion pipeline.

    The store is loaded once and kept across stop/start cycles. A fresh
    channel is created on every start, since closing a channel releases
    its session for good.
    """

    def __init__(
        self,
        config: Config,
        channel_factory: ChannelFactory,
        persistence: SnapshotPersistence | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config
        self._channel_factory = channel_factory
        self.persistence = persistence or SnapshotPersistence(
            config.persist_file,
            reconcile_on_reset=config.bot.reconcile_on_reset,
        )
        self._rng = rng

        self.store: StatsStore | None = None
        self.dedup = DedupCache(
            capacity=config.pipeline.dedup_capacity,
            evict_batch=config.pipeline.dedup_evict_batch,
        )
        self.interpreter: CommandInterpreter | None = None
        self.pipeline: IngestionPipeline | None = None
        self._channel: BaseChannel | None = None
        self._flush_task: asyncio.Task | None = None

        # State tracking
        self._state = BotState.STOPPED
        self._error: str | None = None
        self._started_at: datetime | None = None

        self._lock = asyncio.Lock()

    @property
    def state(self) -> BotState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == BotState.RUNNING

    @property
    def error(self) -> str | None:
        return self._error

    async def load_store(self) -> StatsStore:
        """Load the statistics store if it is not loaded yet."""
        if self.store is None:
            self.store = await self.persistence.load()
            self.interpreter = CommandInterpreter(
                self.store,
                self.config.bot,
                persist=self.flush,
            )
        return self.store

    async def start(self) -> bool:
        """
        Start the bot.

        Returns:
            True if the bot is running, False if it was already running or
            the channel failed to start.
        """
        async with self._lock:
            if self._state in (BotState.RUNNING, BotState.STARTING):
                logger.warning("Bot is already running")
                return False

            logger.info("Starting bot...")
            self._state = BotState.STARTING
            self._error = None

            try:
                store = await self.load_store()
                self._channel = self._channel_factory()
                await self._channel.start()
            except Exception as e:
                self._error = str(e)
                logger.error(f"Bot failed to start: {e}")
                await self._shutdown()
                self._state = BotState.ERROR
                return False

            self.pipeline = IngestionPipeline(
                source=self._channel,
                actuator=self._channel,
                store=store,
                dedup=self.dedup,
                interpreter=self.interpreter,
                bot_config=self.config.bot,
                pipeline_config=self.config.pipeline,
                rng=self._rng,
            )
            self.pipeline.start()
            self._flush_task = asyncio.create_task(self._flush_loop())

            self._state = BotState.RUNNING
            self._started_at = datetime.now()
            logger.info(f"{self.config.bot.bot_name} is ready")
            return True

    async def stop(self) -> None:
        """Stop polling, flush statistics and release the channel."""
        async with self._lock:
            if self._state in (BotState.STOPPED, BotState.ERROR) and self._channel is None:
                return

            logger.info("Stopping bot...")
            self._state = BotState.STOPPING
            await self._shutdown()
            self._state = BotState.STOPPED
            logger.info("Bot stopped")

    async def _shutdown(self) -> None:
        """Cancel timers, flush once, close the channel. Never raises."""
        if self._flush_task is not None:
            self._flush_task.cancel()
            await asyncio.gather(self._flush_task, return_exceptions=True)
            self._flush_task = None

        if self.pipeline is not None:
            await self.pipeline.stop()

        if self.store is not None:
            await self.flush()

        if self._channel is not None:
            try:
                await self._channel.close()
            except Exception as e:
                logger.warning(f"Error closing channel: {e}")
            self._channel = None

    async def flush(self) -> bool:
        """Write the store to disk."""
        if self.store is None:
            return False
        return await self.persistence.save(self.store)

    async def _flush_loop(self) -> None:
        interval = self.config.storage.flush_interval_seconds
        while True:
            await asyncio.sleep(interval)
            if self.store is not None and self.store.dirty:
                await self.flush()

    def get_status(self) -> dict[str, Any]:
        """Get comprehensive status information."""
        return {
            "state": self._state.value,
            "is_running": self.is_running,
            "error": self._error,
            "bot_name": self.config.bot.bot_name,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "pipeline": self.pipeline.get_stats() if self.pipeline else None,
            "dedup": self.dedup.get_stats(),
            "persistence": self.persistence.get_stats(),
        }

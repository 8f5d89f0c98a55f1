"""
Ingestion pipeline for StatBot.

Each tick:
1. Poll the message source
2. Drop our own messages and messages already seen
3. Record the rest in the statistics store
4. Auto-reply in one-to-one conversations, or answer commands

Ticks are fired by a fixed-interval timer that does not wait for the
previous tick. At most `max_concurrent_ticks` ticks run at once; a timer
firing while that many are still in flight is skipped and counted.
"""

import asyncio
import random
import re
from typing import Any, Awaitable, Callable

from loguru import logger

from statbot.auto_reply.commands import CommandContext, CommandInterpreter
from statbot.auto_reply.dedup import DedupCache, Fingerprint
from statbot.auto_reply.replies import pick_auto_reply
from statbot.channels.base import MessageSource, ObservedMessage, ReplyActuator
from statbot.config.schema import BotConfig, PipelineConfig
from statbot.stats.store import StatsStore


_WHITESPACE = re.compile(r"\s+")


def derive_participant_id(display_name: str) -> str:
    """
    Derive a participant id from a display name.

    Whitespace runs become underscores and the result is lower-cased.
    Two people sharing a display name end up with the same id.
    """
    return _WHITESPACE.sub("_", display_name).lower()


class IngestionPipeline:
    """
    Binds the message source, dedup cache, store, interpreter and actuator.

    Messages within a tick are handled one after another in the order the
    source returned them, including the reply delay of auto-replies.
    """

    def __init__(
        self,
        source: MessageSource,
        actuator: ReplyActuator,
        store: StatsStore,
        dedup: DedupCache,
        interpreter: CommandInterpreter,
        bot_config: BotConfig,
        pipeline_config: PipelineConfig | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.source = source
        self.actuator = actuator
        self.store = store
        self.dedup = dedup
        self.interpreter = interpreter
        self.bot_config = bot_config
        self.config = pipeline_config or PipelineConfig()
        self._rng = rng or random.Random()
        self._sleep = sleep

        self._running = False
        self._timer: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

        # Stats
        self._ticks = 0
        self._skipped_ticks = 0
        self._accepted = 0
        self._duplicates = 0
        self._self_messages = 0
        self._commands = 0
        self._auto_replies = 0
        self._poll_errors = 0
        self._delivery_failures = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def interval_seconds(self) -> float:
        return self.config.poll_interval_ms / 1000

    # ========== Scheduling ==========

    def start(self) -> None:
        """Start the polling timer."""
        if self._running:
            return
        self._running = True
        self._timer = asyncio.create_task(self._timer_loop())
        logger.info(f"Watching for messages every {self.config.poll_interval_ms} ms")

    async def stop(self) -> None:
        """
        Stop the timer and cancel ticks still in flight.

        Pending replies are abandoned, not waited for.
        """
        self._running = False

        tasks = [t for t in (self._timer, *self._inflight) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._timer = None
        self._inflight.clear()
        logger.info("Ingestion pipeline stopped")

    async def _timer_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval_seconds)
            if not self._running:
                break
            self._launch_tick()

    def _launch_tick(self) -> None:
        if len(self._inflight) >= self.config.max_concurrent_ticks:
            self._skipped_ticks += 1
            logger.debug(f"Skipping tick, {len(self._inflight)} still in flight")
            return

        task = asyncio.create_task(self._guarded_tick())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _guarded_tick(self) -> None:
        try:
            await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Tick failed: {e}")

    # ========== Processing ==========

    async def tick(self) -> int:
        """
        Run one poll cycle.

        Returns:
            Number of messages accepted in this cycle.
        """
        self._ticks += 1

        try:
            messages = await self.source.poll()
        except Exception as e:
            self._poll_errors += 1
            logger.error(f"Message polling failed: {e}")
            return 0

        accepted = 0
        for message in messages:
            if await self.process(message):
                accepted += 1
        return accepted

    async def process(self, message: ObservedMessage) -> bool:
        """
        Handle one observed message.

        Returns:
            True if the message was new and recorded.
        """
        if message.sender_display_name == self.bot_config.bot_name:
            self._self_messages += 1
            return False

        fingerprint = Fingerprint(
            conversation_id=message.conversation_id,
            text=message.text,
            observed_at=message.observed_at,
        )
        if self.dedup.seen(fingerprint):
            self._duplicates += 1
            return False

        participant_id = message.sender_id or derive_participant_id(message.sender_display_name)
        count = self.store.record_message(
            message.conversation_id,
            participant_id,
            message.sender_display_name,
            message.is_group,
        )
        self._accepted += 1
        logger.debug(
            f"[{message.sender_display_name}] in {message.conversation_id}: "
            f"{message.text[:50]} ({count})"
        )

        if not message.is_group and self.bot_config.auto_reply:
            await self._auto_reply(message)
            return True

        context = CommandContext(
            conversation_id=message.conversation_id,
            requester_id=participant_id,
            requester_name=message.sender_display_name,
        )
        response = await self.interpreter.handle_text(message.text, context)
        if response:
            self._commands += 1
            await self._deliver(message.conversation_id, response)

        return True

    async def _auto_reply(self, message: ObservedMessage) -> None:
        delay_ms = self._rng.uniform(self.config.reply_delay_min_ms, self.config.reply_delay_max_ms)
        await self._sleep(delay_ms / 1000)

        reply = pick_auto_reply(
            name=message.sender_display_name,
            bot_name=self.bot_config.bot_name,
            prefix=self.bot_config.command_prefix,
            rng=self._rng,
        )
        self._auto_replies += 1
        await self._deliver(message.conversation_id, reply)

    async def _deliver(self, conversation_id: str, text: str) -> bool:
        try:
            ok = await self.actuator.deliver(conversation_id, text)
        except Exception as e:
            logger.error(f"Reply delivery to {conversation_id} failed: {e}")
            ok = False

        if not ok:
            self._delivery_failures += 1
        return ok

    def get_stats(self) -> dict[str, Any]:
        """Get pipeline statistics."""
        return {
            "running": self._running,
            "ticks": self._ticks,
            "skipped_ticks": self._skipped_ticks,
            "inflight_ticks": len(self._inflight),
            "accepted": self._accepted,
            "duplicates": self._duplicates,
            "self_messages": self._self_messages,
            "commands": self._commands,
            "auto_replies": self._auto_replies,
            "poll_errors": self._poll_errors,
            "delivery_failures": self._delivery_failures,
        }

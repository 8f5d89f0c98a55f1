"""
Automation bridge channel for StatBot.

Talks over HTTP to a browser automation bridge that keeps the chat session
logged in, scrapes the conversation list and types replies:
- GET  /v1/status    session state ({"ready": true} once logged in)
- GET  /v1/messages  latest message per open conversation
- POST /v1/send      deliver {"conversation_id", "text"}
"""

from typing import Any

import httpx
from loguru import logger

from statbot.channels.base import BaseChannel, ObservedMessage
from statbot.config.schema import BridgeConfig
from statbot.errors import ChannelStartupError


class BridgeChannel(BaseChannel):
    """
    Channel backed by an HTTP automation bridge.

    Configuration (via BridgeConfig):
    - url: Base URL of the bridge
    - timeout_seconds: Per-request timeout
    """

    name = "bridge"

    def __init__(self, config: BridgeConfig, client: httpx.AsyncClient | None = None):
        super().__init__()
        self.base_url = config.url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self._sent = 0
        self._failed = 0

    async def start(self) -> None:
        """Check that the bridge is up and its session is logged in."""
        logger.info(f"Connecting to automation bridge at {self.base_url}")
        try:
            response = await self._client.get(f"{self.base_url}/v1/status")
            response.raise_for_status()
            status = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ChannelStartupError(f"Bridge unreachable at {self.base_url}: {e}") from e

        if not status.get("ready", False):
            reason = status.get("error") or "session not logged in"
            raise ChannelStartupError(f"Bridge not ready: {reason}")

        self._running = True
        logger.info("Automation bridge ready")

    async def poll(self) -> list[ObservedMessage]:
        """
        Fetch the latest message of each conversation.

        Raises:
            httpx.HTTPError: On transport or status errors; the pipeline
                logs these and tries again next tick.
        """
        response = await self._client.get(f"{self.base_url}/v1/messages")
        response.raise_for_status()
        payload: Any = response.json()

        items = payload.get("messages", []) if isinstance(payload, dict) else payload
        messages = []
        for item in items or []:
            if not isinstance(item, dict):
                continue
            try:
                message = ObservedMessage.from_dict(item)
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed message from bridge: {e}")
                continue
            if not message.conversation_id:
                continue
            messages.append(message)
        return messages

    async def deliver(self, conversation_id: str, text: str) -> bool:
        """Send a reply through the bridge."""
        try:
            response = await self._client.post(
                f"{self.base_url}/v1/send",
                json={"conversation_id": conversation_id, "text": text},
            )
            response.raise_for_status()
            ok = bool(response.json().get("ok", True))
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            self._failed += 1
            logger.error(f"Failed to send message to {conversation_id}: {e}")
            return False

        if ok:
            self._sent += 1
            logger.info(f"Sent to {conversation_id}: {text[:50]}")
        else:
            self._failed += 1
            logger.warning(f"Bridge refused message for {conversation_id}")
        return ok

    async def close(self) -> None:
        """Stop using the bridge and close the HTTP client."""
        if self._running:
            logger.info("Closing automation bridge channel")
        self._running = False
        await self._client.aclose()

    def get_stats(self) -> dict[str, Any]:
        return {"url": self.base_url, "sent": self._sent, "failed": self._failed}

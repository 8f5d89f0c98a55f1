"""
Channel interfaces for StatBot.

A channel is the collaborator that drives the remote chat surface. It
observes messages (MessageSource) and delivers replies (ReplyActuator).
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class ObservedMessage:
    """The latest message seen in one open conversation."""
    conversation_id: str
    text: str
    sender_display_name: str
    is_group: bool = False
    observed_at: float = field(default_factory=lambda: time.time() * 1000)
    sender_id: str | None = None  # Set when the surface exposes a stable id

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ObservedMessage":
        """
        Build from a bridge payload.

        Accepts both snake_case keys and the camelCase keys produced by the
        browser-side scraper (threadId, message, sender, isGroup, timestamp).
        """
        observed_at = data.get("observed_at", data.get("timestamp"))
        return cls(
            conversation_id=str(data.get("conversation_id") or data.get("threadId") or ""),
            text=str(data.get("text", data.get("message", "")) or ""),
            sender_display_name=str(
                data.get("sender_display_name") or data.get("sender") or "Unknown"
            ),
            is_group=bool(data.get("is_group", data.get("isGroup", False))),
            observed_at=float(observed_at) if observed_at is not None else time.time() * 1000,
            sender_id=data.get("sender_id") or data.get("senderId") or None,
        )


@runtime_checkable
class MessageSource(Protocol):
    async def poll(self) -> list[ObservedMessage]:
        """Return the latest message of every open conversation."""
        ...


@runtime_checkable
class ReplyActuator(Protocol):
    async def deliver(self, conversation_id: str, text: str) -> bool:
        """Try to send text to a conversation. Never raises."""
        ...


class BaseChannel(ABC):
    """
    Base class for channels.

    Subclasses implement the session lifecycle (start/close) together with
    polling and delivery.
    """

    name: str = "base"

    def __init__(self):
        self._running = False

    @abstractmethod
    async def start(self) -> None:
        """
        Open the session with the remote surface.

        Raises:
            ChannelStartupError: If the surface cannot be reached or the
                session is not logged in.
        """

    @abstractmethod
    async def poll(self) -> list[ObservedMessage]:
        """Return the latest message of every open conversation."""

    @abstractmethod
    async def deliver(self, conversation_id: str, text: str) -> bool:
        """Send a reply. Returns False on failure instead of raising."""

    @abstractmethod
    async def close(self) -> None:
        """Release the session. Safe to call more than once."""

    @property
    def is_running(self) -> bool:
        """Check if the channel is running."""
        return self._running

"""Chat surface channels for StatBot."""

from statbot.channels.base import BaseChannel, MessageSource, ObservedMessage, ReplyActuator
from statbot.channels.bridge import BridgeChannel

__all__ = ["BaseChannel", "BridgeChannel", "MessageSource", "ObservedMessage", "ReplyActuator"]

"""
Auto-reply system for StatBot.

Provides:
- Deduplication of observed messages
- Command detection, parsing and execution
- Templated replies for one-to-one conversations
"""

from statbot.auto_reply.dedup import DedupCache, Fingerprint
from statbot.auto_reply.commands import (
    Command,
    CommandContext,
    CommandInterpreter,
    CommandKind,
    parse_command,
)
from statbot.auto_reply.replies import pick_auto_reply, REPLY_TEMPLATES

__all__ = [
    # Dedup
    "DedupCache",
    "Fingerprint",
    # Commands
    "Command",
    "CommandContext",
    "CommandInterpreter",
    "CommandKind",
    "parse_command",
    # Replies
    "pick_auto_reply",
    "REPLY_TEMPLATES",
]

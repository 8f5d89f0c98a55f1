"""
Message statistics for StatBot.

Provides:
- Data model for conversations, users, groups and global counters
- StatsStore, the single owner of that state
- Snapshot persistence to a JSON file
"""

from statbot.stats.models import (
    Conversation,
    ConversationSummary,
    GlobalCounters,
    GlobalSummary,
    Group,
    MemberStat,
    ParticipantRank,
    User,
)
from statbot.stats.store import StatsStore
from statbot.stats.persistence import SnapshotPersistence

__all__ = [
    # Model
    "Conversation",
    "ConversationSummary",
    "GlobalCounters",
    "GlobalSummary",
    "Group",
    "MemberStat",
    "ParticipantRank",
    "User",
    # Store
    "StatsStore",
    "SnapshotPersistence",
]

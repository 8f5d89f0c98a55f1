"""
Data model for message statistics.

Entities:
- Conversation: per-thread totals and per-member counters
- MemberStat: one participant inside one conversation
- User: one participant across all conversations
- Group: group conversations, named from their id
- GlobalCounters: process-wide totals and start time

Serialized field names match the storage.json format written by earlier
versions of the bot, so existing snapshots keep loading.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any


GROUP_NAME_PREFIX = "Group_"


def _now() -> datetime:
    return datetime.now()


def _parse_time(value: Any) -> datetime:
    """Parse an ISO string or epoch milliseconds into a datetime."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000)
    if isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
        return parsed
    return _now()


@dataclass
class MemberStat:
    """Message counter for one participant in one conversation."""
    display_name: str
    message_count: int = 0
    first_message_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.display_name,
            "count": self.message_count,
            "firstMessage": self.first_message_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemberStat":
        return cls(
            display_name=data.get("name", ""),
            message_count=int(data.get("count", 0)),
            first_message_at=_parse_time(data.get("firstMessage")),
        )


@dataclass
class Conversation:
    """
    Statistics for a single conversation.

    `members` keeps insertion order, which is the tie-breaker when ranking
    members with equal counts.
    """
    total_messages: int = 0
    members: dict[str, MemberStat] = field(default_factory=dict)
    is_group: bool = False
    last_activity: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total_messages,
            "members": {pid: m.to_dict() for pid, m in self.members.items()},
            "isGroup": self.is_group,
            "lastActivity": self.last_activity.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Conversation":
        return cls(
            total_messages=int(data.get("total", 0)),
            members={
                pid: MemberStat.from_dict(m)
                for pid, m in (data.get("members") or {}).items()
            },
            is_group=bool(data.get("isGroup", False)),
            last_activity=_parse_time(data.get("lastActivity")),
        )


@dataclass
class User:
    """A participant across every conversation they wrote in."""
    display_name: str
    total_messages: int = 0
    conversations: list[str] = field(default_factory=list)
    last_seen_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.display_name,
            "totalMessages": self.total_messages,
            "threads": list(self.conversations),
            "lastSeen": self.last_seen_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        threads: list[str] = []
        for thread_id in data.get("threads") or []:
            if thread_id not in threads:
                threads.append(thread_id)
        return cls(
            display_name=data.get("name", ""),
            total_messages=int(data.get("totalMessages", 0)),
            conversations=threads,
            last_seen_at=_parse_time(data.get("lastSeen")),
        )


@dataclass(frozen=True)
class Group:
    """A group conversation. Created once, never modified."""
    display_name: str
    created_at: datetime = field(default_factory=_now)

    @classmethod
    def for_conversation(cls, conversation_id: str) -> "Group":
        return cls(display_name=f"{GROUP_NAME_PREFIX}{conversation_id[:6]}")

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.display_name, "created": self.created_at.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Group":
        return cls(
            display_name=data.get("name", ""),
            created_at=_parse_time(data.get("created")),
        )


@dataclass
class GlobalCounters:
    """Process-wide counters. Uptime is derived, never stored as truth."""
    total_messages: int = 0
    start_time: datetime = field(default_factory=_now)

    @property
    def uptime(self) -> timedelta:
        return _now() - self.start_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalMessages": self.total_messages,
            "startTime": int(self.start_time.timestamp() * 1000),
            "uptime": int(self.uptime.total_seconds() * 1000),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GlobalCounters":
        return cls(
            total_messages=int(data.get("totalMessages", 0)),
            start_time=_parse_time(data.get("startTime")),
        )


@dataclass
class ParticipantRank:
    """One row of a ranking."""
    participant_id: str
    display_name: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "participant_id": self.participant_id,
            "display_name": self.display_name,
            "count": self.count,
        }


@dataclass
class ConversationSummary:
    """Read-only view of one conversation."""
    total_messages: int
    member_count: int
    top_members: list[ParticipantRank]
    last_activity: datetime
    is_group: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_messages": self.total_messages,
            "member_count": self.member_count,
            "top_members": [m.to_dict() for m in self.top_members],
            "last_activity": self.last_activity.isoformat(),
            "is_group": self.is_group,
        }


@dataclass
class GlobalSummary:
    """Read-only view of the global counters."""
    total_messages: int
    total_users: int
    total_groups: int
    uptime: timedelta
    start_time: datetime

    @property
    def uptime_text(self) -> str:
        """Uptime as 'Xd Yh'."""
        seconds = max(int(self.uptime.total_seconds()), 0)
        days, rem = divmod(seconds, 86400)
        hours = rem // 3600
        return f"{days}d {hours}h"

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_messages": self.total_messages,
            "total_users": self.total_users,
            "total_groups": self.total_groups,
            "uptime_seconds": int(self.uptime.total_seconds()),
            "uptime": self.uptime_text,
            "start_time": self.start_time.isoformat(),
        }

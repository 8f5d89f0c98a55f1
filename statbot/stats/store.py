"""
Statistics store for StatBot.

Single owner of the conversation, user, group and global maps. All
mutation goes through record_message() and reset_conversation(); every
mutation marks the store dirty so the runtime knows a flush is due.
"""

from datetime import datetime
from typing import Any

from loguru import logger

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


TOP_MEMBERS_IN_SUMMARY = 10


class StatsStore:
    """
    In-memory aggregate of message statistics.

    Invariants kept by record_message():
    - a conversation's total equals the sum of its member counts
    - a user's total equals the sum of their member counts everywhere
    - the global total equals the sum of all conversation totals
    """

    def __init__(
        self,
        conversations: dict[str, Conversation] | None = None,
        users: dict[str, User] | None = None,
        groups: dict[str, Group] | None = None,
        counters: GlobalCounters | None = None,
        reconcile_on_reset: bool = True,
    ):
        self.conversations: dict[str, Conversation] = conversations or {}
        self.users: dict[str, User] = users or {}
        self.groups: dict[str, Group] = groups or {}
        self.counters = counters or GlobalCounters()
        self.reconcile_on_reset = reconcile_on_reset
        self._version = 0
        self._saved_version = 0

    @property
    def version(self) -> int:
        """Mutation counter, bumped by every change."""
        return self._version

    @property
    def dirty(self) -> bool:
        """True if the store changed since the last flush."""
        return self._version != self._saved_version

    def mark_clean(self, version: int | None = None) -> None:
        """Record that the state as of `version` (default: now) is on disk."""
        self._saved_version = self._version if version is None else version

    # ========== Mutation ==========

    def record_message(
        self,
        conversation_id: str,
        participant_id: str,
        display_name: str,
        is_group: bool = False,
    ) -> int:
        """
        Record one accepted message.

        Args:
            conversation_id: Conversation the message was seen in.
            participant_id: Stable id of the sender.
            display_name: Sender name as shown on the surface.
            is_group: Whether the conversation is a group.

        Returns:
            The sender's updated message count in this conversation.
        """
        now = datetime.now()

        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            conversation = Conversation(is_group=is_group, last_activity=now)
            self.conversations[conversation_id] = conversation

        # Once seen as a group, always a group
        conversation.is_group = conversation.is_group or is_group

        member = conversation.members.get(participant_id)
        if member is None:
            member = MemberStat(display_name=display_name, first_message_at=now)
            conversation.members[participant_id] = member

        member.message_count += 1
        conversation.total_messages += 1
        conversation.last_activity = now

        user = self.users.get(participant_id)
        if user is None:
            user = User(display_name=display_name, last_seen_at=now)
            self.users[participant_id] = user

        user.display_name = display_name
        user.total_messages += 1
        user.last_seen_at = now
        if conversation_id not in user.conversations:
            user.conversations.append(conversation_id)

        if conversation.is_group and conversation_id not in self.groups:
            self.groups[conversation_id] = Group.for_conversation(conversation_id)

        self.counters.total_messages += 1
        self._version += 1

        return member.message_count

    def reset_conversation(self, conversation_id: str) -> None:
        """
        Replace a conversation's statistics with an empty entry.

        With reconcile_on_reset the removed counts are also subtracted from
        the affected users and the global total, and the conversation is
        dropped from those users' lists. Without it, user and global totals
        keep counting the wiped messages.
        """
        old = self.conversations.get(conversation_id)
        is_group = old.is_group if old else False

        if old is not None and self.reconcile_on_reset:
            for participant_id, member in old.members.items():
                user = self.users.get(participant_id)
                if user is None:
                    continue
                user.total_messages = max(user.total_messages - member.message_count, 0)
                if conversation_id in user.conversations:
                    user.conversations.remove(conversation_id)
            self.counters.total_messages = max(
                self.counters.total_messages - old.total_messages, 0
            )

        self.conversations[conversation_id] = Conversation(is_group=is_group)
        self._version += 1
        logger.info(f"Reset statistics for conversation {conversation_id}")

    # ========== Queries ==========

    def get_conversation_summary(self, conversation_id: str) -> ConversationSummary | None:
        """Summarize a conversation, or None if nothing was ever recorded for it."""
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            return None

        ranked = self._rank_members(conversation)
        return ConversationSummary(
            total_messages=conversation.total_messages,
            member_count=len(conversation.members),
            top_members=ranked[:TOP_MEMBERS_IN_SUMMARY],
            last_activity=conversation.last_activity,
            is_group=conversation.is_group,
        )

    def get_top_participants(
        self,
        conversation_id: str | None = None,
        limit: int = 5,
    ) -> list[ParticipantRank]:
        """
        Rank participants by message count.

        Args:
            conversation_id: Rank members of this conversation. None, or an
                id with no statistics, ranks users across the whole system.
            limit: Maximum number of rows.

        Returns:
            Rows sorted by count descending; equal counts keep first-seen order.
        """
        limit = max(limit, 0)

        conversation = self.conversations.get(conversation_id) if conversation_id else None
        if conversation is not None:
            return self._rank_members(conversation)[:limit]

        ranked = [
            ParticipantRank(participant_id=pid, display_name=u.display_name, count=u.total_messages)
            for pid, u in self.users.items()
        ]
        ranked.sort(key=lambda r: r.count, reverse=True)
        return ranked[:limit]

    def get_global_summary(self) -> GlobalSummary:
        return GlobalSummary(
            total_messages=self.counters.total_messages,
            total_users=len(self.users),
            total_groups=len(self.groups),
            uptime=self.counters.uptime,
            start_time=self.counters.start_time,
        )

    @staticmethod
    def _rank_members(conversation: Conversation) -> list[ParticipantRank]:
        ranked = [
            ParticipantRank(participant_id=pid, display_name=m.display_name, count=m.message_count)
            for pid, m in conversation.members.items()
        ]
        # list.sort is stable, so ties stay in insertion order
        ranked.sort(key=lambda r: r.count, reverse=True)
        return ranked

    # ========== Snapshot ==========

    def to_snapshot(self) -> dict[str, Any]:
        """Serialize the whole store. Uptime is recomputed on every call."""
        return {
            "messages": {cid: c.to_dict() for cid, c in self.conversations.items()},
            "users": {pid: u.to_dict() for pid, u in self.users.items()},
            "groups": {cid: g.to_dict() for cid, g in self.groups.items()},
            "global": self.counters.to_dict(),
        }

    @classmethod
    def from_snapshot(
        cls,
        data: dict[str, Any],
        reconcile_on_reset: bool = True,
    ) -> "StatsStore":
        """Build a store from a snapshot produced by to_snapshot()."""
        return cls(
            conversations={
                cid: Conversation.from_dict(c) for cid, c in (data.get("messages") or {}).items()
            },
            users={pid: User.from_dict(u) for pid, u in (data.get("users") or {}).items()},
            groups={cid: Group.from_dict(g) for cid, g in (data.get("groups") or {}).items()},
            counters=GlobalCounters.from_dict(data.get("global") or {}),
            reconcile_on_reset=reconcile_on_reset,
        )

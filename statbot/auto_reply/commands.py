"""
Command parsing and execution for StatBot.

Supports:
- Prefixed commands (e.g. !help, !top 3)
- A closed set of command kinds, each with exactly one handler
- Admin-only commands checked against the configured allowlist
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from loguru import logger

from statbot.config.schema import BotConfig
from statbot.stats.store import StatsStore


DEFAULT_TOP_LIMIT = 5
STATS_PODIUM_SIZE = 3
MEDALS = ("🥇", "🥈", "🥉")
RANK_BADGE = "🏅"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class CommandKind(str, Enum):
    """Every command the bot understands."""
    HELP = "help"
    STATS = "stats"
    TOP = "top"
    INFO = "info"
    PING = "ping"
    CLEAN = "clean"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: str) -> "CommandKind":
        """Map a command word to its kind. Anything unrecognized is UNKNOWN."""
        try:
            kind = cls(name.lower())
        except ValueError:
            return cls.UNKNOWN
        return kind


@dataclass
class Command:
    """A parsed command."""
    name: str
    kind: CommandKind
    arguments: list[str] = field(default_factory=list)
    raw: str = ""

    @property
    def arg(self) -> str:
        """Get first argument or empty string."""
        return self.arguments[0] if self.arguments else ""


@dataclass
class CommandContext:
    """Who issued a command, and where."""
    conversation_id: str
    requester_id: str
    requester_name: str = ""


# Type alias for command handlers
CommandHandler = Callable[[Command, CommandContext], Awaitable[str]]


def parse_command(text: str, prefix: str) -> Command | None:
    """
    Parse a command from message text.

    Examples (prefix "!"):
        !help -> Command(name="help", kind=HELP)
        !TOP 3 -> Command(name="top", kind=TOP, arguments=["3"])
        !dance -> Command(name="dance", kind=UNKNOWN)
        hello -> None

    Args:
        text: Raw message text.
        prefix: Configured command prefix.

    Returns:
        Parsed Command, or None if the text is not a command.
    """
    if not prefix or not text.startswith(prefix):
        return None

    parts = text[len(prefix):].split()
    if not parts:
        return None

    name = parts[0].lower()
    return Command(
        name=name,
        kind=CommandKind.from_name(name),
        arguments=parts[1:],
        raw=text,
    )


def parse_limit(value: str, default: int = DEFAULT_TOP_LIMIT) -> int:
    """Parse a positive integer argument, falling back to default."""
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    return limit if limit > 0 else default


class CommandInterpreter:
    """
    Executes commands against the statistics store.

    Every CommandKind has exactly one handler; a missing handler is a
    construction error rather than a runtime surprise. Execution never
    raises: every path returns a non-empty reply.
    """

    HELP_TEXT = {
        CommandKind.HELP: "Show this help",
        CommandKind.STATS: "Statistics for this conversation",
        CommandKind.TOP: "Top [n] most active members",
        CommandKind.INFO: "Bot information",
        CommandKind.PING: "Check that the bot is alive",
    }

    PONG = "🏓 Pong! Bot is running"

    def __init__(
        self,
        store: StatsStore,
        config: BotConfig,
        persist: Callable[[], Awaitable[bool]] | None = None,
    ):
        """
        Args:
            store: Statistics store to read and reset.
            config: Bot identity, prefix and admin allowlist.
            persist: Flushes the store; called right after a privileged reset.
        """
        self.store = store
        self.config = config
        self._persist = persist
        self._admin_ids = frozenset(config.admin_ids)

        self._handlers: dict[CommandKind, CommandHandler] = {
            CommandKind.HELP: self._handle_help,
            CommandKind.STATS: self._handle_stats,
            CommandKind.TOP: self._handle_top,
            CommandKind.INFO: self._handle_info,
            CommandKind.PING: self._handle_ping,
            CommandKind.CLEAN: self._handle_clean,
            CommandKind.UNKNOWN: self._handle_unknown,
        }

        missing = set(CommandKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for commands: {sorted(k.value for k in missing)}")

    @property
    def prefix(self) -> str:
        return self.config.command_prefix

    def is_admin(self, participant_id: str) -> bool:
        return participant_id in self._admin_ids

    def parse(self, text: str) -> Command | None:
        return parse_command(text, self.prefix)

    async def execute(self, command: Command, context: CommandContext) -> str:
        """
        Execute a command.

        Args:
            command: The parsed command.
            context: Requester and conversation.

        Returns:
            Reply text, never empty.
        """
        handler = self._handlers[command.kind]
        try:
            response = await handler(command, context)
        except Exception as e:
            logger.error(f"Command error in {self.prefix}{command.name}: {e}")
            response = f"❌ Error executing {self.prefix}{command.name}"

        return response or self._fallback()

    async def handle_text(self, text: str, context: CommandContext) -> str | None:
        """Parse and execute; None if text is not a command."""
        command = self.parse(text)
        if command is None:
            return None
        return await self.execute(command, context)

    # ========== Handlers ==========

    async def _handle_help(self, command: Command, context: CommandContext) -> str:
        lines = ["📋 **COMMANDS**"]
        for kind, help_text in self.HELP_TEXT.items():
            usage = f"{kind.value} [n]" if kind is CommandKind.TOP else kind.value
            lines.append(f"{self.prefix}{usage} - {help_text}")
        return "\n".join(lines)

    async def _handle_stats(self, command: Command, context: CommandContext) -> str:
        summary = self.store.get_conversation_summary(context.conversation_id)
        if summary is None:
            return "📊 No statistics yet"

        lines = [
            "📊 **CONVERSATION STATS**",
            f"📈 Total messages: {summary.total_messages}",
            f"👥 Members: {summary.member_count}",
            f"⏰ Last activity: {summary.last_activity.strftime(TIME_FORMAT)}",
            "",
            f"🏆 **TOP {STATS_PODIUM_SIZE}**",
        ]
        for position, member in enumerate(summary.top_members[:STATS_PODIUM_SIZE], start=1):
            lines.append(f"{position}. {member.display_name}: {member.count} messages")
        return "\n".join(lines)

    async def _handle_top(self, command: Command, context: CommandContext) -> str:
        limit = parse_limit(command.arg)
        ranked = self.store.get_top_participants(context.conversation_id, limit)
        if not ranked:
            return "📊 No data yet"

        lines = [f"🏆 **TOP {len(ranked)}**"]
        for index, row in enumerate(ranked):
            badge = MEDALS[index] if index < len(MEDALS) else RANK_BADGE
            lines.append(f"{badge} {row.display_name}: {row.count} messages")
        return "\n".join(lines)

    async def _handle_info(self, command: Command, context: CommandContext) -> str:
        summary = self.store.get_global_summary()
        return "\n".join([
            f"🤖 **{self.config.bot_name}**",
            f"📨 Messages: {summary.total_messages}",
            f"👤 Users: {summary.total_users}",
            f"👥 Groups: {summary.total_groups}",
            f"⏱️ Uptime: {summary.uptime_text}",
            f"🚀 Running since: {summary.start_time.strftime(TIME_FORMAT)}",
        ])

    async def _handle_ping(self, command: Command, context: CommandContext) -> str:
        return self.PONG

    async def _handle_clean(self, command: Command, context: CommandContext) -> str:
        if not self.is_admin(context.requester_id):
            logger.warning(
                f"Denied {self.prefix}clean for {context.requester_id} "
                f"in {context.conversation_id}"
            )
            return "⛔ Admin permission required"

        self.store.reset_conversation(context.conversation_id)
        if self._persist is not None:
            await self._persist()
        return "✅ Statistics for this conversation were cleared"

    async def _handle_unknown(self, command: Command, context: CommandContext) -> str:
        return self._fallback()

    def _fallback(self) -> str:
        return f"❓ Unknown command. Use {self.prefix}help"

    def get_help(self) -> dict[str, Any]:
        """Command list for the control panel."""
        return {f"{self.prefix}{kind.value}": text for kind, text in self.HELP_TEXT.items()}

"""
Exception types for StatBot.

Only startup failures of the channel collaborator are allowed to stop the
runtime; everything else is caught where it happens and logged.
"""


class StatBotError(Exception):
    """Base class for StatBot errors."""


class ChannelStartupError(StatBotError):
    """The remote surface could not be reached or logged into."""


class SnapshotError(StatBotError):
    """A statistics snapshot could not be read or decoded."""

"""HTTP control panel for StatBot."""

from statbot.server.main import create_app

__all__ = ["create_app"]

"""
FastAPI routers for the StatBot control panel.

Provides modular route organization:
- system: Status, start/stop controls, command list
- stats: Global and per-conversation statistics
"""

from statbot.server.routers.system import router as system_router
from statbot.server.routers.stats import router as stats_router

__all__ = ["system_router", "stats_router"]

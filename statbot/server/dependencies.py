"""
FastAPI dependency injection utilities.

Provides dependencies for:
- Config access
- Bot runtime access
- A loaded statistics store
"""

from typing import Annotated
from fastapi import Depends, Request, HTTPException, status

from statbot.config.schema import Config
from statbot.pipeline.runtime import StatBot
from statbot.stats.store import StatsStore


def get_config(request: Request) -> Config:
    """Get config from app state."""
    return request.app.state.config


def get_bot(request: Request) -> StatBot:
    """Get the bot runtime from app state."""
    return request.app.state.bot


ConfigDep = Annotated[Config, Depends(get_config)]
BotDep = Annotated[StatBot, Depends(get_bot)]


async def require_store(bot: BotDep) -> StatsStore:
    """Dependency that requires the statistics store to be loaded."""
    if bot.store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "Statistics not loaded", "state": bot.state.value},
        )
    return bot.store


StoreDep = Annotated[StatsStore, Depends(require_store)]

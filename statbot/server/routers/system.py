"""
System routes for the StatBot control panel.

Provides:
- /api/system/status - Bot state and pipeline counters
- /api/system/start - Start the bot
- /api/system/stop - Stop the bot
- /api/system/commands - Chat commands the bot answers
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from statbot.server.dependencies import BotDep, ConfigDep

router = APIRouter()


class ControlResponse(BaseModel):
    """Response from start/stop endpoints."""
    success: bool
    state: str
    message: str


@router.get("/status")
async def get_status(bot: BotDep, config: ConfigDep):
    """Get the bot's lifecycle state and counters."""
    status = bot.get_status()

    # Add config info
    status["command_prefix"] = config.bot.command_prefix
    status["auto_reply"] = config.bot.auto_reply
    status["poll_interval_ms"] = config.pipeline.poll_interval_ms

    return JSONResponse(status)


@router.post("/start", response_model=ControlResponse)
async def start_bot(bot: BotDep):
    """Start polling the chat surface."""
    if bot.is_running:
        return ControlResponse(success=False, state=bot.state.value, message="Bot is already running")

    success = await bot.start()
    return ControlResponse(
        success=success,
        state=bot.state.value,
        message="Bot started" if success else f"Bot failed to start: {bot.error}",
    )


@router.post("/stop", response_model=ControlResponse)
async def stop_bot(bot: BotDep):
    """Stop polling and flush statistics."""
    await bot.stop()
    return ControlResponse(success=True, state=bot.state.value, message="Bot stopped")


@router.get("/commands")
async def list_commands(bot: BotDep):
    """List chat commands with their help text."""
    if bot.interpreter is None:
        return JSONResponse({"commands": {}})
    return JSONResponse({"commands": bot.interpreter.get_help()})

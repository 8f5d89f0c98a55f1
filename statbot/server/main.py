"""
FastAPI application factory for the StatBot control panel.

Provides:
- Application creation with lifecycle management of the bot
- Router registration
- CORS configuration
"""

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from statbot import __version__
from statbot.server.routers import stats_router, system_router

if TYPE_CHECKING:
    from statbot.config.schema import Config
    from statbot.pipeline.runtime import StatBot


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    - Startup: load statistics, optionally start the bot
    - Shutdown: stop the bot, which flushes statistics
    """
    logger.info("Starting StatBot control panel...")
    bot = app.state.bot

    await bot.load_store()
    if app.state.autostart:
        await bot.start()

    yield

    logger.info("Shutting down StatBot control panel...")
    await bot.stop()


def create_app(
    config: "Config",
    bot: "StatBot",
    autostart: bool = False,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: StatBot configuration
        bot: Bot runtime controlled by this app
        autostart: Start the bot when the app starts

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="StatBot API",
        description="Control panel for the message statistics bot",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.bot = bot
    app.state.autostart = autostart

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(system_router, prefix="/api/system", tags=["System"])
    app.include_router(stats_router, prefix="/api/stats", tags=["Stats"])

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return JSONResponse({"status": "ok"})

    return app

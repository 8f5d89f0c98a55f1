"""CLI commands for StatBot."""

import asyncio
import signal
import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from statbot import __version__, __logo__

app = typer.Typer(
    name="statbot",
    help=f"{__logo__} StatBot - message statistics bot",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} StatBot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
):
    """StatBot - message statistics bot."""
    pass


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


# ============================================================================
# Onboard
# ============================================================================


@app.command()
def onboard():
    """Write a default configuration file."""
    from statbot.config.loader import get_config_path, save_config
    from statbot.config.schema import Config

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    save_config(Config(), config_path)
    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print("Set bot.admin_ids and bridge.url, then run [cyan]statbot run[/cyan]")


# ============================================================================
# Run
# ============================================================================


@app.command()
def run(
    port: int = typer.Option(None, "--port", "-p", help="Control panel port"),
    no_server: bool = typer.Option(False, "--no-server", help="Run without the control panel"),
    config_file: Path = typer.Option(None, "--config", "-c", help="Config file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Start the bot (and its control panel)."""
    from statbot.channels.bridge import BridgeChannel
    from statbot.config.loader import load_config
    from statbot.pipeline.runtime import StatBot

    _configure_logging(verbose)

    config = load_config(config_file)
    if port is not None:
        config.gateway.port = port

    bot = StatBot(config, channel_factory=lambda: BridgeChannel(config.bridge))

    console.print(f"{__logo__} Starting {config.bot.bot_name}...")
    console.print(f"[green]✓[/green] Statistics: {config.persist_file}")
    console.print(f"[green]✓[/green] Bridge: {config.bridge.url}")

    if no_server:
        if not asyncio.run(_run_headless(bot)):
            console.print(f"[red]Error: bot failed to start: {bot.error}[/red]")
            raise typer.Exit(1)
        return

    import uvicorn
    from statbot.server.main import create_app

    console.print(
        f"[green]✓[/green] Control panel: http://{config.gateway.host}:{config.gateway.port}"
    )
    server_app = create_app(config, bot, autostart=True)
    uvicorn.run(server_app, host=config.gateway.host, port=config.gateway.port, log_level="warning")


async def _run_headless(bot) -> bool:
    """Run until SIGINT/SIGTERM. Returns False if the bot could not start."""
    if not await bot.start():
        return False

    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            signal.signal(sig, lambda *_: stop_event.set())

    await stop_event.wait()
    console.print("\nShutting down...")
    await bot.stop()
    return True


# ============================================================================
# Stats
# ============================================================================


@app.command()
def stats(
    conversation: str = typer.Option(None, "--conversation", "-t", help="Conversation id"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of participants to show"),
    config_file: Path = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show statistics from the saved snapshot."""
    from statbot.config.loader import load_config
    from statbot.errors import SnapshotError
    from statbot.stats.persistence import SnapshotPersistence

    config = load_config(config_file)
    persistence = SnapshotPersistence(config.persist_file)

    try:
        store = persistence.read_store()
    except SnapshotError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    summary = store.get_global_summary()
    overview = Table(title=f"{__logo__} {config.bot.bot_name}")
    overview.add_column("Metric", style="cyan")
    overview.add_column("Value")
    overview.add_row("Messages", str(summary.total_messages))
    overview.add_row("Users", str(summary.total_users))
    overview.add_row("Groups", str(summary.total_groups))
    overview.add_row("Conversations", str(len(store.conversations)))
    overview.add_row("Running since", summary.start_time.strftime("%Y-%m-%d %H:%M:%S"))
    console.print(overview)

    if conversation and store.get_conversation_summary(conversation) is None:
        console.print(f"[yellow]No statistics for conversation {conversation}[/yellow]")
        raise typer.Exit(1)

    ranked = store.get_top_participants(conversation, limit)
    top = Table(title=f"Top {len(ranked)}" + (f" in {conversation}" if conversation else ""))
    top.add_column("#", justify="right")
    top.add_column("Participant")
    top.add_column("Id", style="dim")
    top.add_column("Messages", justify="right")
    for position, row in enumerate(ranked, start=1):
        top.add_row(str(position), row.display_name, row.participant_id, str(row.count))
    console.print(top)


if __name__ == "__main__":
    app()

"""Entry point for `python -m statbot`."""

from statbot.cli.commands import app

if __name__ == "__main__":
    app()

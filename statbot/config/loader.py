"""
Configuration loading for StatBot.

Config lives in ~/.statbot/config.json. Values from the file win; environment
variables prefixed with STATBOT_ (nested with __) fill in the rest.
"""

import json
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from statbot.config.schema import Config


def get_data_dir() -> Path:
    """Get the StatBot home directory."""
    return Path.home() / ".statbot"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_data_dir() / "config.json"


def load_config(path: Path | None = None) -> Config:
    """
    Load configuration from disk.

    A missing or invalid file is not fatal; defaults (plus environment
    overrides) are used instead.

    Args:
        path: Config file path, defaults to get_config_path().

    Returns:
        Loaded configuration.
    """
    path = path or get_config_path()

    if not path.exists():
        logger.debug(f"No config at {path}, using defaults")
        return Config()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Config(**data)
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        logger.warning(f"Invalid config at {path}, using defaults: {e}")
        return Config()


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write configuration to disk and return the path written."""
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(config.model_dump(), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    return path

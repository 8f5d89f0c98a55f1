"""Configuration for StatBot."""

from statbot.config.schema import Config
from statbot.config.loader import load_config, save_config, get_config_path

__all__ = ["Config", "load_config", "save_config", "get_config_path"]

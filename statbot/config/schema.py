"""Configuration schema using Pydantic."""

from pathlib import Path
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BotConfig(BaseModel):
    """Identity and command behavior of the bot."""
    bot_name: str = "StatBot"  # Shown in replies, also used to ignore our own messages
    command_prefix: str = "!"
    admin_ids: list[str] = Field(default_factory=list)  # Participant ids allowed to run !clean
    auto_reply: bool = True  # Templated replies in 1:1 conversations
    reconcile_on_reset: bool = True  # Keep user/global totals consistent after !clean


class PipelineConfig(BaseModel):
    """Polling and deduplication settings."""
    poll_interval_ms: int = Field(default=3000, gt=0)
    reply_delay_min_ms: int = Field(default=1000, ge=0)
    reply_delay_max_ms: int = Field(default=3000, ge=0)
    max_concurrent_ticks: int = Field(default=1, ge=1)
    dedup_capacity: int = Field(default=200, gt=0)
    dedup_evict_batch: int = Field(default=100, gt=0)

    @model_validator(mode="after")
    def _check_ranges(self) -> "PipelineConfig":
        if self.reply_delay_max_ms < self.reply_delay_min_ms:
            raise ValueError("reply_delay_max_ms must be >= reply_delay_min_ms")
        if self.dedup_evict_batch > self.dedup_capacity:
            raise ValueError("dedup_evict_batch must not exceed dedup_capacity")
        return self


class StorageConfig(BaseModel):
    """Statistics snapshot settings."""
    persist_path: str = "~/.statbot/data/storage.json"
    flush_interval_seconds: float = Field(default=300.0, gt=0)


class BridgeConfig(BaseModel):
    """Automation bridge that drives the remote chat surface."""
    url: str = "http://localhost:3001"
    timeout_seconds: float = 30.0


class GatewayConfig(BaseModel):
    """Control panel server configuration."""
    host: str = "0.0.0.0"
    port: int = 3000


class Config(BaseSettings):
    """Root configuration for StatBot."""
    bot: BotConfig = Field(default_factory=BotConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)

    model_config = SettingsConfigDict(
        env_prefix="STATBOT_",
        env_nested_delimiter="__",
    )

    @property
    def persist_file(self) -> Path:
        """Get expanded snapshot path."""
        return Path(self.storage.persist_path).expanduser()

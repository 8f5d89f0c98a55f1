"""
Message ingestion for StatBot.

Provides:
- IngestionPipeline: poll, deduplicate, record, reply
- StatBot: lifecycle owner of the store, channel and pipeline
"""

from statbot.pipeline.ingest import IngestionPipeline, derive_participant_id
from statbot.pipeline.runtime import BotState, StatBot

__all__ = ["BotState", "IngestionPipeline", "StatBot", "derive_participant_id"]

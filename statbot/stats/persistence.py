"""
Snapshot persistence for the statistics store.

The whole store is written as one JSON document. Writes go to a temporary
file in the same directory which then replaces the snapshot, so readers
never observe a half-written file.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any

from loguru import logger

from statbot.errors import SnapshotError
from statbot.stats.store import StatsStore


class SnapshotPersistence:
    """Loads and saves StatsStore snapshots at a fixed path."""

    def __init__(self, path: Path, reconcile_on_reset: bool = True):
        self.path = Path(path)
        self.reconcile_on_reset = reconcile_on_reset
        self._last_saved_at: float | None = None
        self._save_failures = 0

    def read(self) -> dict[str, Any]:
        """
        Read the raw snapshot.

        Raises:
            SnapshotError: If the file is missing or not a JSON object.
        """
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise SnapshotError(f"No snapshot at {self.path}") from e
        except (OSError, json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
            raise SnapshotError(f"Unreadable snapshot at {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise SnapshotError(f"Snapshot at {self.path} is not a JSON object")
        return data

    def read_store(self) -> StatsStore:
        """
        Read the snapshot and build a store from it.

        Raises:
            SnapshotError: If the file is missing, unreadable, or holds values
                that do not decode (bad counts, out-of-range timestamps).
        """
        data = self.read()
        try:
            return StatsStore.from_snapshot(data, reconcile_on_reset=self.reconcile_on_reset)
        except (ValueError, TypeError, AttributeError, OverflowError, OSError, RecursionError) as e:
            raise SnapshotError(f"Corrupt snapshot at {self.path}: {e}") from e

    def write(self, payload: dict[str, Any]) -> None:
        """Atomically replace the snapshot file with payload."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def load(self) -> StatsStore:
        """
        Load the store, or create an empty one.

        A missing or corrupt snapshot is not fatal: an empty store is created
        and written out straight away.
        """
        try:
            store = await asyncio.to_thread(self.read_store)
            logger.info(
                f"Loaded statistics from {self.path} "
                f"({len(store.conversations)} conversations, {len(store.users)} users)"
            )
            return store
        except SnapshotError as e:
            logger.info(f"Starting with empty statistics: {e}")

        store = StatsStore(reconcile_on_reset=self.reconcile_on_reset)
        await self.save(store)
        return store

    async def save(self, store: StatsStore) -> bool:
        """
        Flush the store to disk.

        Returns:
            True on success. Failures are logged, never raised.
        """
        version = store.version
        payload = store.to_snapshot()
        try:
            await asyncio.to_thread(self.write, payload)
        except Exception as e:
            self._save_failures += 1
            logger.error(f"Failed to save statistics to {self.path}: {e}")
            return False

        store.mark_clean(version)
        self._last_saved_at = asyncio.get_running_loop().time()
        logger.debug(f"Saved statistics to {self.path}")
        return True

    def get_stats(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "save_failures": self._save_failures,
            "has_saved": self._last_saved_at is not None,
        }

"""
Deduplication of observed messages.

The message source reports the latest message of every open conversation
on each poll, so the same message is seen over and over. DedupCache
remembers recent fingerprints in insertion order and forgets the oldest
half once it grows past its capacity.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Fingerprint:
    """Identity of one observed message. Compared by exact equality."""
    conversation_id: str
    text: str
    observed_at: float


class DedupCache:
    """
    Bounded set of recently seen fingerprints.

    When an insertion would take the cache past `capacity`, the
    `evict_batch` earliest inserted fingerprints are dropped first. Lookups
    do not refresh an entry's position. A fingerprint evicted this way can
    be accepted again if the source reports it again.
    """

    def __init__(self, capacity: int = 200, evict_batch: int = 100):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if not 0 < evict_batch <= capacity:
            raise ValueError("evict_batch must be between 1 and capacity")

        self.capacity = capacity
        self.evict_batch = evict_batch

        self._seen: OrderedDict[Fingerprint, None] = OrderedDict()

        # Stats
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def has(self, fingerprint: Fingerprint) -> bool:
        return fingerprint in self._seen

    def insert(self, fingerprint: Fingerprint) -> None:
        if fingerprint in self._seen:
            return

        if len(self._seen) >= self.capacity:
            for _ in range(min(self.evict_batch, len(self._seen))):
                self._seen.popitem(last=False)
                self._evictions += 1

        self._seen[fingerprint] = None

    def seen(self, fingerprint: Fingerprint) -> bool:
        """
        Check a fingerprint and remember it.

        Returns:
            True if it was already known (a duplicate), False if it is new.
        """
        if self.has(fingerprint):
            self._hits += 1
            return True

        self._misses += 1
        self.insert(fingerprint)
        return False

    def clear(self) -> None:
        self._seen.clear()

    @property
    def size(self) -> int:
        return len(self._seen)

    def __len__(self) -> int:
        return len(self._seen)

    def get_stats(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "capacity": self.capacity,
            "duplicates": self._hits,
            "accepted": self._misses,
            "evictions": self._evictions,
        }

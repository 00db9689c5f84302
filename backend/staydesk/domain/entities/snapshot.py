"""Domain entity — an immutable, timestamped copy of a collection."""

from dataclasses import dataclass
from enum import Enum

from .record import Record


class SnapshotSource(str, Enum):
    UPSTREAM = "upstream"
    MERGED = "merged"
    # upstream unreachable on first fetch; fallback entries only, never cached
    LOCAL_ONLY = "local"


@dataclass(frozen=True)
class CollectionSnapshot:
    """Result of one fetch + merge for a resource kind and sub-key.

    Snapshots are never patched: the next fetch supersedes them wholesale.
    ``fetched_at`` is read from the cache's monotonic clock.
    """

    records: tuple[Record, ...]
    fetched_at: float
    source: SnapshotSource
    total_count: int
    generation: int = 0

    def __len__(self) -> int:
        return len(self.records)

    def find(self, record_id: int) -> Record | None:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

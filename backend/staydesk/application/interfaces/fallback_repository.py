"""Abstract repository interface (port) for the local fallback store."""

from abc import ABC, abstractmethod

from staydesk.domain.entities import FallbackEntry, FallbackOrigin, Record, ResourceKind


class FallbackRepository(ABC):
    """Port for locally-originated records — implemented in the infrastructure layer.

    The store is the single source of truth for local records: entries are
    only ever added, replaced or removed through these methods.
    """

    @abstractmethod
    async def read_all(self, resource: ResourceKind) -> list[FallbackEntry]:
        """All entries for a resource kind, in insertion order."""
        ...

    @abstractmethod
    async def get(self, resource: ResourceKind, record_id: int) -> FallbackEntry | None:
        ...

    @abstractmethod
    async def upsert(
        self, resource: ResourceKind, record: Record, origin: FallbackOrigin
    ) -> FallbackEntry:
        """Insert the entry, or replace the one with the same id in place."""
        ...

    @abstractmethod
    async def remove(self, resource: ResourceKind, record_id: int) -> bool:
        """Delete the entry. Returns False (not an error) if it was absent."""
        ...

    @abstractmethod
    async def assign_local_id(self, resource: ResourceKind, *, above: int = 0) -> int:
        """Issue a new local id, larger than any issued before and than ``above``."""
        ...

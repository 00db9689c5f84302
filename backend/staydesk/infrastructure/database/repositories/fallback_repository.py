"""Concrete fallback store backed by SQLAlchemy (one JSON row per resource kind)."""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from staydesk.application.interfaces import FallbackRepository
from staydesk.domain.entities import FallbackEntry, FallbackOrigin, Record, ResourceKind
from staydesk.infrastructure.database.models import FallbackCollectionModel

logger = logging.getLogger(__name__)


class SQLAlchemyFallbackRepository(FallbackRepository):
    """Implements the FallbackRepository port on a process-wide session factory.

    Each operation runs in its own short transaction. Read-modify-write
    cycles are serialized by an asyncio.Lock so concurrent coroutines cannot
    lose each other's updates.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        local_id_floor: int = 999000,
    ):
        self._session_factory = session_factory
        self._local_id_floor = local_id_floor
        self._lock = asyncio.Lock()

    @staticmethod
    def _to_entries(model: FallbackCollectionModel | None) -> list[FallbackEntry]:
        if model is None:
            return []
        return [FallbackEntry.from_json(item) for item in model.entries or []]

    async def _load_or_create(
        self, session: AsyncSession, resource: ResourceKind
    ) -> FallbackCollectionModel:
        model = await session.get(FallbackCollectionModel, resource.value)
        if model is None:
            model = FallbackCollectionModel(
                resource_kind=resource.value, entries=[], last_local_id=0
            )
            session.add(model)
        return model

    async def read_all(self, resource: ResourceKind) -> list[FallbackEntry]:
        async with self._session_factory() as session:
            model = await session.get(FallbackCollectionModel, resource.value)
            return self._to_entries(model)

    async def get(self, resource: ResourceKind, record_id: int) -> FallbackEntry | None:
        for entry in await self.read_all(resource):
            if entry.id == record_id:
                return entry
        return None

    async def upsert(
        self, resource: ResourceKind, record: Record, origin: FallbackOrigin
    ) -> FallbackEntry:
        entry = FallbackEntry(record=record.with_origin(origin), origin=origin, resource=resource)

        async with self._lock, self._session_factory() as session:
            model = await self._load_or_create(session, resource)
            entries = list(model.entries or [])
            for index, item in enumerate(entries):
                if int(item["record"]["id"]) == record.id:
                    entries[index] = entry.to_json()
                    action = "replace"
                    break
            else:
                entries.append(entry.to_json())
                action = "create"
            # Assign a new list so the JSON column is flagged dirty.
            model.entries = entries
            await session.commit()

        logger.info("Fallback %s: %s #%d (%s)", resource.value, action, record.id, origin.value)
        return entry

    async def remove(self, resource: ResourceKind, record_id: int) -> bool:
        async with self._lock, self._session_factory() as session:
            model = await session.get(FallbackCollectionModel, resource.value)
            if model is None:
                return False
            entries = list(model.entries or [])
            kept = [item for item in entries if int(item["record"]["id"]) != record_id]
            if len(kept) == len(entries):
                return False
            model.entries = kept
            await session.commit()

        logger.info("Fallback %s: delete #%d", resource.value, record_id)
        return True

    async def assign_local_id(self, resource: ResourceKind, *, above: int = 0) -> int:
        async with self._lock, self._session_factory() as session:
            model = await self._load_or_create(session, resource)
            new_id = max(model.last_local_id or 0, self._local_id_floor, above) + 1
            model.last_local_id = new_id
            await session.commit()

        logger.debug("Fallback %s: issued local id %d", resource.value, new_id)
        return new_id

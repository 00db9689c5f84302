"""Dashboard summary counts across all resource kinds."""

import asyncio
from dataclasses import dataclass, field

from staydesk.domain.entities import ResourceKind

from .collection_cache import CollectionCache


@dataclass(frozen=True)
class DashboardSummary:
    total_users: int
    admin_users: int
    regular_users: int
    total_rooms: int
    total_locations: int
    total_bookings: int
    local_records: dict[str, int] = field(default_factory=dict)


class DashboardService:
    """Reads every collection through the cache; no extra upstream calls."""

    def __init__(self, cache: CollectionCache):
        self._cache = cache

    async def summary(self) -> DashboardSummary:
        users, rooms, locations, bookings = await asyncio.gather(
            self._cache.get(ResourceKind.USER),
            self._cache.get(ResourceKind.ROOM),
            self._cache.get(ResourceKind.LOCATION),
            self._cache.get(ResourceKind.BOOKING),
        )
        admins = sum(1 for u in users.records if str(u.get("role", "")).upper() == "ADMIN")

        local_records = {
            kind.value: sum(1 for r in snapshot.records if r.is_local)
            for kind, snapshot in (
                (ResourceKind.USER, users),
                (ResourceKind.ROOM, rooms),
                (ResourceKind.LOCATION, locations),
                (ResourceKind.BOOKING, bookings),
            )
        }
        return DashboardSummary(
            total_users=len(users),
            admin_users=admins,
            regular_users=len(users) - admins,
            total_rooms=len(rooms),
            total_locations=len(locations),
            total_bookings=len(bookings),
            local_records=local_records,
        )

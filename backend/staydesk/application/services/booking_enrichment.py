"""Join bookings with the names of their guest and room for display."""

import asyncio
import logging
from collections.abc import Iterable

from staydesk.domain.entities import Record, ResourceKind
from staydesk.domain.exceptions import GatewayError

from .collection_cache import CollectionCache

logger = logging.getLogger(__name__)


async def _names_by_id(cache: CollectionCache, kind: ResourceKind, field_name: str) -> dict[int, str]:
    try:
        snapshot = await cache.get(kind)
    except GatewayError as exc:
        logger.warning("Cannot load %s names for bookings: %s", kind.value, exc)
        return {}
    return {r.id: str(r.get(field_name)) for r in snapshot.records if r.get(field_name)}


async def enrich_bookings(bookings: Iterable[Record], cache: CollectionCache) -> tuple[Record, ...]:
    """Add ``tenNguoiDung`` and ``tenPhong`` to each booking.

    Unknown ids fall back to ``User #<id>`` / ``Room #<id>``; a failure to
    load users or rooms never hides the bookings themselves.
    """
    user_names, room_names = await asyncio.gather(
        _names_by_id(cache, ResourceKind.USER, "name"),
        _names_by_id(cache, ResourceKind.ROOM, "tenPhong"),
    )

    enriched = []
    for booking in bookings:
        user_id = booking.get("maNguoiDung")
        room_id = booking.get("maPhong")
        enriched.append(
            booking.merged_with(
                {
                    "tenNguoiDung": user_names.get(_as_int(user_id)) or f"User #{user_id}",
                    "tenPhong": room_names.get(_as_int(room_id)) or f"Room #{room_id}",
                }
            )
        )
    return tuple(enriched)


def _as_int(value: object) -> int | None:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None

"""Unit tests for the CollectionCache (merge rule, staleness, coalescing, generations)."""

import asyncio
import logging

import pytest

from staydesk.application.services import CollectionCache, merge
from staydesk.domain.entities import (
    FallbackEntry,
    FallbackOrigin,
    Record,
    ResourceKind,
    SnapshotSource,
)
from staydesk.domain.exceptions import ResourceUnavailableError
from tests.fakes import FakeClock, FakeFallbackRepository, FakeGateway, settle

ROOMS = [{"id": 1, "tenPhong": "Room A"}, {"id": 2, "tenPhong": "Room B"}]


def _cache(
    gateway: FakeGateway,
    fallback: FakeFallbackRepository | None = None,
    *,
    stale_time: float = 120.0,
    clock: FakeClock | None = None,
) -> CollectionCache:
    return CollectionCache(
        {gateway.resource: gateway},
        fallback or FakeFallbackRepository(),
        stale_times={gateway.resource: stale_time},
        clock=clock or FakeClock(),
    )


def _entry(record_id: int, name: str, origin=FallbackOrigin.LOCAL_CREATE) -> FallbackEntry:
    return FallbackEntry(
        record=Record.from_wire({"id": record_id, "tenPhong": name}, origin),
        origin=origin,
        resource=ResourceKind.ROOM,
    )


# ── merge ──


def test_merge_replaces_in_place_and_appends_new_entries():
    upstream = [Record.from_wire(r) for r in ROOMS]
    entries = [_entry(999001, "Demo"), _entry(1, "Room A (edited)", FallbackOrigin.LOCAL_EDIT)]

    merged = merge(upstream, entries)

    assert [r.id for r in merged] == [1, 2, 999001]
    assert merged[0].get("tenPhong") == "Room A (edited)"
    assert merged[0].origin is FallbackOrigin.LOCAL_EDIT
    assert merged[1].origin is None
    assert merged[2].origin is FallbackOrigin.LOCAL_CREATE


def test_merge_is_deterministic_and_idempotent():
    upstream = [Record.from_wire({"id": i, "tenPhong": f"R{i}"}) for i in (5, 3, 9)]
    entries = [_entry(3, "local three"), _entry(999002, "x"), _entry(999001, "y")]

    once = merge(upstream, entries)

    assert once == merge(upstream, entries)
    assert merge(once, []) == once
    assert [r.id for r in once] == [5, 3, 9, 999002, 999001]


def test_merge_of_nothing_is_empty():
    assert merge([], []) == ()


# ── get / staleness ──


@pytest.mark.asyncio
async def test_get_merges_fallback_records_after_upstream():
    fallback = FakeFallbackRepository()
    await fallback.upsert(
        ResourceKind.ROOM,
        Record.from_wire({"id": 999001, "tenPhong": "Demo Room"}),
        FallbackOrigin.LOCAL_CREATE,
    )
    cache = _cache(FakeGateway(ResourceKind.ROOM, ROOMS), fallback)

    snapshot = await cache.get(ResourceKind.ROOM, "all")

    assert [r.get("tenPhong") for r in snapshot.records] == ["Room A", "Room B", "Demo Room"]
    assert snapshot.source is SnapshotSource.MERGED
    assert snapshot.total_count == 3


@pytest.mark.asyncio
async def test_snapshot_without_local_records_is_upstream():
    snapshot = await _cache(FakeGateway(ResourceKind.ROOM, ROOMS)).get(ResourceKind.ROOM)

    assert snapshot.source is SnapshotSource.UPSTREAM


@pytest.mark.asyncio
async def test_fresh_snapshot_is_served_from_memory_until_stale():
    clock = FakeClock()
    gateway = FakeGateway(ResourceKind.ROOM, ROOMS)
    cache = _cache(gateway, stale_time=120.0, clock=clock)

    first = await cache.get(ResourceKind.ROOM)
    clock.advance(119)
    second = await cache.get(ResourceKind.ROOM)
    clock.advance(2)
    third = await cache.get(ResourceKind.ROOM)

    assert second is first
    assert third is not first
    assert gateway.list_calls == 2


@pytest.mark.asyncio
async def test_zero_stale_time_always_refetches():
    gateway = FakeGateway(ResourceKind.BOOKING, [{"id": 1, "maPhong": 2}])
    cache = _cache(gateway, stale_time=0.0)

    await cache.get(ResourceKind.BOOKING)
    await cache.get(ResourceKind.BOOKING)

    assert gateway.list_calls == 2


@pytest.mark.asyncio
async def test_invalidate_forces_refetch_on_next_get():
    gateway = FakeGateway(ResourceKind.ROOM, ROOMS)
    cache = _cache(gateway)

    await cache.get(ResourceKind.ROOM)
    cache.invalidate(ResourceKind.ROOM, "all")
    await cache.get(ResourceKind.ROOM)

    assert gateway.list_calls == 2


@pytest.mark.asyncio
async def test_invalidate_without_sub_key_covers_every_sub_key():
    gateway = FakeGateway(ResourceKind.ROOM, [{"id": 1, "maViTri": 3}, {"id": 2, "maViTri": 4}])
    cache = _cache(gateway)

    await cache.get(ResourceKind.ROOM, "all")
    await cache.get(ResourceKind.ROOM, "location:3")
    cache.invalidate(ResourceKind.ROOM)
    await cache.get(ResourceKind.ROOM, "all")
    await cache.get(ResourceKind.ROOM, "location:3")

    assert gateway.list_calls == 4


@pytest.mark.asyncio
async def test_scoped_sub_key_only_overlays_matching_local_records():
    fallback = FakeFallbackRepository()
    await fallback.upsert(
        ResourceKind.ROOM, Record.from_wire({"id": 999001, "maViTri": 3}), FallbackOrigin.LOCAL_CREATE
    )
    await fallback.upsert(
        ResourceKind.ROOM, Record.from_wire({"id": 999002, "maViTri": 8}), FallbackOrigin.LOCAL_CREATE
    )
    gateway = FakeGateway(ResourceKind.ROOM, [{"id": 1, "maViTri": 3}, {"id": 2, "maViTri": 4}])
    cache = _cache(gateway, fallback)

    snapshot = await cache.get(ResourceKind.ROOM, "location:3")

    assert [r.id for r in snapshot.records] == [1, 999001]


@pytest.mark.asyncio
async def test_unknown_scope_is_rejected():
    cache = _cache(FakeGateway(ResourceKind.USER, []))

    with pytest.raises(ValueError):
        await cache.get(ResourceKind.USER, "location:3")


# ── coalescing / refetch / generations ──


@pytest.mark.asyncio
async def test_concurrent_gets_share_one_fetch():
    gateway = FakeGateway(ResourceKind.USER, [{"id": 1, "name": "An"}])
    gate = asyncio.Event()
    gateway.list_gates.append(gate)
    cache = _cache(gateway, stale_time=30.0)

    first = asyncio.create_task(cache.get(ResourceKind.USER, "all"))
    second = asyncio.create_task(cache.get(ResourceKind.USER, "all"))
    await settle()
    gate.set()
    a, b = await asyncio.gather(first, second)

    assert gateway.list_calls == 1
    assert a is b


@pytest.mark.asyncio
async def test_refetch_now_does_not_join_an_older_fetch():
    gateway = FakeGateway(ResourceKind.ROOM, ROOMS)
    old_gate, new_gate = asyncio.Event(), asyncio.Event()
    gateway.list_gates.extend([old_gate, new_gate])
    cache = _cache(gateway)

    pending_get = asyncio.create_task(cache.get(ResourceKind.ROOM))
    await settle()
    gateway.records.append({"id": 3, "tenPhong": "Room C"})
    pending_refetch = asyncio.create_task(cache.refetch_now(ResourceKind.ROOM))
    await settle()

    assert gateway.list_calls == 2

    new_gate.set()
    refetched = await pending_refetch
    old_gate.set()
    served_to_get = await pending_get

    assert [r.id for r in refetched.records] == [1, 2, 3]
    # The older fetch finished last but must not replace the newer snapshot.
    assert served_to_get is refetched
    assert cache.peek(ResourceKind.ROOM) is refetched


@pytest.mark.asyncio
async def test_get_after_invalidate_does_not_join_fetch_started_before():
    gateway = FakeGateway(ResourceKind.ROOM, ROOMS)
    first_gate = asyncio.Event()
    gateway.list_gates.append(first_gate)
    cache = _cache(gateway)

    early = asyncio.create_task(cache.get(ResourceKind.ROOM))
    await settle()
    cache.invalidate(ResourceKind.ROOM)
    late = await cache.get(ResourceKind.ROOM)
    first_gate.set()
    await early

    assert gateway.list_calls == 2
    assert cache.peek(ResourceKind.ROOM) is late


# ── error policy ──


@pytest.mark.asyncio
async def test_first_fetch_error_propagates():
    gateway = FakeGateway(ResourceKind.LOCATION, [])
    gateway.errors["list"] = ResourceUnavailableError("location", ["/vi-tri"])
    cache = _cache(gateway)

    with pytest.raises(ResourceUnavailableError):
        await cache.get(ResourceKind.LOCATION)


@pytest.mark.asyncio
async def test_first_fetch_error_serves_local_records_when_available(caplog):
    fallback = FakeFallbackRepository()
    await fallback.upsert(
        ResourceKind.ROOM, Record.from_wire({"id": 999001, "tenPhong": "Demo"}), FallbackOrigin.LOCAL_CREATE
    )
    gateway = FakeGateway(ResourceKind.ROOM, ROOMS)
    gateway.errors["list"] = ResourceUnavailableError("room", ["/phong-thue"])
    cache = _cache(gateway, fallback)

    with caplog.at_level(logging.WARNING):
        snapshot = await cache.get(ResourceKind.ROOM)

    assert snapshot.source is SnapshotSource.LOCAL_ONLY
    assert [r.id for r in snapshot.records] == [999001]
    assert snapshot.total_count == 1
    assert "local record(s) only" in caplog.text
    # not stored: the next read tries upstream again
    assert cache.peek(ResourceKind.ROOM) is None
    del gateway.errors["list"]
    assert (await cache.get(ResourceKind.ROOM)).source is SnapshotSource.MERGED


@pytest.mark.asyncio
async def test_failed_background_refresh_serves_last_snapshot(caplog):
    clock = FakeClock()
    gateway = FakeGateway(ResourceKind.LOCATION, [{"id": 1, "tenViTri": "Hue"}])
    cache = _cache(gateway, stale_time=60.0, clock=clock)
    good = await cache.get(ResourceKind.LOCATION)

    clock.advance(61)
    gateway.errors["list"] = ResourceUnavailableError("location", ["/vi-tri"])
    with caplog.at_level(logging.WARNING):
        served = await cache.get(ResourceKind.LOCATION)

    assert served is good
    assert "serving snapshot" in caplog.text


@pytest.mark.asyncio
async def test_refetch_now_propagates_errors():
    gateway = FakeGateway(ResourceKind.ROOM, ROOMS)
    cache = _cache(gateway)
    await cache.get(ResourceKind.ROOM)
    gateway.errors["list"] = ResourceUnavailableError("room", ["/phong-thue"])

    with pytest.raises(ResourceUnavailableError):
        await cache.refetch_now(ResourceKind.ROOM)


# ── helpers ──


@pytest.mark.asyncio
async def test_max_observed_id_tracks_upstream_only():
    fallback = FakeFallbackRepository()
    await fallback.upsert(
        ResourceKind.ROOM, Record.from_wire({"id": 999005}), FallbackOrigin.LOCAL_CREATE
    )
    cache = _cache(FakeGateway(ResourceKind.ROOM, [{"id": 17}, {"id": 4}]), fallback)

    assert cache.max_observed_id(ResourceKind.ROOM) == 0
    await cache.get(ResourceKind.ROOM)
    assert cache.max_observed_id(ResourceKind.ROOM) == 17


@pytest.mark.asyncio
async def test_find_cached_looks_through_stored_snapshots():
    cache = _cache(FakeGateway(ResourceKind.ROOM, ROOMS))
    assert cache.find_cached(ResourceKind.ROOM, 2) is None

    await cache.get(ResourceKind.ROOM)

    record = cache.find_cached(ResourceKind.ROOM, 2)
    assert record is not None and record.get("tenPhong") == "Room B"

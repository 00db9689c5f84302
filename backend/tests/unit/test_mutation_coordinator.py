"""Unit tests for the MutationCoordinator state machine and its fallback paths."""

import asyncio

import pytest

from staydesk.application.services import CollectionCache, MutationCoordinator
from staydesk.domain.entities import (
    AssetUpload,
    FallbackOrigin,
    MutationIntent,
    MutationKind,
    MutationState,
    Record,
    ResourceKind,
)
from staydesk.domain.exceptions import (
    AssetUploadFailedError,
    ForbiddenError,
    MutationInProgressError,
    ResourceUnavailableError,
    ServerError,
    ValidationError,
)
from tests.fakes import (
    FakeFallbackRepository,
    FakeGateway,
    FakeSessionStore,
    admin_session,
    settle,
)

ROOMS = [
    {"id": 1, "tenPhong": "Room A", "maViTri": 3, "giaTien": 40},
    {"id": 2, "tenPhong": "Room B", "maViTri": 4, "giaTien": 60},
]
PHOTO = AssetUpload(filename="room.png", content=b"\x89PNG", content_type="image/png")


class CountingCache(CollectionCache):
    """CollectionCache that counts forced refetches."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.refetches: list[tuple[ResourceKind, str]] = []

    async def refetch_now(self, kind, sub_key="all"):
        self.refetches.append((kind, sub_key))
        return await super().refetch_now(kind, sub_key)


class Harness:
    def __init__(
        self,
        records=None,
        *,
        kind: ResourceKind = ResourceKind.ROOM,
        logged_in: bool = True,
        fallback_enabled: bool = True,
        allow_local_overrides: bool = False,
    ):
        self.kind = kind
        self.gateway = FakeGateway(kind, ROOMS if records is None else records)
        self.fallback = FakeFallbackRepository()
        self.cache = CountingCache(
            {kind: self.gateway}, self.fallback, stale_times={kind: 300.0}
        )
        self.sessions = FakeSessionStore(admin_session() if logged_in else None)
        self.coordinator = MutationCoordinator(
            {kind: self.gateway},
            self.fallback,
            self.cache,
            self.sessions,
            fallback_enabled=fallback_enabled,
            allow_local_overrides=allow_local_overrides,
        )

    def forbid(self, *operations: str) -> None:
        for operation in operations:
            self.gateway.errors[operation] = ForbiddenError(self.kind.value)

    async def submit(self, kind: MutationKind, payload=None, target_id=None, **kwargs):
        intent = MutationIntent(
            kind=kind, resource=self.kind, payload=payload or {}, target_id=target_id, **kwargs
        )
        return await self.coordinator.submit(intent)


# ── upstream success ──


@pytest.mark.asyncio
async def test_successful_create_refetches_once_and_never_touches_fallback():
    h = Harness()
    await h.cache.get(ResourceKind.ROOM)

    outcome = await h.submit(MutationKind.CREATE, {"tenPhong": "Room C", "maViTri": 3})

    assert outcome.state is MutationState.SUCCEEDED
    assert outcome.transitions == [MutationState.SUBMITTING, MutationState.SUCCEEDED]
    assert outcome.record.id == 100
    assert outcome.message == "Room #100 created"
    assert not outcome.via_fallback
    assert h.cache.refetches == [(ResourceKind.ROOM, "all")]
    assert h.fallback.writes == []
    snapshot = h.cache.peek(ResourceKind.ROOM)
    assert [r.id for r in snapshot.records] == [1, 2, 100]


@pytest.mark.asyncio
async def test_successful_update_invalidates_scoped_lists_too():
    h = Harness()
    await h.cache.get(ResourceKind.ROOM, "location:3")
    calls_before = h.gateway.list_calls

    outcome = await h.submit(MutationKind.UPDATE, {"giaTien": 45}, target_id=1)
    await h.cache.get(ResourceKind.ROOM, "location:3")

    assert outcome.succeeded
    assert outcome.message == "Room #1 updated"
    # one refetch for "all" plus one for the invalidated scoped key
    assert h.gateway.list_calls == calls_before + 2


@pytest.mark.asyncio
async def test_successful_delete_has_no_record():
    h = Harness()

    outcome = await h.submit(MutationKind.DELETE, target_id=2)

    assert outcome.succeeded
    assert outcome.record is None
    assert outcome.message == "Room #2 deleted"
    assert [r.id for r in h.cache.peek(ResourceKind.ROOM).records] == [1]


# ── 403 on create ──


@pytest.mark.asyncio
async def test_forbidden_create_with_session_is_kept_locally():
    h = Harness()
    h.forbid("create")

    outcome = await h.submit(MutationKind.CREATE, {"tenPhong": "Demo", "giaTien": "75"})

    assert outcome.state is MutationState.SUCCEEDED
    assert outcome.transitions == [
        MutationState.SUBMITTING,
        MutationState.FAILED_RECOVERABLE,
        MutationState.SUCCEEDED,
    ]
    assert outcome.via_fallback
    assert outcome.record.id == 999001
    assert outcome.record.origin is FallbackOrigin.LOCAL_CREATE
    assert outcome.record.get("giaTien") == 75
    assert outcome.message == "Room #999001 created (saved locally)"

    snapshot = await h.cache.get(ResourceKind.ROOM)
    assert [r.id for r in snapshot.records] == [1, 2, 999001]
    assert snapshot.records[-1].is_local


@pytest.mark.asyncio
async def test_local_id_is_above_highest_observed_upstream_id():
    h = Harness(records=[{"id": 1_500_000, "tenPhong": "Big"}])
    await h.cache.get(ResourceKind.ROOM)
    h.forbid("create")

    first = await h.submit(MutationKind.CREATE, {"tenPhong": "x"})
    second = await h.submit(MutationKind.CREATE, {"tenPhong": "y"})

    assert first.record.id == 1_500_001
    assert second.record.id == 1_500_002


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("logged_in", "fallback_enabled"), [(False, True), (True, False)]
)
async def test_forbidden_create_without_write_restriction_is_fatal(logged_in, fallback_enabled):
    h = Harness(logged_in=logged_in, fallback_enabled=fallback_enabled)
    h.forbid("create")

    outcome = await h.submit(MutationKind.CREATE, {"tenPhong": "Demo"})

    assert outcome.state is MutationState.FAILED_FATAL
    assert isinstance(outcome.error, ForbiddenError)
    assert h.fallback.writes == []
    assert h.cache.refetches == []


@pytest.mark.asyncio
async def test_forbidden_create_with_uncoercible_payload_is_fatal():
    h = Harness()
    h.forbid("create")

    outcome = await h.submit(MutationKind.CREATE, {"tenPhong": "Demo", "giaTien": "abc"})

    assert outcome.state is MutationState.FAILED_FATAL
    assert isinstance(outcome.error, ValidationError)
    assert outcome.message.startswith("The submitted data is invalid.")
    assert h.fallback.writes == []


# ── 403 on update / delete ──


@pytest.mark.asyncio
async def test_forbidden_update_of_upstream_record_is_not_owned():
    h = Harness()
    await h.cache.get(ResourceKind.ROOM)
    list_calls = h.gateway.list_calls
    h.forbid("update")

    outcome = await h.submit(MutationKind.UPDATE, {"giaTien": 99}, target_id=2)

    assert outcome.state is MutationState.FAILED_FATAL
    assert outcome.transitions == [MutationState.SUBMITTING, MutationState.FAILED_FATAL]
    assert outcome.error.not_owned
    assert "not owned by you" in outcome.message
    assert h.fallback.writes == []
    assert h.cache.refetches == []
    assert h.gateway.list_calls == list_calls


@pytest.mark.asyncio
async def test_forbidden_delete_of_upstream_record_is_not_owned():
    h = Harness(allow_local_overrides=True)
    h.forbid("delete")

    outcome = await h.submit(MutationKind.DELETE, target_id=1)

    assert outcome.state is MutationState.FAILED_FATAL
    assert outcome.error.not_owned


@pytest.mark.asyncio
async def test_local_overrides_keep_forbidden_update_as_local_edit():
    h = Harness(allow_local_overrides=True)
    await h.cache.get(ResourceKind.ROOM)
    h.forbid("update")

    outcome = await h.submit(MutationKind.UPDATE, {"giaTien": 99}, target_id=2)

    assert outcome.succeeded
    assert outcome.via_fallback
    assert outcome.record.origin is FallbackOrigin.LOCAL_EDIT
    assert outcome.record.get("tenPhong") == "Room B"
    assert outcome.record.get("giaTien") == 99
    snapshot = h.cache.peek(ResourceKind.ROOM)
    assert [r.id for r in snapshot.records] == [1, 2]
    assert snapshot.find(2).get("giaTien") == 99


# ── records held by the fallback store ──


@pytest.mark.asyncio
async def test_update_of_local_create_never_calls_upstream():
    h = Harness()
    await h.fallback.upsert(
        ResourceKind.ROOM,
        Record.from_wire({"id": 999001, "tenPhong": "Demo", "giaTien": 10}),
        FallbackOrigin.LOCAL_CREATE,
    )

    outcome = await h.submit(MutationKind.UPDATE, {"giaTien": "20"}, target_id=999001)

    assert outcome.succeeded
    assert outcome.via_fallback
    assert outcome.transitions == [MutationState.SUBMITTING, MutationState.SUCCEEDED]
    assert outcome.record.get("giaTien") == 20
    assert outcome.record.get("tenPhong") == "Demo"
    assert not [c for c in h.gateway.calls if c[0] != "list"]
    entry = await h.fallback.get(ResourceKind.ROOM, 999001)
    assert entry.origin is FallbackOrigin.LOCAL_CREATE


@pytest.mark.asyncio
async def test_delete_of_local_create_removes_entry():
    h = Harness()
    await h.fallback.upsert(
        ResourceKind.ROOM, Record.from_wire({"id": 999001}), FallbackOrigin.LOCAL_CREATE
    )

    outcome = await h.submit(MutationKind.DELETE, target_id=999001)

    assert outcome.succeeded
    assert outcome.message == "Room #999001 deleted (saved locally)"
    assert await h.fallback.get(ResourceKind.ROOM, 999001) is None
    assert h.cache.peek(ResourceKind.ROOM).find(999001) is None


@pytest.mark.asyncio
async def test_local_edit_is_dropped_once_upstream_accepts_the_write():
    h = Harness()
    await h.fallback.upsert(
        ResourceKind.ROOM,
        Record.from_wire({"id": 1, "tenPhong": "Mine"}),
        FallbackOrigin.LOCAL_EDIT,
    )

    outcome = await h.submit(MutationKind.UPDATE, {"tenPhong": "Upstream now"}, target_id=1)

    assert outcome.succeeded
    assert not outcome.via_fallback
    assert await h.fallback.get(ResourceKind.ROOM, 1) is None
    assert h.cache.peek(ResourceKind.ROOM).find(1).origin is None


@pytest.mark.asyncio
async def test_local_edit_still_refused_upstream_stays_local():
    h = Harness()
    await h.fallback.upsert(
        ResourceKind.ROOM,
        Record.from_wire({"id": 1, "tenPhong": "Mine"}),
        FallbackOrigin.LOCAL_EDIT,
    )
    h.forbid("update")

    outcome = await h.submit(MutationKind.UPDATE, {"tenPhong": "Mine again"}, target_id=1)

    assert outcome.succeeded
    assert outcome.transitions[1] is MutationState.FAILED_RECOVERABLE
    entry = await h.fallback.get(ResourceKind.ROOM, 1)
    assert entry.origin is FallbackOrigin.LOCAL_EDIT
    assert entry.record.get("tenPhong") == "Mine again"


@pytest.mark.asyncio
async def test_forbidden_delete_of_local_edit_is_not_owned_and_keeps_the_edit():
    h = Harness()
    await h.fallback.upsert(
        ResourceKind.ROOM,
        Record.from_wire({"id": 1, "tenPhong": "Mine"}),
        FallbackOrigin.LOCAL_EDIT,
    )
    writes_before = list(h.fallback.writes)
    h.forbid("delete")

    outcome = await h.submit(MutationKind.DELETE, target_id=1)

    assert outcome.state is MutationState.FAILED_FATAL
    assert outcome.transitions == [MutationState.SUBMITTING, MutationState.FAILED_FATAL]
    assert outcome.error.not_owned
    assert "not owned by you" in outcome.message
    assert h.fallback.writes == writes_before
    assert h.cache.refetches == []

    snapshot = await h.cache.get(ResourceKind.ROOM)
    assert [r.id for r in snapshot.records] == [1, 2]
    assert snapshot.find(1).get("tenPhong") == "Mine"


# ── other failures ──


@pytest.mark.asyncio
async def test_upstream_validation_message_is_shown_verbatim():
    h = Harness()
    h.gateway.errors["create"] = ValidationError("room", "tenPhong is required")

    outcome = await h.submit(MutationKind.CREATE, {"giaTien": 1})

    assert outcome.state is MutationState.FAILED_FATAL
    assert outcome.message == "The submitted data is invalid. tenPhong is required"
    assert h.cache.refetches == []


@pytest.mark.asyncio
async def test_server_error_is_fatal_and_not_retried():
    h = Harness()
    h.gateway.errors["update"] = ServerError("room", 500, "boom")

    outcome = await h.submit(MutationKind.UPDATE, {"giaTien": 1}, target_id=1)

    assert outcome.state is MutationState.FAILED_FATAL
    assert outcome.message == "Server error, try again later."
    assert [c[0] for c in h.gateway.calls] == ["update"]


@pytest.mark.asyncio
async def test_refresh_failure_is_a_warning_and_leaves_key_invalidated():
    h = Harness()
    await h.cache.get(ResourceKind.ROOM)
    h.gateway.errors["list"] = ResourceUnavailableError("room", ["/phong-thue"])

    outcome = await h.submit(MutationKind.UPDATE, {"giaTien": 1}, target_id=1)

    assert outcome.succeeded
    assert outcome.warnings == ["The change was saved but the list could not be refreshed."]

    del h.gateway.errors["list"]
    list_calls = h.gateway.list_calls
    await h.cache.get(ResourceKind.ROOM)
    assert h.gateway.list_calls == list_calls + 1


# ── assets ──


@pytest.mark.asyncio
async def test_create_with_asset_uploads_after_the_record_exists():
    h = Harness()

    outcome = await h.submit(MutationKind.CREATE, {"tenPhong": "Room C"}, asset=PHOTO)

    assert outcome.succeeded
    assert outcome.record.get("hinhAnh") == "https://cdn.test/room.png"
    assert [c[0] for c in h.gateway.calls if c[0] != "list"] == ["create", "upload_asset"]


@pytest.mark.asyncio
async def test_failed_asset_upload_keeps_the_mutation():
    h = Harness()
    h.gateway.errors["upload_asset"] = AssetUploadFailedError("room", 500, "upload failed")

    outcome = await h.submit(MutationKind.UPDATE, {"giaTien": 5}, target_id=1, asset=PHOTO)

    assert outcome.succeeded
    assert outcome.warnings == ["The record was saved but its image could not be uploaded."]


@pytest.mark.asyncio
async def test_asset_is_skipped_for_records_created_locally():
    h = Harness()
    h.forbid("create")

    outcome = await h.submit(MutationKind.CREATE, {"tenPhong": "Demo"}, asset=PHOTO)

    assert outcome.succeeded
    assert outcome.warnings == [
        "The image was not uploaded because this record only exists locally."
    ]
    assert "upload_asset" not in [c[0] for c in h.gateway.calls]


@pytest.mark.asyncio
async def test_standalone_upload_refreshes_the_list():
    h = Harness()

    outcome = await h.coordinator.upload_asset(ResourceKind.ROOM, 2, PHOTO)

    assert outcome.succeeded
    assert outcome.message == "Room #2 image uploaded"
    assert h.cache.peek(ResourceKind.ROOM).find(2).get("hinhAnh") == "https://cdn.test/room.png"


@pytest.mark.asyncio
async def test_standalone_upload_for_local_record_is_fatal():
    h = Harness()
    await h.fallback.upsert(
        ResourceKind.ROOM, Record.from_wire({"id": 999001}), FallbackOrigin.LOCAL_CREATE
    )

    outcome = await h.coordinator.upload_asset(ResourceKind.ROOM, 999001, PHOTO)

    assert outcome.state is MutationState.FAILED_FATAL
    assert h.gateway.calls == []


# ── concurrency ──


@pytest.mark.asyncio
async def test_double_submit_of_the_same_intent_is_rejected():
    h = Harness()
    h.gateway.write_gate = asyncio.Event()
    intent = MutationIntent(
        kind=MutationKind.UPDATE, resource=ResourceKind.ROOM, payload={"giaTien": 1}, target_id=1
    )

    first = asyncio.create_task(h.coordinator.submit(intent))
    await settle()

    assert h.coordinator.state_of(intent) is MutationState.SUBMITTING
    with pytest.raises(MutationInProgressError):
        await h.coordinator.submit(intent)

    h.gateway.write_gate.set()
    outcome = await first

    assert outcome.succeeded
    assert h.coordinator.state_of(intent) is MutationState.IDLE
    assert [c[0] for c in h.gateway.calls].count("update") == 1


@pytest.mark.asyncio
async def test_creates_with_different_payloads_may_run_concurrently():
    h = Harness()
    h.gateway.write_gate = asyncio.Event()
    first = asyncio.create_task(h.submit(MutationKind.CREATE, {"tenPhong": "Room C"}))
    second = asyncio.create_task(h.submit(MutationKind.CREATE, {"tenPhong": "Room D"}))
    await settle()

    h.gateway.write_gate.set()
    outcomes = await asyncio.gather(first, second)

    assert all(o.succeeded for o in outcomes)
    assert sorted(o.record.id for o in outcomes) == [100, 101]


@pytest.mark.asyncio
async def test_resubmitting_the_same_create_is_rejected():
    h = Harness()
    h.gateway.write_gate = asyncio.Event()
    payload = {"tenPhong": "Room C", "giaTien": 10}
    first = asyncio.create_task(h.submit(MutationKind.CREATE, payload))
    await settle()

    with pytest.raises(MutationInProgressError):
        await h.submit(MutationKind.CREATE, {"giaTien": 10, "tenPhong": "Room C"})

    h.gateway.write_gate.set()
    assert (await first).succeeded


@pytest.mark.asyncio
async def test_different_targets_may_run_concurrently():
    h = Harness()

    first, second = await asyncio.gather(
        h.submit(MutationKind.UPDATE, {"giaTien": 1}, target_id=1),
        h.submit(MutationKind.UPDATE, {"giaTien": 2}, target_id=2),
    )

    assert first.succeeded and second.succeeded


@pytest.mark.asyncio
async def test_unsupported_scope_is_rejected_before_submitting():
    h = Harness()

    with pytest.raises(ValueError):
        await h.submit(MutationKind.CREATE, {"tenPhong": "x"}, sub_key="user:1")
    assert h.gateway.calls == []

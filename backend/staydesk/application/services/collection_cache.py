"""Collection cache — one merged snapshot per (resource kind, sub-key).

Reads go through ``get``: a fresh snapshot is served from memory, a stale
one triggers a fetch from the resource gateway which is then merged with the
fallback store. Concurrent readers of the same key share a single in-flight
fetch. Every fetch takes a generation number from a process-wide counter and
a result is only stored when it is newer than what the key already holds, so
the last fetch started always wins.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from staydesk.application.interfaces import (
    FallbackRepository,
    ListQuery,
    ResourceGateway,
)
from staydesk.domain.entities import (
    ALL_SUB_KEY,
    CollectionSnapshot,
    FallbackEntry,
    Record,
    ResourceKind,
    SnapshotSource,
    parse_sub_key,
    scope_field,
)
from staydesk.domain.exceptions import ConfigurationError, GatewayError

logger = logging.getLogger(__name__)

CacheKey = tuple[ResourceKind, str]


def merge(upstream: Iterable[Record], entries: Iterable[FallbackEntry]) -> tuple[Record, ...]:
    """Overlay fallback entries onto upstream records.

    Upstream records keep their relative order; an entry whose id matches one
    of them replaces it in place, any other entry is appended in insertion
    order. Merging the result again with no entries returns it unchanged.
    """
    merged: dict[int, Record] = {}
    for record in upstream:
        merged[record.id] = record
    for entry in entries:
        # dict assignment keeps the original slot for an existing id
        merged[entry.id] = entry.record.with_origin(entry.origin)
    return tuple(merged.values())


def _entries_in_scope(
    kind: ResourceKind, sub_key: str, entries: list[FallbackEntry]
) -> list[FallbackEntry]:
    scoped = parse_sub_key(kind, sub_key)
    if scoped is None:
        return entries
    scope, value = scoped
    field_name = scope_field(kind, scope)
    return [e for e in entries if str(e.record.get(field_name)) == value]


@dataclass
class _KeyState:
    snapshot: CollectionSnapshot | None = None
    # Snapshots (and in-flight fetches) older than this generation are stale.
    min_valid_generation: int = 0
    task: "asyncio.Task[CollectionSnapshot] | None" = None
    task_generation: int = 0


class CollectionCache:
    """Process-wide cache of merged collection snapshots.

    Depends on one ResourceGateway per kind and on the FallbackRepository port.
    ``clock`` must be monotonic; tests inject a fake one to drive staleness.
    """

    def __init__(
        self,
        gateways: Mapping[ResourceKind, ResourceGateway],
        fallback: FallbackRepository,
        *,
        stale_times: Mapping[ResourceKind, float] | None = None,
        page_size: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._gateways = dict(gateways)
        self._fallback = fallback
        self._stale_times = dict(stale_times or {})
        self._page_size = page_size
        self._clock = clock
        self._keys: dict[CacheKey, _KeyState] = {}
        self._generation = 0
        self._max_ids: dict[ResourceKind, int] = {}

    # ── Public API ───────────────────────────────────────────────────

    async def get(self, kind: ResourceKind, sub_key: str = ALL_SUB_KEY) -> CollectionSnapshot:
        """Return a fresh snapshot, fetching (or joining a fetch) when stale.

        When the first fetch of a key fails, the fallback entries in scope are
        served as an unstored LOCAL_ONLY snapshot, or the error propagates when
        there are none. Once a snapshot exists, a failed refresh is logged and
        the last good snapshot served.
        """
        parse_sub_key(kind, sub_key)
        state = self._state(kind, sub_key)

        if self._is_fresh(kind, state):
            return state.snapshot  # type: ignore[return-value]

        if state.task is not None and state.task_generation >= state.min_valid_generation:
            task = state.task
        else:
            task = self._start_fetch(kind, sub_key)

        try:
            return await asyncio.shield(task)
        except GatewayError as exc:
            if state.snapshot is None:
                return await self._local_only(kind, sub_key, exc)
            logger.warning(
                "Refresh of %s/%s failed, serving snapshot from generation %d: %s",
                kind.value,
                sub_key,
                state.snapshot.generation,
                exc,
            )
            return state.snapshot

    def invalidate(self, kind: ResourceKind, sub_key: str | None = None) -> None:
        """Mark one sub-key (or every sub-key of ``kind``) stale."""
        threshold = self._generation + 1
        for (key_kind, key_sub), state in self._keys.items():
            if key_kind is kind and (sub_key is None or key_sub == sub_key):
                state.min_valid_generation = threshold
        logger.debug("Invalidated %s/%s", kind.value, sub_key or "*")

    async def refetch_now(
        self, kind: ResourceKind, sub_key: str = ALL_SUB_KEY
    ) -> CollectionSnapshot:
        """Start a new fetch regardless of staleness and wait for it.

        Never joins an older in-flight fetch, so the result reflects every
        write that completed before the call. Errors propagate; the key stays
        invalidated when the fetch fails.
        """
        parse_sub_key(kind, sub_key)
        self._state(kind, sub_key).min_valid_generation = self._generation + 1
        task = self._start_fetch(kind, sub_key)
        return await asyncio.shield(task)

    def peek(self, kind: ResourceKind, sub_key: str = ALL_SUB_KEY) -> CollectionSnapshot | None:
        """Last stored snapshot of a key, fresh or not, without fetching."""
        state = self._keys.get((kind, sub_key))
        return state.snapshot if state else None

    def find_cached(self, kind: ResourceKind, record_id: int) -> Record | None:
        """Look a record up in any stored snapshot of ``kind``."""
        for (key_kind, _), state in self._keys.items():
            if key_kind is kind and state.snapshot is not None:
                record = state.snapshot.find(record_id)
                if record is not None:
                    return record
        return None

    def max_observed_id(self, kind: ResourceKind) -> int:
        """Highest upstream id seen for ``kind`` during this process."""
        return self._max_ids.get(kind, 0)

    # ── Internals ────────────────────────────────────────────────────

    def _state(self, kind: ResourceKind, sub_key: str) -> _KeyState:
        return self._keys.setdefault((kind, sub_key), _KeyState())

    def _is_fresh(self, kind: ResourceKind, state: _KeyState) -> bool:
        snapshot = state.snapshot
        if snapshot is None or snapshot.generation < state.min_valid_generation:
            return False
        age = self._clock() - snapshot.fetched_at
        return age < self._stale_times.get(kind, 0.0)

    def _gateway(self, kind: ResourceKind) -> ResourceGateway:
        try:
            return self._gateways[kind]
        except KeyError:
            raise ConfigurationError(f"No gateway registered for {kind.value}") from None

    def _start_fetch(self, kind: ResourceKind, sub_key: str) -> "asyncio.Task[CollectionSnapshot]":
        self._generation += 1
        generation = self._generation
        state = self._state(kind, sub_key)
        task = asyncio.ensure_future(self._fetch(kind, sub_key, generation))
        state.task = task
        state.task_generation = generation
        task.add_done_callback(lambda t: self._on_fetch_done(state, t))
        logger.debug("Fetching %s/%s (generation %d)", kind.value, sub_key, generation)
        return task

    @staticmethod
    def _on_fetch_done(state: _KeyState, task: "asyncio.Task[CollectionSnapshot]") -> None:
        if state.task is task:
            state.task = None
        # Mark the exception retrieved; waiters (if any) re-raise it themselves.
        if not task.cancelled():
            task.exception()

    async def _local_only(
        self, kind: ResourceKind, sub_key: str, exc: GatewayError
    ) -> CollectionSnapshot:
        entries = _entries_in_scope(kind, sub_key, await self._fallback.read_all(kind))
        if not entries:
            raise exc
        logger.warning(
            "First fetch of %s/%s failed, serving %d local record(s) only: %s",
            kind.value,
            sub_key,
            len(entries),
            exc,
        )
        return CollectionSnapshot(
            records=merge((), entries),
            fetched_at=self._clock(),
            source=SnapshotSource.LOCAL_ONLY,
            total_count=len(entries),
        )

    async def _fetch(self, kind: ResourceKind, sub_key: str, generation: int) -> CollectionSnapshot:
        page = await self._gateway(kind).list(
            ListQuery(page_size=self._page_size, sub_key=sub_key)
        )
        entries = _entries_in_scope(kind, sub_key, await self._fallback.read_all(kind))

        if page.records:
            highest = max((r.id for r in page.records if not r.is_local), default=0)
            self._max_ids[kind] = max(self._max_ids.get(kind, 0), highest)

        records = merge(page.records, entries)
        appended = len(records) - len(page.records)
        snapshot = CollectionSnapshot(
            records=records,
            fetched_at=self._clock(),
            source=SnapshotSource.MERGED if entries else SnapshotSource.UPSTREAM,
            total_count=max(page.total_count, len(page.records)) + appended,
            generation=generation,
        )

        state = self._state(kind, sub_key)
        current = state.snapshot
        if current is not None and current.generation > generation:
            logger.debug(
                "Dropping %s/%s generation %d, already holding %d",
                kind.value,
                sub_key,
                generation,
                current.generation,
            )
            return current

        state.snapshot = snapshot
        logger.info(
            "Cached %s/%s: %d record(s), %d local (generation %d)",
            kind.value,
            sub_key,
            len(records),
            len(entries),
            generation,
        )
        return snapshot

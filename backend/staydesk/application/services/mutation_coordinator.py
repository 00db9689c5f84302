"""Mutation coordinator — runs create/update/delete intents and reconciles the cache.

State machine per intent::

    IDLE → SUBMITTING → SUCCEEDED
                      → FAILED_RECOVERABLE → SUCCEEDED   (kept in the fallback store)
                      → FAILED_FATAL

A 403 from upstream is the only failure that can be recovered, and this
module is the only place that decides what a 403 means:

* create, while the API is write-restricted for a logged-in caller: the
  record is synthesized with a local id and stored as ``local-create``;
* update of a ``local-edit`` record: the change is applied to the fallback
  store (a ``local-create`` record never reaches upstream at all);
* delete of a ``local-edit`` record: fatal, "not owned by you", and the
  local edit is kept since the upstream record still exists;
* update/delete of an upstream-owned record: fatal, "not owned by you"
  (unless local overrides are enabled, in which case an update is kept as
  ``local-edit``).

Everything else ends in FAILED_FATAL without touching the cache.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PayloadCoercionError

from staydesk.application.interfaces import (
    FallbackRepository,
    ResourceGateway,
    SessionProvider,
)
from staydesk.application.schemas.payloads import coerce_payload
from staydesk.domain.entities import (
    AssetUpload,
    FallbackEntry,
    FallbackOrigin,
    MutationIntent,
    MutationKind,
    MutationOutcome,
    MutationState,
    Record,
    ResourceKind,
    parse_sub_key,
)
from staydesk.domain.exceptions import (
    AssetUploadFailedError,
    ConfigurationError,
    ForbiddenError,
    GatewayError,
    MutationInProgressError,
    ValidationError,
    describe_error,
)
from staydesk.infrastructure.logging.colored_logger import MutationLogger, MutationStage

from .collection_cache import CollectionCache

logger = logging.getLogger(__name__)
mlog = MutationLogger("MutationCoordinator")

_PAST_TENSE = {
    MutationKind.CREATE: "created",
    MutationKind.UPDATE: "updated",
    MutationKind.DELETE: "deleted",
}


class MutationCoordinator:
    """Executes MutationIntents against the gateways with a fallback strategy.

    One instance is shared by the whole process. Intents with the same key
    (resource, kind, target id) cannot run concurrently.
    """

    def __init__(
        self,
        gateways: Mapping[ResourceKind, ResourceGateway],
        fallback: FallbackRepository,
        cache: CollectionCache,
        session_provider: SessionProvider,
        *,
        fallback_enabled: bool = True,
        allow_local_overrides: bool = False,
    ):
        self._gateways = dict(gateways)
        self._fallback = fallback
        self._cache = cache
        self._session_provider = session_provider
        self._fallback_enabled = fallback_enabled
        self._allow_local_overrides = allow_local_overrides
        self._in_flight: set[tuple] = set()

    def state_of(self, intent: MutationIntent) -> MutationState:
        if intent.key in self._in_flight:
            return MutationState.SUBMITTING
        return MutationState.IDLE

    # ── Public API ───────────────────────────────────────────────────

    async def submit(self, intent: MutationIntent) -> MutationOutcome:
        """Run one intent to completion and return its final outcome.

        Raises MutationInProgressError when the same intent is already
        submitting; every GatewayError is folded into the outcome instead.
        """
        parse_sub_key(intent.resource, intent.sub_key)
        if intent.key in self._in_flight:
            raise MutationInProgressError(intent.key)

        self._in_flight.add(intent.key)
        outcome = MutationOutcome(intent=intent, state=MutationState.IDLE)
        self._transition(outcome, MutationState.SUBMITTING)
        try:
            return await self._run(intent, outcome)
        finally:
            self._in_flight.discard(intent.key)

    async def upload_asset(
        self,
        resource: ResourceKind,
        record_id: int,
        asset: AssetUpload,
        sub_key: str = "all",
    ) -> MutationOutcome:
        """Upload an asset for an existing record as a mutation of its own."""
        intent = MutationIntent(
            kind=MutationKind.UPDATE,
            resource=resource,
            target_id=record_id,
            sub_key=sub_key,
            asset=asset,
        )
        parse_sub_key(resource, sub_key)
        if intent.key in self._in_flight:
            raise MutationInProgressError(intent.key)

        self._in_flight.add(intent.key)
        outcome = MutationOutcome(intent=intent, state=MutationState.IDLE)
        self._transition(outcome, MutationState.SUBMITTING)
        try:
            entry = await self._fallback.get(resource, record_id)
            if entry is not None and entry.origin is FallbackOrigin.LOCAL_CREATE:
                return self._fail(
                    outcome,
                    AssetUploadFailedError(
                        resource.value, None, f"record #{record_id} only exists locally"
                    ),
                )
            try:
                with mlog.timed_step(
                    MutationStage.UPLOAD, f"{resource.value} #{record_id}", file=asset.filename
                ):
                    outcome.record = await self._gateway(resource).upload_asset(
                        record_id, asset.filename, asset.content, asset.content_type
                    )
            except GatewayError as exc:
                return self._fail(outcome, exc)

            await self._refresh(intent, outcome)
            outcome.message = f"{resource.value.capitalize()} #{record_id} image uploaded"
            return self._succeed(outcome)
        finally:
            self._in_flight.discard(intent.key)

    # ── State machine ────────────────────────────────────────────────

    async def _run(self, intent: MutationIntent, outcome: MutationOutcome) -> MutationOutcome:
        entry: FallbackEntry | None = None
        if intent.target_id is not None:
            entry = await self._fallback.get(intent.resource, intent.target_id)

        # Upstream never knew this id: the fallback store is the only owner.
        if entry is not None and entry.origin is FallbackOrigin.LOCAL_CREATE:
            return await self._apply_locally(intent, entry, outcome)

        try:
            with mlog.timed_step(MutationStage.SUBMIT, self._describe(intent)):
                record = await self._call_upstream(intent)
        except ForbiddenError as exc:
            return await self._recover_forbidden(intent, entry, exc, outcome)
        except GatewayError as exc:
            return self._fail(outcome, exc)

        if entry is not None and await self._fallback.remove(intent.resource, entry.id):
            mlog.detail(f"superseded local-edit #{entry.id} removed")

        outcome.record = record
        if record is not None and intent.asset is not None:
            await self._upload(intent, record, outcome)

        await self._refresh(intent, outcome)
        outcome.message = self._success_message(intent, outcome.record)
        return self._succeed(outcome)

    async def _call_upstream(self, intent: MutationIntent) -> Record | None:
        gateway = self._gateway(intent.resource)
        if intent.kind is MutationKind.CREATE:
            return await gateway.create(intent.payload)
        if intent.kind is MutationKind.UPDATE:
            return await gateway.update(intent.target_id, intent.payload)
        await gateway.delete(intent.target_id)
        return None

    async def _recover_forbidden(
        self,
        intent: MutationIntent,
        entry: FallbackEntry | None,
        error: ForbiddenError,
        outcome: MutationOutcome,
    ) -> MutationOutcome:
        if intent.kind is MutationKind.CREATE:
            if not await self._is_write_restricted():
                return self._fail(outcome, error)
            self._transition(outcome, MutationState.FAILED_RECOVERABLE)
            try:
                outcome.record = await self._create_locally(intent)
            except GatewayError as exc:
                return self._fail(outcome, exc)
            return await self._finish_locally(intent, outcome)

        if entry is not None and intent.kind is MutationKind.UPDATE:
            # local-edit entry: upstream still refuses, keep the change local.
            self._transition(outcome, MutationState.FAILED_RECOVERABLE)
            return await self._apply_locally(intent, entry, outcome)

        if (
            intent.kind is MutationKind.UPDATE
            and self._allow_local_overrides
            and self._fallback_enabled
        ):
            self._transition(outcome, MutationState.FAILED_RECOVERABLE)
            try:
                outcome.record = await self._override_locally(intent)
            except GatewayError as exc:
                return self._fail(outcome, exc)
            return await self._finish_locally(intent, outcome)

        return self._fail(
            outcome, ForbiddenError(intent.resource.value, error.message, not_owned=True)
        )

    async def _apply_locally(
        self, intent: MutationIntent, entry: FallbackEntry, outcome: MutationOutcome
    ) -> MutationOutcome:
        """Apply an update or delete to a record held by the fallback store."""
        if intent.kind is MutationKind.DELETE:
            await self._fallback.remove(intent.resource, entry.id)
            mlog.step_start(MutationStage.FALLBACK, f"removed local {intent.resource.value} #{entry.id}")
            outcome.record = None
        else:
            try:
                changes = self._coerce_local(intent.resource, intent.payload, partial=True)
            except GatewayError as exc:
                return self._fail(outcome, exc)
            stored = await self._fallback.upsert(
                intent.resource, entry.record.merged_with(changes), entry.origin
            )
            mlog.step_start(
                MutationStage.FALLBACK,
                f"stored {intent.resource.value} #{entry.id}",
                origin=entry.origin.value,
            )
            outcome.record = stored.record
        return await self._finish_locally(intent, outcome)

    async def _finish_locally(
        self, intent: MutationIntent, outcome: MutationOutcome
    ) -> MutationOutcome:
        outcome.via_fallback = True
        if intent.asset is not None and outcome.record is not None:
            mlog.step_warning(
                MutationStage.UPLOAD, f"skipped for local {intent.resource.value} #{outcome.record.id}"
            )
            outcome.warnings.append(
                "The image was not uploaded because this record only exists locally."
            )
        await self._refresh(intent, outcome)
        outcome.message = self._success_message(intent, outcome.record) + " (saved locally)"
        return self._succeed(outcome)

    async def _create_locally(self, intent: MutationIntent) -> Record:
        data = self._coerce_local(intent.resource, intent.payload, partial=False)
        local_id = await self._fallback.assign_local_id(
            intent.resource, above=self._cache.max_observed_id(intent.resource)
        )
        record = Record.from_wire({**data, "id": local_id})
        entry = await self._fallback.upsert(intent.resource, record, FallbackOrigin.LOCAL_CREATE)
        mlog.step_start(
            MutationStage.FALLBACK,
            f"upstream is write-restricted, kept {intent.resource.value} #{local_id} locally",
        )
        return entry.record

    async def _override_locally(self, intent: MutationIntent) -> Record:
        base = self._cache.find_cached(intent.resource, intent.target_id)
        if base is None:
            base = await self._gateway(intent.resource).get(intent.target_id)
        changes = self._coerce_local(intent.resource, intent.payload, partial=True)
        entry = await self._fallback.upsert(
            intent.resource, base.merged_with(changes), FallbackOrigin.LOCAL_EDIT
        )
        mlog.step_start(
            MutationStage.FALLBACK,
            f"kept local override of {intent.resource.value} #{intent.target_id}",
        )
        return entry.record

    # ── Side steps ───────────────────────────────────────────────────

    async def _upload(self, intent: MutationIntent, record: Record, outcome: MutationOutcome) -> None:
        asset = intent.asset
        try:
            with mlog.timed_step(
                MutationStage.UPLOAD, f"{intent.resource.value} #{record.id}", file=asset.filename
            ):
                outcome.record = await self._gateway(intent.resource).upload_asset(
                    record.id, asset.filename, asset.content, asset.content_type
                )
        except GatewayError as exc:
            outcome.warnings.append(describe_error(exc))

    async def _refresh(self, intent: MutationIntent, outcome: MutationOutcome) -> None:
        """Invalidate every sub-key of the kind and refetch the intent's own."""
        self._cache.invalidate(intent.resource)
        try:
            with mlog.timed_step(MutationStage.REFRESH, f"{intent.resource.value}/{intent.sub_key}"):
                await self._cache.refetch_now(intent.resource, intent.sub_key)
        except GatewayError as exc:
            logger.warning(
                "%s/%s left invalidated after failed refresh: %s",
                intent.resource.value,
                intent.sub_key,
                exc,
            )
            outcome.warnings.append("The change was saved but the list could not be refreshed.")

    # ── Helpers ──────────────────────────────────────────────────────

    async def _is_write_restricted(self) -> bool:
        """A logged-in caller refused a create: treat the API as read-only for them."""
        if not self._fallback_enabled:
            return False
        return await self._session_provider.current_session() is not None

    def _gateway(self, resource: ResourceKind) -> ResourceGateway:
        try:
            return self._gateways[resource]
        except KeyError:
            raise ConfigurationError(f"No gateway registered for {resource.value}") from None

    @staticmethod
    def _coerce_local(
        resource: ResourceKind, payload: dict[str, Any], *, partial: bool
    ) -> dict[str, Any]:
        try:
            data = coerce_payload(resource, payload, partial=partial)
        except PayloadCoercionError as exc:
            raise ValidationError(resource.value, str(exc), 422) from exc
        data.pop("id", None)
        return data

    @staticmethod
    def _transition(outcome: MutationOutcome, state: MutationState) -> None:
        outcome.state = state
        outcome.transitions.append(state)

    def _succeed(self, outcome: MutationOutcome) -> MutationOutcome:
        self._transition(outcome, MutationState.SUCCEEDED)
        mlog.step_complete(MutationStage.COMPLETE, outcome.message, warnings=len(outcome.warnings))
        return outcome

    def _fail(self, outcome: MutationOutcome, error: GatewayError) -> MutationOutcome:
        self._transition(outcome, MutationState.FAILED_FATAL)
        outcome.error = error
        outcome.message = describe_error(error)
        mlog.step_error(MutationStage.ERROR, self._describe(outcome.intent), error=error)
        return outcome

    @staticmethod
    def _describe(intent: MutationIntent) -> str:
        target = f" #{intent.target_id}" if intent.target_id is not None else ""
        return f"{intent.kind.value} {intent.resource.value}{target}"

    @staticmethod
    def _success_message(intent: MutationIntent, record: Record | None) -> str:
        record_id = record.id if record is not None else intent.target_id
        suffix = f" #{record_id}" if record_id is not None else ""
        return f"{intent.resource.value.capitalize()}{suffix} {_PAST_TENSE[intent.kind]}"

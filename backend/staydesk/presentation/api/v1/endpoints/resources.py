"""Resource list, detail and mutation endpoints (users, rooms, locations, bookings)."""

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from staydesk.application.schemas import (
    MutationResponse,
    PageWindowEntry,
    RecordPageResponse,
    RecordResponse,
    RecordWrite,
)
from staydesk.application.services import (
    CollectionCache,
    ListViewController,
    MutationCoordinator,
    RecordLookup,
    enrich_bookings,
    filters_from_pairs,
)
from staydesk.domain.entities import (
    ALL_SUB_KEY,
    AssetUpload,
    MutationIntent,
    MutationKind,
    MutationOutcome,
    QueryState,
    Record,
    ResourceKind,
)
from staydesk.domain.exceptions import GatewayError, MutationInProgressError
from staydesk.infrastructure.dependencies import (
    get_collection_cache,
    get_mutation_coordinator,
    get_record_lookup,
)
from staydesk.presentation.api.errors import http_error

router = APIRouter(prefix="/resources", tags=["Resources"])


def _record_response(record: Record) -> RecordResponse:
    return RecordResponse(
        id=record.id,
        data=record.data,
        origin=record.origin.value if record.origin else None,
        is_local=record.is_local,
    )


def _mutation_response(outcome: MutationOutcome) -> MutationResponse:
    """Successful outcomes become a body; failed ones are raised as HTTP errors."""
    if not outcome.succeeded:
        if outcome.error is None:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=outcome.message
            )
        raise http_error(outcome.error)
    return MutationResponse(
        state=outcome.state.value,
        message=outcome.message,
        record=_record_response(outcome.record) if outcome.record else None,
        via_fallback=outcome.via_fallback,
        warnings=outcome.warnings,
    )


async def _submit(coordinator: MutationCoordinator, intent: MutationIntent) -> MutationResponse:
    try:
        outcome = await coordinator.submit(intent)
    except MutationInProgressError as e:
        raise http_error(e) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _mutation_response(outcome)


@router.get("/{kind}", response_model=RecordPageResponse)
async def list_records(
    kind: ResourceKind,
    q: str = Query("", description="Case-insensitive search over the screen's search fields"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=500),
    scope: str = Query(ALL_SUB_KEY, description="'all' or '<scope>:<value>', e.g. location:3"),
    filters: list[str] = Query([], alias="filter", description="Equality filter, field:value"),
    minimums: list[str] = Query([], alias="min", description="Lower bound, field:value"),
    maximums: list[str] = Query([], alias="max", description="Upper bound, field:value"),
    cache: CollectionCache = Depends(get_collection_cache),
) -> RecordPageResponse:
    """Render one page of a resource list from the merged collection snapshot."""
    try:
        query = QueryState(
            search_term=q,
            filters=dict(filters_from_pairs(filters)),
            minimums=dict(filters_from_pairs(minimums)),
            maximums=dict(filters_from_pairs(maximums)),
            page_index=page,
            page_size=page_size,
        )
        controller = ListViewController(cache, kind, sub_key=scope, query=query)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        snapshot = await cache.get(kind, scope)
        records = snapshot.records
        if kind is ResourceKind.BOOKING:
            records = await enrich_bookings(records, cache)
    except GatewayError as e:
        raise http_error(e) from e

    view = controller.view(records, snapshot.total_count)
    return RecordPageResponse(
        resource=kind.value,
        scope=scope,
        rows=[_record_response(r) for r in view.page.rows],
        page_index=view.page.page_index,
        page_size=view.page.page_size,
        total_pages=view.page.total_pages,
        filtered_count=view.page.filtered_count,
        total_count=view.total_count,
        first_row=view.page.first_row_number,
        last_row=view.page.last_row_number,
        window=[
            PageWindowEntry(type="page", value=item)
            if isinstance(item, int)
            else PageWindowEntry(type="ellipsis")
            for item in view.window
        ],
        source=snapshot.source.value,
    )


@router.get("/{kind}/{record_id}", response_model=RecordResponse)
async def get_record(
    kind: ResourceKind,
    record_id: int,
    lookup: RecordLookup = Depends(get_record_lookup),
) -> RecordResponse:
    try:
        record = await lookup.get(kind, record_id)
    except GatewayError as e:
        raise http_error(e) from e
    return _record_response(record)


@router.post("/{kind}", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def create_record(
    kind: ResourceKind,
    body: RecordWrite,
    coordinator: MutationCoordinator = Depends(get_mutation_coordinator),
) -> MutationResponse:
    """Create a record upstream, or locally when upstream is write-restricted."""
    intent = MutationIntent(
        kind=MutationKind.CREATE, resource=kind, payload=body.data, sub_key=body.scope
    )
    return await _submit(coordinator, intent)


@router.put("/{kind}/{record_id}", response_model=MutationResponse)
async def update_record(
    kind: ResourceKind,
    record_id: int,
    body: RecordWrite,
    coordinator: MutationCoordinator = Depends(get_mutation_coordinator),
) -> MutationResponse:
    intent = MutationIntent(
        kind=MutationKind.UPDATE,
        resource=kind,
        payload=body.data,
        target_id=record_id,
        sub_key=body.scope,
    )
    return await _submit(coordinator, intent)


@router.delete("/{kind}/{record_id}", response_model=MutationResponse)
async def delete_record(
    kind: ResourceKind,
    record_id: int,
    scope: str = Query(ALL_SUB_KEY),
    coordinator: MutationCoordinator = Depends(get_mutation_coordinator),
) -> MutationResponse:
    intent = MutationIntent(
        kind=MutationKind.DELETE, resource=kind, target_id=record_id, sub_key=scope
    )
    return await _submit(coordinator, intent)


@router.post("/{kind}/{record_id}/asset", response_model=MutationResponse)
async def upload_asset(
    kind: ResourceKind,
    record_id: int,
    file: UploadFile = File(...),
    scope: str = Query(ALL_SUB_KEY),
    coordinator: MutationCoordinator = Depends(get_mutation_coordinator),
) -> MutationResponse:
    """Upload an image (room, location) or avatar (user) for an existing record."""
    content = await file.read()
    asset = AssetUpload(
        filename=file.filename or "upload",
        content=content,
        content_type=file.content_type or "application/octet-stream",
    )
    try:
        outcome = await coordinator.upload_asset(kind, record_id, asset, scope)
    except MutationInProgressError as e:
        raise http_error(e) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _mutation_response(outcome)

"""FastAPI dependency injection — wires infrastructure to the application layer.

The collection cache, the fallback store and the mutation coordinator are
process-wide singletons: every request must see the same snapshots and the
same in-flight fetches. They are built lazily and memoized with lru_cache.
"""

from functools import lru_cache

from staydesk.application.interfaces import ResourceGateway
from staydesk.application.services import (
    AuthService,
    CollectionCache,
    DashboardService,
    MutationCoordinator,
    RecordLookup,
)
from staydesk.config import get_settings
from staydesk.domain.entities import ResourceKind
from staydesk.infrastructure.database.repositories import (
    SQLAlchemyFallbackRepository,
    SQLAlchemySessionStore,
)
from staydesk.infrastructure.database.session import async_session_factory
from staydesk.infrastructure.gateway import RestAuthClient, RestResourceGateway


@lru_cache
def get_session_store() -> SQLAlchemySessionStore:
    """Persisted login state, shared by gateways, coordinator and auth."""
    return SQLAlchemySessionStore(async_session_factory)


@lru_cache
def get_fallback_repository() -> SQLAlchemyFallbackRepository:
    settings = get_settings()
    return SQLAlchemyFallbackRepository(
        async_session_factory, local_id_floor=settings.local_id_floor
    )


@lru_cache
def get_gateways() -> dict[ResourceKind, ResourceGateway]:
    """One REST gateway per resource kind, all attaching the session token."""
    settings = get_settings()
    session_store = get_session_store()
    return {
        kind: RestResourceGateway(
            kind,
            settings.api_base_url,
            service_token=settings.service_token,
            service_token_header=settings.service_token_header,
            access_token_header=settings.access_token_header,
            session_provider=session_store,
            timeout=settings.http_timeout,
        )
        for kind in ResourceKind
    }


@lru_cache
def get_collection_cache() -> CollectionCache:
    settings = get_settings()
    return CollectionCache(
        get_gateways(),
        get_fallback_repository(),
        stale_times={kind: settings.stale_time_for(kind) for kind in ResourceKind},
        page_size=settings.list_page_size,
    )


@lru_cache
def get_mutation_coordinator() -> MutationCoordinator:
    settings = get_settings()
    return MutationCoordinator(
        get_gateways(),
        get_fallback_repository(),
        get_collection_cache(),
        get_session_store(),
        fallback_enabled=settings.fallback_enabled,
        allow_local_overrides=settings.allow_local_overrides,
    )


@lru_cache
def get_auth_service() -> AuthService:
    settings = get_settings()
    client = RestAuthClient(
        settings.api_base_url,
        service_token=settings.service_token,
        service_token_header=settings.service_token_header,
        access_token_header=settings.access_token_header,
        timeout=settings.http_timeout,
    )
    return AuthService(client, get_session_store())


def get_record_lookup() -> RecordLookup:
    return RecordLookup(get_gateways(), get_fallback_repository())


def get_dashboard_service() -> DashboardService:
    return DashboardService(get_collection_cache())

from .collection_cache import CollectionCache, merge
from .list_view import (
    SEARCH_FIELDS,
    ListViewController,
    apply_filter,
    filters_from_pairs,
    page_window,
    paginate,
)
from .mutation_coordinator import MutationCoordinator
from .record_lookup import RecordLookup
from .booking_enrichment import enrich_bookings
from .dashboard_service import DashboardService, DashboardSummary
from .auth_service import AuthService, session_from_sign_in

__all__ = [
    "CollectionCache",
    "merge",
    "SEARCH_FIELDS",
    "ListViewController",
    "apply_filter",
    "filters_from_pairs",
    "page_window",
    "paginate",
    "MutationCoordinator",
    "RecordLookup",
    "enrich_bookings",
    "DashboardService",
    "DashboardSummary",
    "AuthService",
    "session_from_sign_in",
]

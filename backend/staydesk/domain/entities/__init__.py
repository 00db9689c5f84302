from .resource_kind import ALL_SUB_KEY, SCOPE_FIELDS, ResourceKind, parse_sub_key, scope_field
from .record import FallbackOrigin, Record, RecordPage
from .fallback_entry import FallbackEntry
from .snapshot import CollectionSnapshot, SnapshotSource
from .query import ELLIPSIS, PageSlice, PageView, PageWindowItem, QueryState
from .mutation import (
    AssetUpload,
    MutationIntent,
    MutationKind,
    MutationOutcome,
    MutationState,
)
from .session import UserSession

__all__ = [
    "ALL_SUB_KEY",
    "SCOPE_FIELDS",
    "ResourceKind",
    "parse_sub_key",
    "scope_field",
    "FallbackOrigin",
    "Record",
    "RecordPage",
    "FallbackEntry",
    "CollectionSnapshot",
    "SnapshotSource",
    "ELLIPSIS",
    "PageSlice",
    "PageView",
    "PageWindowItem",
    "QueryState",
    "AssetUpload",
    "MutationIntent",
    "MutationKind",
    "MutationOutcome",
    "MutationState",
    "UserSession",
]

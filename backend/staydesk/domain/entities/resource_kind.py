"""Resource kinds managed by the console, and their list scopes."""

from enum import Enum

ALL_SUB_KEY = "all"


class ResourceKind(str, Enum):
    """Category of record exposed by the upstream booking API."""

    USER = "user"
    ROOM = "room"
    LOCATION = "location"
    BOOKING = "booking"


# scope name -> record field that scoped lists filter on
SCOPE_FIELDS: dict[ResourceKind, dict[str, str]] = {
    ResourceKind.USER: {},
    ResourceKind.ROOM: {"location": "maViTri"},
    ResourceKind.LOCATION: {},
    ResourceKind.BOOKING: {"user": "maNguoiDung", "room": "maPhong"},
}


def parse_sub_key(kind: ResourceKind, sub_key: str) -> tuple[str, str] | None:
    """Split a scoped sub-key such as ``location:3`` into ``(scope, value)``.

    Returns None for the unscoped ``all`` key. Raises ValueError for a scope
    the resource kind does not support.
    """
    if sub_key == ALL_SUB_KEY:
        return None
    scope, sep, value = sub_key.partition(":")
    if not sep or not value or scope not in SCOPE_FIELDS[kind]:
        raise ValueError(f"Unsupported sub-key '{sub_key}' for {kind.value}")
    return scope, value


def scope_field(kind: ResourceKind, scope: str) -> str:
    return SCOPE_FIELDS[kind][scope]

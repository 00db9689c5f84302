"""Domain entity — a single upstream (or locally held) record."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class FallbackOrigin(str, Enum):
    """Why a record lives in the local fallback store."""

    LOCAL_CREATE = "local-create"
    LOCAL_EDIT = "local-edit"


@dataclass(frozen=True)
class Record:
    """An opaque domain record with a mandatory integer id.

    ``data`` keeps the upstream wire fields verbatim (``tenPhong``, ``maViTri``
    ...) and always contains ``id``. ``origin`` is None for records served by
    the upstream API and carries the fallback origin for local records; UI
    indicators for "local-only" rows read this tag.
    """

    id: int
    data: dict[str, Any] = field(default_factory=dict)
    origin: FallbackOrigin | None = None

    @classmethod
    def from_wire(
        cls, payload: dict[str, Any], origin: FallbackOrigin | None = None
    ) -> "Record":
        if "id" not in payload:
            raise ValueError("Record payload has no 'id' field")
        record_id = int(payload["id"])
        return cls(id=record_id, data={**payload, "id": record_id}, origin=origin)

    def get(self, field_name: str, default: Any = None) -> Any:
        return self.data.get(field_name, default)

    def to_wire(self) -> dict[str, Any]:
        return dict(self.data)

    def with_origin(self, origin: FallbackOrigin | None) -> "Record":
        return replace(self, origin=origin)

    def merged_with(self, changes: dict[str, Any]) -> "Record":
        """Return a copy with ``changes`` applied; the id never changes."""
        return replace(self, data={**self.data, **changes, "id": self.id})

    @property
    def is_local(self) -> bool:
        return self.origin is not None


@dataclass(frozen=True)
class RecordPage:
    """Canonical shape of a normalized upstream collection response."""

    records: tuple[Record, ...] = ()
    total_count: int = 0

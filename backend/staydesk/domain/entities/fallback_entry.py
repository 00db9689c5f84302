"""Domain entity — a record persisted locally because upstream refused the write."""

from dataclasses import dataclass
from typing import Any

from .record import FallbackOrigin, Record
from .resource_kind import ResourceKind


@dataclass(frozen=True)
class FallbackEntry:
    record: Record
    origin: FallbackOrigin
    resource: ResourceKind

    @property
    def id(self) -> int:
        return self.record.id

    def to_json(self) -> dict[str, Any]:
        return {
            "record": self.record.to_wire(),
            "origin": self.origin.value,
            "resource": self.resource.value,
        }

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> "FallbackEntry":
        origin = FallbackOrigin(payload["origin"])
        return cls(
            record=Record.from_wire(payload["record"], origin=origin),
            origin=origin,
            resource=ResourceKind(payload["resource"]),
        )

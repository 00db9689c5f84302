"""Domain entities for write operations and their outcomes."""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .record import Record
from .resource_kind import ALL_SUB_KEY, ResourceKind


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MutationState(str, Enum):
    """States of the mutation state machine."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED_RECOVERABLE = "failed_recoverable"
    FAILED_FATAL = "failed_fatal"


@dataclass(frozen=True)
class AssetUpload:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class MutationIntent:
    """A transient request to create, update or delete one record."""

    kind: MutationKind
    resource: ResourceKind
    payload: dict[str, Any] = field(default_factory=dict)
    target_id: int | None = None
    sub_key: str = ALL_SUB_KEY
    asset: AssetUpload | None = None

    def __post_init__(self) -> None:
        if self.kind is not MutationKind.CREATE and self.target_id is None:
            raise ValueError(f"{self.kind.value} intent requires a target_id")

    @property
    def key(self) -> tuple[str, str, int | str]:
        """Identity used to reject a double submit of the same intent.

        Updates and deletes are identified by their target; creates have no
        target yet, so they are identified by a digest of their payload.
        """
        if self.target_id is not None:
            return (self.resource.value, self.kind.value, self.target_id)
        return (self.resource.value, self.kind.value, self.payload_digest)

    @property
    def payload_digest(self) -> str:
        canonical = json.dumps(self.payload, sort_keys=True, default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


@dataclass
class MutationOutcome:
    """Final result of running a MutationIntent."""

    intent: MutationIntent
    state: MutationState
    record: Record | None = None
    message: str = ""
    error: Exception | None = None
    via_fallback: bool = False
    warnings: list[str] = field(default_factory=list)
    transitions: list[MutationState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is MutationState.SUCCEEDED

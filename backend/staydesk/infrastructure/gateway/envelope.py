"""Response envelope parser for the upstream booking API.

The API wraps payloads as ``{statusCode, content}`` but is inconsistent about
what ``content`` holds. Each body is classified into one tagged shape first,
then converted to the canonical ``RecordPage`` / ``Record``:

    BARE_ARRAY      [ {...}, ... ]
    CONTENT_ARRAY   {"content": [ {...}, ... ]}
    CONTENT_PAGED   {"content": {"data": [...], "totalRow": n}}
    BARE_PAGED      {"data": [...], "totalRow": n}
    CONTENT_OBJECT  {"content": {...}}
    CONTENT_SCALAR  {"content": "message" | null}
    BARE_OBJECT     {...}
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from staydesk.domain.entities import Record, RecordPage
from staydesk.domain.exceptions import UnexpectedResponseError

logger = logging.getLogger(__name__)


class EnvelopeShape(str, Enum):
    BARE_ARRAY = "bare_array"
    CONTENT_ARRAY = "content_array"
    CONTENT_PAGED = "content_paged"
    BARE_PAGED = "bare_paged"
    CONTENT_OBJECT = "content_object"
    CONTENT_SCALAR = "content_scalar"
    BARE_OBJECT = "bare_object"


@dataclass(frozen=True)
class Envelope:
    shape: EnvelopeShape
    status_code: int | None = None
    items: list[Any] = field(default_factory=list)
    item: dict[str, Any] | None = None
    total_count: int | None = None
    message: str | None = None

    @property
    def is_collection(self) -> bool:
        return self.shape in (
            EnvelopeShape.BARE_ARRAY,
            EnvelopeShape.CONTENT_ARRAY,
            EnvelopeShape.CONTENT_PAGED,
            EnvelopeShape.BARE_PAGED,
        )

    @property
    def is_error_status(self) -> bool:
        return self.status_code is not None and not 200 <= self.status_code < 300


def _is_paged(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("data"), list)


def _status_of(body: dict[str, Any]) -> int | None:
    status = body.get("statusCode")
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def parse_envelope(body: Any, resource: str = "upstream") -> Envelope:
    """Classify a decoded JSON body into one envelope shape."""
    if isinstance(body, list):
        return Envelope(EnvelopeShape.BARE_ARRAY, items=body)

    if not isinstance(body, dict):
        raise UnexpectedResponseError(
            resource, None, f"unsupported body type {type(body).__name__}"
        )

    status = _status_of(body)
    message = body.get("message") if isinstance(body.get("message"), str) else None

    if "content" in body:
        content = body["content"]
        if isinstance(content, list):
            return Envelope(EnvelopeShape.CONTENT_ARRAY, status, items=content, message=message)
        if _is_paged(content):
            return Envelope(
                EnvelopeShape.CONTENT_PAGED,
                status,
                items=content["data"],
                total_count=_total_of(content),
                message=message,
            )
        if isinstance(content, dict):
            return Envelope(EnvelopeShape.CONTENT_OBJECT, status, item=content, message=message)
        return Envelope(
            EnvelopeShape.CONTENT_SCALAR,
            status,
            message=str(content) if content is not None else message,
        )

    if _is_paged(body):
        return Envelope(
            EnvelopeShape.BARE_PAGED, status, items=body["data"], total_count=_total_of(body)
        )

    return Envelope(EnvelopeShape.BARE_OBJECT, status, item=body, message=message)


def _total_of(paged: dict[str, Any]) -> int | None:
    total = paged.get("totalRow")
    try:
        return int(total) if total is not None else None
    except (TypeError, ValueError):
        return None


def to_record_page(envelope: Envelope, resource: str = "upstream") -> RecordPage:
    """Convert a collection envelope to ``RecordPage``.

    Items without a usable integer id are skipped and logged.
    """
    if not envelope.is_collection:
        raise UnexpectedResponseError(
            resource, envelope.status_code, f"expected a collection, got {envelope.shape.value}"
        )

    records: list[Record] = []
    for raw in envelope.items:
        if not isinstance(raw, dict):
            logger.warning("Skipping non-object item in %s collection: %r", resource, raw)
            continue
        try:
            records.append(Record.from_wire(raw))
        except (TypeError, ValueError):
            logger.warning("Skipping %s item without a valid id: %r", resource, raw)

    total = envelope.total_count if envelope.total_count is not None else len(records)
    return RecordPage(records=tuple(records), total_count=total)


def to_record(envelope: Envelope, resource: str = "upstream") -> Record | None:
    """Convert a single-object envelope to a Record, or None if it carries none."""
    if envelope.item is None:
        return None
    try:
        return Record.from_wire(envelope.item)
    except (TypeError, ValueError):
        logger.debug("%s response object has no id: %r", resource, envelope.item)
        return None


def error_message(body: Any, fallback: str) -> str:
    """Best-effort human message from an error response body."""
    if isinstance(body, dict):
        content = body.get("content")
        if isinstance(content, str) and content:
            return content
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    if isinstance(body, str) and body:
        return body
    return fallback

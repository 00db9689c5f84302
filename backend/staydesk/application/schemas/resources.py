"""Pydantic DTOs (Data Transfer Objects) for the resource list and mutation endpoints."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class RecordResponse(BaseModel):
    """One row as returned to the UI."""

    id: int
    data: dict[str, Any]
    origin: Literal["local-create", "local-edit"] | None = None
    is_local: bool = False


class PageWindowEntry(BaseModel):
    type: Literal["page", "ellipsis"]
    value: int | None = None


class RecordPageResponse(BaseModel):
    """Schema of a rendered list page."""

    resource: str
    scope: str
    rows: list[RecordResponse]
    page_index: int
    page_size: int
    total_pages: int
    filtered_count: int
    total_count: int
    first_row: int
    last_row: int
    window: list[PageWindowEntry]
    source: Literal["upstream", "merged", "local"]


class RecordWrite(BaseModel):
    """Body of a create/update call — upstream wire fields, loosely typed."""

    data: dict[str, Any] = Field(
        ..., examples=[{"tenPhong": "Sea View Studio", "khach": "2", "wifi": "true"}],
    )
    scope: str = "all"


class MutationResponse(BaseModel):
    state: str
    message: str
    record: RecordResponse | None = None
    via_fallback: bool = False
    warnings: list[str] = Field(default_factory=list)


class DashboardResponse(BaseModel):
    total_users: int
    admin_users: int
    regular_users: int
    total_rooms: int
    total_locations: int
    total_bookings: int
    local_records: dict[str, int]

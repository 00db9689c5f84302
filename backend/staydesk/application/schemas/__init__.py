from .payloads import (
    PAYLOAD_MODELS,
    BookingPayload,
    LocationPayload,
    RoomPayload,
    UserPayload,
    coerce_payload,
)
from .resources import (
    DashboardResponse,
    MutationResponse,
    PageWindowEntry,
    RecordPageResponse,
    RecordResponse,
    RecordWrite,
)
from .auth import LoginRequest, RegisterRequest, SessionResponse

__all__ = [
    "PAYLOAD_MODELS",
    "BookingPayload",
    "LocationPayload",
    "RoomPayload",
    "UserPayload",
    "coerce_payload",
    "DashboardResponse",
    "MutationResponse",
    "PageWindowEntry",
    "RecordPageResponse",
    "RecordResponse",
    "RecordWrite",
    "LoginRequest",
    "RegisterRequest",
    "SessionResponse",
]

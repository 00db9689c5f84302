"""Pydantic models describing the exact payload shape the upstream API accepts.

Upstream validation is strict about field types, so every create/update body
goes through ``coerce_payload`` first: numbers are forced to numbers,
booleans to booleans, unknown keys dropped and missing optional fields
defaulted. Field names are snake_case in Python and aliased to the upstream
wire keys.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from staydesk.domain.entities import ResourceKind


class _UpstreamPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class UserPayload(_UpstreamPayload):
    name: str = ""
    email: str = ""
    password: str = ""
    phone: str = ""
    birthday: str = ""
    gender: bool = True
    role: str = "USER"


class RoomPayload(_UpstreamPayload):
    name: str = Field("", alias="tenPhong")
    guests: int = Field(0, alias="khach")
    bedrooms: int = Field(0, alias="phongNgu")
    beds: int = Field(0, alias="giuong")
    bathrooms: int = Field(0, alias="phongTam")
    description: str = Field("", alias="moTa")
    price: int = Field(0, alias="giaTien")
    washing_machine: bool = Field(False, alias="mayGiat")
    iron: bool = Field(False, alias="banLa")
    television: bool = Field(False, alias="tivi")
    air_conditioning: bool = Field(False, alias="dieuHoa")
    wifi: bool = Field(False, alias="wifi")
    kitchen: bool = Field(False, alias="bep")
    parking: bool = Field(False, alias="doXe")
    pool: bool = Field(False, alias="hoBoi")
    ironing_board: bool = Field(False, alias="banUi")
    location_id: int = Field(0, alias="maViTri")
    image: str = Field("", alias="hinhAnh")


class LocationPayload(_UpstreamPayload):
    name: str = Field("", alias="tenViTri")
    province: str = Field("", alias="tinhThanh")
    country: str = Field("", alias="quocGia")
    image: str = Field("", alias="hinhAnh")


class BookingPayload(_UpstreamPayload):
    room_id: int = Field(0, alias="maPhong")
    check_in: str = Field("", alias="ngayDen")
    check_out: str = Field("", alias="ngayDi")
    guest_count: int = Field(1, alias="soLuongKhach")
    user_id: int = Field(0, alias="maNguoiDung")


PAYLOAD_MODELS: dict[ResourceKind, type[_UpstreamPayload]] = {
    ResourceKind.USER: UserPayload,
    ResourceKind.ROOM: RoomPayload,
    ResourceKind.LOCATION: LocationPayload,
    ResourceKind.BOOKING: BookingPayload,
}


def coerce_payload(
    resource: ResourceKind, payload: dict[str, Any], *, partial: bool = False
) -> dict[str, Any]:
    """Coerce a loosely-typed payload to the upstream wire shape.

    With ``partial=True`` only the fields present in ``payload`` are returned
    (for updates); otherwise every field is emitted with its default.

    Raises:
        pydantic.ValidationError: a value cannot be coerced (e.g. "abc" for
            a numeric field).
    """
    model = PAYLOAD_MODELS[resource].model_validate(payload)
    return model.model_dump(by_alias=True, exclude_unset=partial)

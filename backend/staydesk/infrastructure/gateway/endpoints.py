"""Upstream endpoint table — ordered candidate paths per logical operation.

The upstream API's exact paths are not reliably known in advance, so every
logical call lists its candidates in the order they are tried. Templates use
``{id}`` for record ids and ``{value}`` for scope values.
"""

from dataclasses import dataclass, field

from staydesk.domain.entities import ResourceKind


@dataclass(frozen=True)
class ResourceEndpoints:
    list_paths: tuple[str, ...]
    detail_paths: tuple[str, ...]
    create_paths: tuple[str, ...]
    update_path: str
    delete_path: str
    keyword_param: str = "keywords"
    # When set, DELETE sends the id as this query parameter instead of in the path.
    delete_id_param: str | None = None
    upload_paths: tuple[str, ...] = ()
    upload_field: str = "formFile"
    create_with_zero_id: bool = False
    scope_paths: dict[str, str] = field(default_factory=dict)


DEFAULT_ENDPOINTS: dict[ResourceKind, ResourceEndpoints] = {
    ResourceKind.USER: ResourceEndpoints(
        list_paths=("/users/phan-trang-tim-kiem", "/users", "/nguoi-dung"),
        detail_paths=("/users/{id}",),
        create_paths=("/users",),
        update_path="/users/{id}",
        delete_path="/users",
        keyword_param="keyword",
        delete_id_param="id",
        upload_paths=("/users/upload-avatar",),
    ),
    ResourceKind.ROOM: ResourceEndpoints(
        list_paths=("/phong-thue/phan-trang-tim-kiem", "/phong-thue", "/rooms"),
        detail_paths=("/phong-thue/{id}", "/rooms/{id}"),
        create_paths=(
            "/phong-thue",
            "/phong-thue/them-phong-thue",
            "/api/phong-thue",
            "/rooms",
        ),
        update_path="/phong-thue/{id}",
        delete_path="/phong-thue/{id}",
        upload_paths=(
            "/phong-thue/upload-hinh-phong?maPhong={id}",
            "/rooms/{id}/upload-image",
        ),
        create_with_zero_id=True,
        scope_paths={"location": "/phong-thue/lay-phong-theo-vi-tri?maViTri={value}"},
    ),
    ResourceKind.LOCATION: ResourceEndpoints(
        list_paths=("/vi-tri/phan-trang-tim-kiem", "/vi-tri"),
        detail_paths=("/vi-tri/{id}",),
        create_paths=("/vi-tri",),
        update_path="/vi-tri/{id}",
        delete_path="/vi-tri/{id}",
        upload_paths=("/vi-tri/upload-hinh-vitri?maViTri={id}",),
    ),
    ResourceKind.BOOKING: ResourceEndpoints(
        list_paths=("/dat-phong",),
        detail_paths=("/dat-phong/{id}",),
        create_paths=("/dat-phong",),
        update_path="/dat-phong/{id}",
        delete_path="/dat-phong/{id}",
        scope_paths={"user": "/dat-phong/lay-theo-nguoi-dung/{value}"},
    ),
}

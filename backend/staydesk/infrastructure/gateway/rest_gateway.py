"""REST resource gateway — implements the ResourceGateway port over httpx.

Talks to the upstream booking API for one resource kind. Every logical call
walks an ordered list of candidate endpoints (see ``endpoints.py``) and
short-circuits on the first success. Responses are normalized by the
envelope parser; failures are raised as typed ``GatewayError`` subclasses.
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError as PayloadCoercionError

from staydesk.application.interfaces import ListQuery, ResourceGateway, SessionProvider
from staydesk.application.schemas.payloads import coerce_payload
from staydesk.domain.entities import (
    Record,
    RecordPage,
    ResourceKind,
    parse_sub_key,
    scope_field,
)
from staydesk.domain.exceptions import (
    AssetUploadFailedError,
    ForbiddenError,
    GatewayError,
    NotFoundError,
    ResourceUnavailableError,
    ServerError,
    UnauthorizedError,
    UnexpectedResponseError,
    ValidationError,
)
from staydesk.infrastructure.gateway.endpoints import DEFAULT_ENDPOINTS, ResourceEndpoints
from staydesk.infrastructure.gateway.envelope import (
    Envelope,
    error_message,
    parse_envelope,
    to_record,
    to_record_page,
)

logger = logging.getLogger(__name__)

# Statuses meaning "this route does not exist here", so the next candidate is worth a try.
_ROUTE_MISSING = frozenset({404, 405})


class RestResourceGateway(ResourceGateway):
    """Infrastructure adapter — one upstream resource over HTTP.

    Uses an injected ``httpx.AsyncClient`` when given (shared connection pool,
    or a MockTransport in tests); otherwise opens a short-lived client per
    logical call.
    """

    def __init__(
        self,
        resource: ResourceKind,
        base_url: str,
        *,
        endpoints: ResourceEndpoints | None = None,
        service_token: str = "",
        service_token_header: str = "TokenCybersoft",
        access_token_header: str = "token",
        session_provider: SessionProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self._resource = resource
        self._base_url = base_url.rstrip("/")
        self._endpoints = endpoints or DEFAULT_ENDPOINTS[resource]
        self._service_token = service_token
        self._service_token_header = service_token_header
        self._access_token_header = access_token_header
        self._session_provider = session_provider
        self._http_client = http_client
        self._timeout = timeout

    @property
    def resource(self) -> ResourceKind:
        return self._resource

    @property
    def _name(self) -> str:
        return self._resource.value

    # ── Plumbing ─────────────────────────────────────────────────────

    async def _get_headers(self) -> dict[str, str]:
        """Service token always; user access token when someone is logged in."""
        headers: dict[str, str] = {}
        if self._service_token:
            headers[self._service_token_header] = self._service_token
        if self._session_provider is not None:
            session = await self._session_provider.current_session()
            if session is not None and session.access_token:
                headers[self._access_token_header] = session.access_token
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"
        logger.debug("%s %s", method, url)
        return await client.request(method, url, headers=await self._get_headers(), **kwargs)

    def _envelope(self, response: httpx.Response) -> Envelope:
        try:
            body = response.json()
        except ValueError as exc:
            raise UnexpectedResponseError(
                self._name, response.status_code, "response body is not JSON"
            ) from exc
        return parse_envelope(body, self._name)

    def _error_for(
        self, status_code: int, message: str, record_id: int | None = None
    ) -> GatewayError:
        """Map an upstream status code to the error taxonomy."""
        if status_code in (400, 422):
            return ValidationError(self._name, message, status_code)
        if status_code == 401:
            return UnauthorizedError(self._name, message)
        if status_code == 403:
            return ForbiddenError(self._name, message)
        if status_code == 404:
            return NotFoundError(self._name, record_id if record_id is not None else "?", message)
        if status_code >= 500:
            return ServerError(self._name, status_code, message)
        return GatewayError(self._name, status_code, message)

    def _raise_gateway_error(
        self, response: httpx.Response, record_id: int | None = None
    ) -> None:
        """Raise the typed GatewayError for a non-2xx httpx Response."""
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        message = error_message(body, response.reason_phrase or "request failed")
        raise self._error_for(response.status_code, message, record_id)

    def _check_envelope_status(self, envelope: Envelope, record_id: int | None = None) -> None:
        """Some endpoints answer HTTP 200 with an error ``statusCode`` inside."""
        if envelope.is_error_status:
            raise self._error_for(
                envelope.status_code or 500,
                envelope.message or "request rejected",
                record_id,
            )

    def _coerce(self, payload: dict[str, Any], *, partial: bool) -> dict[str, Any]:
        try:
            return coerce_payload(self._resource, payload, partial=partial)
        except PayloadCoercionError as exc:
            raise ValidationError(self._name, str(exc), 422) from exc

    # ── Reads ────────────────────────────────────────────────────────

    def _list_candidates(self, query: ListQuery) -> list[tuple[str, dict[str, Any] | None]]:
        scoped = parse_sub_key(self._resource, query.sub_key)
        if scoped is not None:
            scope, value = scoped
            template = self._endpoints.scope_paths.get(scope)
            if template is not None:
                return [(template.format(value=value), None)]

        params: dict[str, Any] = {
            "pageIndex": query.page_index,
            "pageSize": query.page_size,
        }
        if query.keyword:
            params[self._endpoints.keyword_param] = query.keyword
        return [(path, params) for path in self._endpoints.list_paths]

    async def list(self, query: ListQuery) -> RecordPage:
        attempts: list[str] = []
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            for path, params in self._list_candidates(query):
                attempts.append(path)
                try:
                    response = await self._request(client, "GET", path, params=params)
                except httpx.HTTPError as exc:
                    logger.warning("List %s via %s failed: %s", self._name, path, exc)
                    continue

                if not response.is_success:
                    logger.warning(
                        "List %s via %s returned %d, trying next endpoint",
                        self._name,
                        path,
                        response.status_code,
                    )
                    continue

                try:
                    envelope = self._envelope(response)
                    self._check_envelope_status(envelope)
                    page = to_record_page(envelope, self._name)
                except GatewayError as exc:
                    logger.warning("List %s via %s unusable: %s", self._name, path, exc)
                    continue

                logger.info(
                    "Listed %d %s record(s) via %s (total=%d)",
                    len(page.records),
                    self._name,
                    path,
                    page.total_count,
                )
                return self._apply_client_scope(page, query)
        finally:
            if should_close:
                await client.aclose()

        raise ResourceUnavailableError(self._name, attempts)

    def _apply_client_scope(self, page: RecordPage, query: ListQuery) -> RecordPage:
        """Filter an unscoped listing for scopes that have no dedicated endpoint."""
        scoped = parse_sub_key(self._resource, query.sub_key)
        if scoped is None or scoped[0] in self._endpoints.scope_paths:
            return page
        scope, value = scoped
        field_name = scope_field(self._resource, scope)
        records = tuple(r for r in page.records if str(r.get(field_name)) == value)
        return RecordPage(records=records, total_count=len(records))

    async def get(self, record_id: int) -> Record:
        attempts: list[str] = []
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            for template in self._endpoints.detail_paths:
                path = template.format(id=record_id)
                attempts.append(path)
                try:
                    response = await self._request(client, "GET", path)
                except httpx.HTTPError as exc:
                    logger.warning("Get %s #%d via %s failed: %s", self._name, record_id, path, exc)
                    continue

                if response.status_code == 404:
                    self._raise_gateway_error(response, record_id)
                if not response.is_success:
                    continue

                try:
                    envelope = self._envelope(response)
                    self._check_envelope_status(envelope, record_id)
                except NotFoundError:
                    raise
                except GatewayError as exc:
                    logger.warning("Get %s #%d via %s unusable: %s", self._name, record_id, path, exc)
                    continue

                record = to_record(envelope, self._name)
                if record is None:
                    raise NotFoundError(self._name, record_id)
                return record
        finally:
            if should_close:
                await client.aclose()

        raise ResourceUnavailableError(self._name, attempts)

    # ── Writes ───────────────────────────────────────────────────────

    async def _record_from_write(
        self, response: httpx.Response, record_id: int | None
    ) -> Record | None:
        """Record echoed by a 2xx write, or None when the body carries none (e.g. 204)."""
        if not response.content.strip():
            return None
        try:
            body = response.json()
        except ValueError:
            logger.debug(
                "%s write answered %d with a non-JSON body", self._name, response.status_code
            )
            return None
        envelope = parse_envelope(body, self._name)
        self._check_envelope_status(envelope, record_id)
        return to_record(envelope, self._name)

    async def create(self, payload: dict[str, Any]) -> Record:
        body = self._coerce(payload, partial=False)
        if self._endpoints.create_with_zero_id:
            body = {"id": 0, **body}

        attempts: list[str] = []
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            for path in self._endpoints.create_paths:
                attempts.append(path)
                try:
                    response = await self._request(client, "POST", path, json=body)
                except httpx.HTTPError as exc:
                    logger.warning("Create %s via %s failed: %s", self._name, path, exc)
                    continue

                if response.status_code in _ROUTE_MISSING:
                    logger.info(
                        "Create %s: %s answered %d, trying next endpoint",
                        self._name,
                        path,
                        response.status_code,
                    )
                    continue
                if not response.is_success:
                    self._raise_gateway_error(response)

                record = await self._record_from_write(response, None)
                if record is None:
                    raise UnexpectedResponseError(
                        self._name, response.status_code, "create response carries no record"
                    )
                logger.info("Created %s #%d via %s", self._name, record.id, path)
                return record
        finally:
            if should_close:
                await client.aclose()

        raise ResourceUnavailableError(self._name, attempts)

    async def update(self, record_id: int, payload: dict[str, Any]) -> Record:
        body = {**self._coerce(payload, partial=True), "id": record_id}
        path = self._endpoints.update_path.format(id=record_id)

        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                response = await self._request(client, "PUT", path, json=body)
            except httpx.HTTPError as exc:
                raise ResourceUnavailableError(self._name, [path], str(exc)) from exc

            if not response.is_success:
                self._raise_gateway_error(response, record_id)
            record = await self._record_from_write(response, record_id)
        finally:
            if should_close:
                await client.aclose()

        if record is None:
            # No record echoed back: read the authoritative state instead.
            record = await self.get(record_id)
        logger.info("Updated %s #%d", self._name, record_id)
        return record

    async def delete(self, record_id: int) -> None:
        if self._endpoints.delete_id_param:
            path = self._endpoints.delete_path
            params: dict[str, Any] | None = {self._endpoints.delete_id_param: record_id}
        else:
            path = self._endpoints.delete_path.format(id=record_id)
            params = None

        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                response = await self._request(client, "DELETE", path, params=params)
            except httpx.HTTPError as exc:
                raise ResourceUnavailableError(self._name, [path], str(exc)) from exc

            if not response.is_success:
                self._raise_gateway_error(response, record_id)
        finally:
            if should_close:
                await client.aclose()

        logger.info("Deleted %s #%d", self._name, record_id)

    async def upload_asset(
        self,
        record_id: int,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> Record:
        if not self._endpoints.upload_paths:
            raise AssetUploadFailedError(
                self._name, None, f"{self._name} records do not accept uploads"
            )

        failures: list[str] = []
        record: Record | None = None
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            for template in self._endpoints.upload_paths:
                path = template.format(id=record_id)
                files = {self._endpoints.upload_field: (filename, content, content_type)}
                try:
                    response = await self._request(client, "POST", path, files=files)
                except httpx.HTTPError as exc:
                    failures.append(f"{path}: {exc}")
                    continue

                if not response.is_success:
                    failures.append(f"{path}: HTTP {response.status_code}")
                    continue

                try:
                    record = await self._record_from_write(response, record_id)
                except GatewayError as exc:
                    failures.append(f"{path}: {exc.message}")
                    continue
                break
            else:
                raise AssetUploadFailedError(
                    self._name,
                    None,
                    f"could not upload asset for #{record_id} ({'; '.join(failures)})",
                )
        finally:
            if should_close:
                await client.aclose()

        logger.info("Uploaded asset %s for %s #%d", filename, self._name, record_id)
        if record is None or record.id != record_id:
            return await self.get(record_id)
        return record

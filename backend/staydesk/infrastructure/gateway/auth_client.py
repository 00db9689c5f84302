"""REST auth client — sign-in, sign-up and profile reads against the upstream API."""

import logging
from typing import Any

import httpx

from staydesk.application.interfaces import AuthClient
from staydesk.domain.exceptions import (
    GatewayError,
    NotFoundError,
    ResourceUnavailableError,
    ServerError,
    UnauthorizedError,
    ValidationError,
)
from staydesk.infrastructure.gateway.envelope import error_message, parse_envelope

logger = logging.getLogger(__name__)


class RestAuthClient(AuthClient):
    """Infrastructure adapter for the ``/auth`` endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        service_token: str = "",
        service_token_header: str = "TokenCybersoft",
        access_token_header: str = "token",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._service_token = service_token
        self._service_token_header = service_token_header
        self._access_token_header = access_token_header
        self._http_client = http_client
        self._timeout = timeout

    def _get_headers(self, access_token: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._service_token:
            headers[self._service_token_header] = self._service_token
        if access_token:
            headers[self._access_token_header] = access_token
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def _call(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        access_token: str | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                response = await client.request(
                    method, url, headers=self._get_headers(access_token), json=json
                )
            except httpx.HTTPError as exc:
                raise ResourceUnavailableError("auth", [path], str(exc)) from exc

            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
        finally:
            if should_close:
                await client.aclose()

        if not response.is_success:
            message = error_message(body, "authentication failed")
            if response.status_code == 400:
                # Wrong credentials and duplicate emails both come back as 400.
                raise ValidationError("auth", message)
            if response.status_code in (401, 403):
                raise UnauthorizedError("auth", message)
            if response.status_code == 404:
                raise NotFoundError("auth", path, message)
            if response.status_code >= 500:
                raise ServerError("auth", response.status_code, message)
            raise GatewayError("auth", response.status_code, message)

        envelope = parse_envelope(body, "auth")
        if envelope.is_error_status:
            raise ValidationError("auth", envelope.message or "request rejected")
        if envelope.item is None:
            raise ValidationError("auth", envelope.message or "empty auth response")
        return envelope.item

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        logger.info("Signing in %s", email)
        return await self._call(
            "POST", "/auth/signin", json={"email": email, "password": password}
        )

    async def sign_up(self, payload: dict[str, Any]) -> dict[str, Any]:
        logger.info("Registering %s", payload.get("email"))
        return await self._call("POST", "/auth/signup", json=payload)

    async def fetch_profile(self, user_id: int, access_token: str) -> dict[str, Any]:
        return await self._call("GET", f"/users/{user_id}", access_token=access_token)

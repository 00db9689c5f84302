"""Application service (use case) for console login state."""

import logging
from typing import Any

from staydesk.application.interfaces import AuthClient, SessionStore
from staydesk.domain.entities import Record, UserSession
from staydesk.domain.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)

_SECRET_FIELDS = ("password", "token", "accessToken")


def session_from_sign_in(content: dict[str, Any]) -> UserSession:
    """Normalize the sign-in payload into a UserSession.

    The upstream answers either ``{user: {...}, token}`` or a flat user object
    carrying ``token`` / ``accessToken`` itself.
    """
    user = content.get("user") if isinstance(content.get("user"), dict) else content
    token = (
        content.get("token")
        or content.get("accessToken")
        or user.get("token")
        or user.get("accessToken")
    )
    if not token:
        raise UnauthorizedError("auth", "sign-in response carries no access token")
    if user.get("id") is None:
        raise UnauthorizedError("auth", "sign-in response carries no user id")

    profile = {k: v for k, v in user.items() if k not in _SECRET_FIELDS}
    return UserSession(
        user_id=int(user["id"]),
        name=str(user.get("name") or ""),
        email=str(user.get("email") or ""),
        access_token=str(token),
        role=str(user.get("role") or "USER"),
        profile=profile,
    )


class AuthService:
    """Orchestrates sign-in, sign-up and the persisted session (DI on both ports)."""

    def __init__(self, auth_client: AuthClient, session_store: SessionStore):
        self._auth_client = auth_client
        self._session_store = session_store

    async def login(self, email: str, password: str) -> UserSession:
        content = await self._auth_client.sign_in(email.strip(), password)
        session = session_from_sign_in(content)
        await self._session_store.save(session)
        logger.info("User #%d logged in", session.user_id)
        return session

    async def register(self, payload: dict[str, Any]) -> Record:
        content = await self._auth_client.sign_up({"role": "USER", **payload})
        user = content.get("user") if isinstance(content.get("user"), dict) else content
        return Record.from_wire({k: v for k, v in user.items() if k not in _SECRET_FIELDS})

    async def logout(self) -> None:
        await self._session_store.clear()

    async def current(self) -> UserSession | None:
        return await self._session_store.current_session()

    async def require_session(self) -> UserSession:
        session = await self.current()
        if session is None:
            raise UnauthorizedError("auth", "not logged in")
        return session

    async def refresh_profile(self) -> UserSession:
        """Merge the latest ``/users/{id}`` profile into the stored session."""
        session = await self.require_session()
        profile = await self._auth_client.fetch_profile(session.user_id, session.access_token)
        updated = session.with_profile(
            {k: v for k, v in profile.items() if k not in _SECRET_FIELDS}
        )
        await self._session_store.save(updated)
        return updated

    async def is_admin(self) -> bool:
        session = await self.current()
        return session is not None and session.is_admin

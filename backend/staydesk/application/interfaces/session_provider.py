"""Abstract session provider interface — port for persisted login state."""

from abc import ABC, abstractmethod

from staydesk.domain.entities import UserSession


class SessionProvider(ABC):
    """Port — read access to the current console user's login state."""

    @abstractmethod
    async def current_session(self) -> UserSession | None:
        """Return the logged-in user, or None when nobody is logged in."""
        ...


class SessionStore(SessionProvider):
    """A SessionProvider that can also persist and clear the login state."""

    @abstractmethod
    async def save(self, session: UserSession) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...

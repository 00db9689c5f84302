"""Concrete login-state store backed by SQLAlchemy."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from staydesk.application.interfaces import SessionStore
from staydesk.domain.entities import UserSession
from staydesk.infrastructure.database.models import SessionStateModel

logger = logging.getLogger(__name__)

_CURRENT_USER_KEY = "current_user"


class SQLAlchemySessionStore(SessionStore):
    """Persists the logged-in user under a single key of ``session_state``.

    The decoded session is memoized after the first read; ``save`` and
    ``clear`` keep the memo in step with the table.
    """

    _UNLOADED = object()

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._cached: object = self._UNLOADED

    async def current_session(self) -> UserSession | None:
        if self._cached is self._UNLOADED:
            async with self._session_factory() as session:
                model = await session.get(SessionStateModel, _CURRENT_USER_KEY)
            self._cached = UserSession.from_json(model.value) if model and model.value else None
        return self._cached  # type: ignore[return-value]

    async def save(self, user_session: UserSession) -> None:
        async with self._session_factory() as session:
            model = await session.get(SessionStateModel, _CURRENT_USER_KEY)
            if model is None:
                session.add(SessionStateModel(key=_CURRENT_USER_KEY, value=user_session.to_json()))
            else:
                model.value = user_session.to_json()
            await session.commit()
        self._cached = user_session
        logger.info("Stored session for user #%d (%s)", user_session.user_id, user_session.role)

    async def clear(self) -> None:
        async with self._session_factory() as session:
            model = await session.get(SessionStateModel, _CURRENT_USER_KEY)
            if model is not None:
                await session.delete(model)
                await session.commit()
        self._cached = None
        logger.info("Cleared stored session")

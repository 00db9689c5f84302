from .fallback_repository import SQLAlchemyFallbackRepository
from .session_store import SQLAlchemySessionStore

__all__ = [
    "SQLAlchemyFallbackRepository",
    "SQLAlchemySessionStore",
]

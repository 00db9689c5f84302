from .resource_gateway import ListQuery, ResourceGateway
from .fallback_repository import FallbackRepository
from .session_provider import SessionProvider, SessionStore
from .auth_client import AuthClient

__all__ = [
    "ListQuery",
    "ResourceGateway",
    "FallbackRepository",
    "SessionProvider",
    "SessionStore",
    "AuthClient",
]

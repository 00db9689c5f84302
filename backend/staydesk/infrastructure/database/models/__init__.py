from .fallback_collection import FallbackCollectionModel
from .session_state import SessionStateModel

__all__ = [
    "FallbackCollectionModel",
    "SessionStateModel",
]

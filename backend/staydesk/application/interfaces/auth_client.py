"""Abstract auth client interface — port for upstream sign-in / sign-up."""

from abc import ABC, abstractmethod
from typing import Any


class AuthClient(ABC):
    @abstractmethod
    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        """Return the raw ``content`` of a successful sign-in response."""
        ...

    @abstractmethod
    async def sign_up(self, payload: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    async def fetch_profile(self, user_id: int, access_token: str) -> dict[str, Any]:
        ...

"""Abstract resource gateway interface — port for the upstream REST API.

One gateway instance serves one resource kind. Implementations translate a
logical operation into one or more HTTP calls and raise the typed errors of
``staydesk.domain.exceptions``. Gateways never cache.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from staydesk.domain.entities import ALL_SUB_KEY, Record, RecordPage, ResourceKind


@dataclass(frozen=True)
class ListQuery:
    """Parameters of one upstream list call."""

    page_index: int = 1
    page_size: int = 10000
    keyword: str | None = None
    sub_key: str = ALL_SUB_KEY


class ResourceGateway(ABC):
    """Port — what the application layer needs from the upstream API for one resource."""

    @property
    @abstractmethod
    def resource(self) -> ResourceKind:
        ...

    @abstractmethod
    async def list(self, query: ListQuery) -> RecordPage:
        """Fetch a collection, normalized to ``RecordPage``.

        Raises:
            ResourceUnavailableError: every candidate endpoint failed.
        """
        ...

    @abstractmethod
    async def get(self, record_id: int) -> Record:
        """Fetch one record. Raises NotFoundError on 404."""
        ...

    @abstractmethod
    async def create(self, payload: dict[str, Any]) -> Record:
        """Create a record from a payload coerced to the upstream shape."""
        ...

    @abstractmethod
    async def update(self, record_id: int, payload: dict[str, Any]) -> Record:
        """Apply a partial update. Raises ForbiddenError on 403."""
        ...

    @abstractmethod
    async def delete(self, record_id: int) -> None:
        """Delete a record. Raises ForbiddenError on 403."""
        ...

    @abstractmethod
    async def upload_asset(
        self,
        record_id: int,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> Record:
        """Attach an image to an existing record.

        Raises:
            AssetUploadFailedError: no upload endpoint accepted the file.
        """
        ...

"""Single-record reads — the fallback store first, upstream otherwise."""

import logging
from collections.abc import Mapping

from staydesk.application.interfaces import FallbackRepository, ResourceGateway
from staydesk.domain.entities import Record, ResourceKind
from staydesk.domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class RecordLookup:
    def __init__(
        self,
        gateways: Mapping[ResourceKind, ResourceGateway],
        fallback: FallbackRepository,
    ):
        self._gateways = dict(gateways)
        self._fallback = fallback

    async def get(self, kind: ResourceKind, record_id: int) -> Record:
        """Return the record, raising NotFoundError when neither side has it.

        A fallback entry shadows the upstream record with the same id, the
        same way it does in merged collection snapshots.
        """
        entry = await self._fallback.get(kind, record_id)
        if entry is not None:
            logger.debug("Serving %s #%d from the fallback store", kind.value, record_id)
            return entry.record

        gateway = self._gateways.get(kind)
        if gateway is None:
            raise ConfigurationError(f"No gateway registered for {kind.value}")
        return await gateway.get(record_id)

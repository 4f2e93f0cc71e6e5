"""
Event Service.

Read access to community events.
"""

import logging
from typing import List, Optional

from services.base import DomainService
from storage.gateway import Filter, RecordStore, Row


logger = logging.getLogger(__name__)


EVENTS_TABLE = "events"


class EventService(DomainService):
    """Community event queries."""

    name = "event"

    async def get_events(
        self,
        limit: int = 50,
        upcoming_only: bool = False,
        store: Optional[RecordStore] = None,
    ) -> List[Row]:
        """
        Events ordered by start time.

        Args:
            limit: Maximum rows returned
            upcoming_only: Only events starting now or later
            store: Store to read from (defaults to the service's own)
        """
        if store is None:
            store = self._store
        filters = [Filter.gte("starts_at", self._clock.now())] if upcoming_only else []
        return await store.select(
            EVENTS_TABLE,
            filters,
            order_by="starts_at",
            limit=limit,
        )

    async def probe(self, store: RecordStore) -> None:
        await self.get_events(limit=1, store=store)

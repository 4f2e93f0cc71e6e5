"""
Admin Dashboard Service.

Headline counts shown on the admin landing page.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from services.base import DomainService
from storage.gateway import Filter, RecordStore


logger = logging.getLogger(__name__)


class AdminDashboardService(DomainService):
    """Aggregated portal statistics."""

    name = "adminDashboard"

    async def get_dashboard_stats(self, store: Optional[RecordStore] = None) -> Dict[str, Any]:
        """
        Member, event and donation counts.

        Args:
            store: Store to read from (defaults to the service's own)

        Returns:
            Dict with total_members, active_members, total_events,
            upcoming_events, total_donations
        """
        if store is None:
            store = self._store
        now = self._clock.now()

        (
            total_members,
            active_members,
            total_events,
            upcoming_events,
            total_donations,
        ) = await asyncio.gather(
            store.count("members"),
            store.count("members", [Filter.eq("status", "active")]),
            store.count("events"),
            store.count("events", [Filter.gte("starts_at", now)]),
            store.count("donations"),
        )

        return {
            "total_members": total_members,
            "active_members": active_members,
            "total_events": total_events,
            "upcoming_events": upcoming_events,
            "total_donations": total_donations,
        }

    async def probe(self, store: RecordStore) -> None:
        await self.get_dashboard_stats(store)

"""
Analytics - Event Tracker.

============================================================
RESPONSIBILITY
============================================================
Writes telemetry for the portal:

- analytics_events: named events with a JSON payload
- system_metrics: numeric samples (latency, usage, ...)

Integration code treats telemetry as best effort and goes
through safe_track(), which never raises.

============================================================
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from core.clock import ClockFactory, ClockProtocol
from storage.gateway import Filter, RecordStore


logger = logging.getLogger(__name__)


EVENTS_TABLE = "analytics_events"
METRICS_TABLE = "system_metrics"


class AnalyticsTracker:
    """Persists analytics events and metric samples."""

    def __init__(
        self,
        store: RecordStore,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._store = store
        self._clock = clock or ClockFactory.get_clock()

    async def track_event(
        self,
        event_type: str,
        category: str,
        data: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
        page_url: Optional[str] = None,
    ) -> str:
        """
        Record one event.

        Returns:
            The stored event id

        Raises:
            StoreError if the insert fails
        """
        row = await self._store.insert(EVENTS_TABLE, {
            "event_type": event_type,
            "event_category": category,
            "event_data": dict(data or {}),
            "session_id": session_id,
            "page_url": page_url,
            "created_at": self._clock.now(),
        })
        logger.debug(f"Tracked analytics event {event_type} ({category})")
        return row["id"]

    async def record_metric(
        self,
        name: str,
        value: float,
        unit: str,
        category: str,
    ) -> str:
        """Record one metric sample and return its id."""
        row = await self._store.insert(METRICS_TABLE, {
            "metric_name": name,
            "metric_value": float(value),
            "metric_unit": unit,
            "category": category,
            "recorded_at": self._clock.now(),
        })
        return row["id"]

    async def count_events_since(self, since: datetime, event_type: Optional[str] = None) -> int:
        """Number of events recorded at or after `since`."""
        filters = [Filter.gte("created_at", since)]
        if event_type:
            filters.append(Filter.eq("event_type", event_type))
        return await self._store.count(EVENTS_TABLE, filters)


async def safe_track(
    tracker: Optional[AnalyticsTracker],
    event_type: str,
    category: str,
    data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Best-effort event tracking.

    Failures are logged and swallowed so telemetry never fails
    the operation that emitted it.
    """
    if tracker is None:
        return
    try:
        await tracker.track_event(event_type, category, data)
    except Exception as e:
        logger.warning(f"Failed to track analytics event {event_type}: {e}")

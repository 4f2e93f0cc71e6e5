"""
System Monitoring Service.

============================================================
RESPONSIBILITY
============================================================
Watches the portal's own backing infrastructure.

- get_system_health: timed round-trips to the record store
- record_metrics: writes metric samples via analytics
- run_automated_checks: both of the above, run at startup

============================================================
STATUS RULES
============================================================
A check that raises is "outage". A check slower than
slow_threshold_ms is "degraded". Overall status is
"operational" only when every check is; any outage makes the
whole system "outage"; otherwise "degraded".

============================================================
"""

import asyncio
import logging
import os
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from analytics.tracker import AnalyticsTracker
from core.clock import ClockProtocol
from core.exceptions import ProbeError
from services.base import DomainService
from storage.gateway import Filter, RecordStore


logger = logging.getLogger(__name__)


DEFAULT_SLOW_THRESHOLD_MS = 100.0


class SystemMonitoringService(DomainService):
    """Health checks and metric sampling for the portal backend."""

    name = "systemMonitoring"

    def __init__(
        self,
        store: RecordStore,
        analytics: AnalyticsTracker,
        clock: Optional[ClockProtocol] = None,
        slow_threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS,
    ) -> None:
        super().__init__(store, clock)
        self._analytics = analytics
        self._slow_threshold_ms = slow_threshold_ms

    # ---------------------------------------------------------
    # HEALTH
    # ---------------------------------------------------------

    async def _timed(self, name: str, check: Callable[[], Awaitable[Any]]) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            await check()
        except Exception as e:
            return {
                "name": name,
                "status": "outage",
                "response_time_ms": round((time.perf_counter() - start) * 1000),
                "error": str(e),
            }

        elapsed_ms = (time.perf_counter() - start) * 1000
        return {
            "name": name,
            "status": "operational" if elapsed_ms < self._slow_threshold_ms else "degraded",
            "response_time_ms": round(elapsed_ms),
            "error": None,
        }

    async def get_system_health(self, store: Optional[RecordStore] = None) -> Dict[str, Any]:
        """
        Check the database and the analytics tables.

        Returns:
            {"overall": str, "services": [...], "checked_at": iso}
        """
        if store is None:
            store = self._store

        services: List[Dict[str, Any]] = list(await asyncio.gather(
            self._timed("Database", lambda: store.count("members")),
            self._timed("Analytics", lambda: store.select("analytics_events", limit=1)),
        ))

        if all(s["status"] == "operational" for s in services):
            overall = "operational"
        elif any(s["status"] == "outage" for s in services):
            overall = "outage"
        else:
            overall = "degraded"

        return {
            "overall": overall,
            "services": services,
            "checked_at": self._clock.format_iso(),
        }

    async def probe(self, store: RecordStore) -> None:
        health = await self.get_system_health(store)
        if health["overall"] == "outage":
            failed = [s["name"] for s in health["services"] if s["status"] == "outage"]
            raise ProbeError(
                f"System checks failing: {', '.join(failed)}",
                service_name=self.name,
            )

    # ---------------------------------------------------------
    # METRICS
    # ---------------------------------------------------------

    async def record_metrics(self) -> int:
        """
        Sample and persist system metrics.

        Failures propagate so the maintenance runner counts them.

        Returns:
            Number of samples written
        """
        start = time.perf_counter()
        active_members = await self._store.count("members", [Filter.eq("status", "active")])
        response_time_ms = (time.perf_counter() - start) * 1000

        events_today = await self._analytics.count_events_since(self._clock.start_of_day())

        samples = [
            ("response_time", response_time_ms, "ms", "performance"),
            ("active_users", active_members, "count", "users"),
            ("events_today", events_today, "count", "traffic"),
        ]
        if hasattr(os, "getloadavg"):
            samples.append(("cpu_load_1m", os.getloadavg()[0], "load", "system"))

        for name, value, unit, category in samples:
            await self._analytics.record_metric(name, value, unit, category)

        logger.debug(f"Recorded {len(samples)} system metrics")
        return len(samples)

    async def run_automated_checks(self) -> Dict[str, Any]:
        """Health check followed by a metrics sample."""
        health = await self.get_system_health()
        if health["overall"] != "operational":
            logger.warning(f"Automated checks: system is {health['overall']}")
        else:
            logger.info("Automated checks: all systems operational")

        await self.record_metrics()
        return health

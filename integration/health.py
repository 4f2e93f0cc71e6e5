"""
Integration Manager - Service Health Aggregator.

============================================================
RESPONSIBILITY
============================================================
Answers "is each registered service reachable and responsive".

- Probes every registry entry concurrently
- A probe that raises is reported as outage, never escalated
- Results come back in registry order regardless of which
  probe finishes first
- Rolls statuses up into healthy / degraded / critical

============================================================
PROBING
============================================================
Services implementing HealthProbe are asked to probe() with a
read-only view of the record store. Every other service is
only checked for existence in the registry.

Concurrency and per-probe timeout are unlimited unless set in
HealthCheckSettings.

============================================================
"""

import asyncio
import logging
import time
from contextlib import AsyncExitStack
from typing import Any, Iterable, List, Optional

from core.clock import ClockFactory, ClockProtocol
from integration.config import HealthCheckSettings
from integration.models import OverallStatus, ServiceState, ServiceStatus
from integration.registry import ServiceRegistry
from services.base import HealthProbe
from storage.gateway import ReadOnlyRecordStore, RecordStore


logger = logging.getLogger(__name__)


SERVICE_CHECK_FAILED = "Service check failed"
SERVICE_NOT_AVAILABLE = "Service not available"


# =============================================================
# ROLLUP
# =============================================================


def rollup(statuses: Iterable[ServiceStatus]) -> OverallStatus:
    """
    Overall status from per-service statuses.

    critical iff any outage; degraded iff any degraded and no
    outage; healthy otherwise (including an empty list).
    """
    states = {s.status for s in statuses}
    if ServiceState.OUTAGE in states:
        return OverallStatus.CRITICAL
    if ServiceState.DEGRADED in states:
        return OverallStatus.DEGRADED
    return OverallStatus.HEALTHY


# =============================================================
# AGGREGATOR
# =============================================================


class ServiceHealthAggregator:
    """
    Concurrent, failure-isolated health checks over a registry.

    Usage:
        aggregator = ServiceHealthAggregator(registry, store)
        statuses = await aggregator.check_all()
        overall = rollup(statuses)
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        store: RecordStore,
        settings: Optional[HealthCheckSettings] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._registry = registry
        self._probe_store = ReadOnlyRecordStore(store)
        self._settings = settings or HealthCheckSettings()
        self._clock = clock or ClockFactory.get_clock()

        self._semaphore: Optional[asyncio.Semaphore] = None
        if self._settings.probe_concurrency:
            self._semaphore = asyncio.Semaphore(self._settings.probe_concurrency)

    async def check_all(self) -> List[ServiceStatus]:
        """
        Check every registered service.

        Returns:
            One ServiceStatus per registry entry, in registry order
        """
        entries = self._registry.items()
        results = await asyncio.gather(
            *(self.check_one(name, service) for name, service in entries),
            return_exceptions=True,
        )

        statuses: List[ServiceStatus] = []
        for (name, _), result in zip(entries, results):
            if isinstance(result, BaseException):
                logger.error(f"Health check task for {name} failed: {result!r}")
                statuses.append(ServiceStatus(
                    name=name,
                    status=ServiceState.OUTAGE,
                    last_checked=self._clock.now(),
                    error_message=SERVICE_CHECK_FAILED,
                ))
            else:
                statuses.append(result)

        outages = sum(1 for s in statuses if s.status == ServiceState.OUTAGE)
        logger.info(f"Checked {len(statuses)} services: {outages} in outage")
        return statuses

    async def check_one(self, name: str, service: Any) -> ServiceStatus:
        """
        Probe one service and time it.

        Never raises for probe failures; they become outage.
        """
        async with AsyncExitStack() as stack:
            if self._semaphore is not None:
                await stack.enter_async_context(self._semaphore)

            start = time.perf_counter()
            try:
                await self._run_probe(name, service)
            except asyncio.TimeoutError:
                return self._status(
                    name,
                    ServiceState.OUTAGE,
                    start,
                    f"Probe timed out after {self._settings.probe_timeout_seconds}s",
                )
            except Exception as e:
                logger.warning(f"Health probe for {name} failed: {e}")
                return self._status(name, ServiceState.OUTAGE, start, str(e) or type(e).__name__)

            state = ServiceState.OPERATIONAL
            threshold = self._settings.degraded_threshold_ms
            if threshold is not None and (time.perf_counter() - start) * 1000 > threshold:
                state = ServiceState.DEGRADED
            return self._status(name, state, start)

    async def _run_probe(self, name: str, service: Any) -> None:
        if service is None:
            raise LookupError(SERVICE_NOT_AVAILABLE)
        if not isinstance(service, HealthProbe):
            # Existence check only
            return

        call = service.probe(self._probe_store)
        timeout = self._settings.probe_timeout_seconds
        if timeout is not None:
            await asyncio.wait_for(call, timeout=timeout)
        else:
            await call

    def _status(
        self,
        name: str,
        state: ServiceState,
        start: float,
        error_message: Optional[str] = None,
    ) -> ServiceStatus:
        return ServiceStatus(
            name=name,
            status=state,
            last_checked=self._clock.now(),
            response_time_ms=round((time.perf_counter() - start) * 1000),
            error_message=error_message,
        )


__all__ = [
    "SERVICE_CHECK_FAILED",
    "SERVICE_NOT_AVAILABLE",
    "ServiceHealthAggregator",
    "rollup",
]

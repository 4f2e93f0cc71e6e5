"""
Tests for the Service Health Aggregator.

============================================================
PURPOSE
============================================================
Verify the health fan-out over the service registry.

TEST PRINCIPLES:
- Report order is registry order, never completion order
- One failing probe never hides the others
- Probes only ever see a read-only store
- Rollup: any outage is critical, else any degraded is degraded

============================================================
"""

import asyncio
import random
import time
from datetime import datetime, timezone
from typing import Optional
from unittest.mock import MagicMock

import pytest

from integration.config import HealthCheckSettings
from integration.health import (
    SERVICE_CHECK_FAILED,
    SERVICE_NOT_AVAILABLE,
    ServiceHealthAggregator,
    rollup,
)
from integration.models import OverallStatus, ServiceState, ServiceStatus
from integration.registry import ServiceRegistry
from storage.exceptions import ReadOnlyViolationError


# ============================================================
# STUB SERVICES
# ============================================================

class ProbedService:
    """Service with a configurable probe."""

    def __init__(self, delay: float = 0.0, error: Optional[BaseException] = None) -> None:
        self.delay = delay
        self.error = error
        self.calls = 0

    async def probe(self, store) -> None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error


class PlainService:
    """No probe; only its registration is checked."""


class WritingService:
    async def probe(self, store) -> None:
        await store.insert("members", {"full_name": "Intruder"})


class ConcurrencyTracker:
    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    def service(self):
        tracker = self

        class Tracked:
            async def probe(self, store) -> None:
                tracker.active += 1
                tracker.peak = max(tracker.peak, tracker.active)
                await asyncio.sleep(0.02)
                tracker.active -= 1

        return Tracked()


class ProbeCrash(BaseException):
    """Escapes the per-probe exception handler."""


# ============================================================
# FIXTURES
# ============================================================

def make_aggregator(services, clock, **settings):
    registry = ServiceRegistry.from_mapping(services)
    return ServiceHealthAggregator(
        registry, MagicMock(), HealthCheckSettings(**settings), clock
    )


def status_of(name: str, state: ServiceState) -> ServiceStatus:
    return ServiceStatus(
        name=name,
        status=state,
        last_checked=datetime(2026, 3, 15, tzinfo=timezone.utc),
    )


# ============================================================
# ORDERING
# ============================================================

class TestOrdering:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", [1, 2, 3])
    async def test_results_follow_registry_order(self, clock, seed):
        rng = random.Random(seed)
        names = [f"service{i}" for i in range(12)]
        services = {name: ProbedService(delay=rng.uniform(0, 0.03)) for name in names}

        statuses = await make_aggregator(services, clock).check_all()

        assert [s.name for s in statuses] == names
        assert all(s.status == ServiceState.OPERATIONAL for s in statuses)

    @pytest.mark.asyncio
    async def test_slowest_first_still_reported_first(self, clock):
        services = {
            "slow": ProbedService(delay=0.05),
            "medium": ProbedService(delay=0.02),
            "fast": ProbedService(),
        }

        statuses = await make_aggregator(services, clock).check_all()

        assert [s.name for s in statuses] == ["slow", "medium", "fast"]

    @pytest.mark.asyncio
    async def test_empty_registry(self, clock):
        aggregator = make_aggregator({}, clock)
        statuses = await aggregator.check_all()

        assert statuses == []
        assert rollup(statuses) == OverallStatus.HEALTHY


# ============================================================
# ISOLATION
# ============================================================

class TestIsolation:

    @pytest.mark.asyncio
    async def test_one_failing_probe(self, clock):
        services = {
            "member": ProbedService(),
            "reports": ProbedService(error=RuntimeError("connection refused")),
            "event": ProbedService(),
        }

        statuses = await make_aggregator(services, clock).check_all()
        by_name = {s.name: s for s in statuses}

        assert by_name["reports"].status == ServiceState.OUTAGE
        assert by_name["reports"].error_message == "connection refused"
        assert by_name["member"].status == ServiceState.OPERATIONAL
        assert by_name["event"].status == ServiceState.OPERATIONAL
        assert by_name["member"].error_message is None

    @pytest.mark.asyncio
    async def test_escaped_failure_becomes_generic_outage(self, clock):
        services = {
            "member": ProbedService(),
            "crashing": ProbedService(error=ProbeCrash()),
        }

        statuses = await make_aggregator(services, clock).check_all()

        assert statuses[0].status == ServiceState.OPERATIONAL
        assert statuses[1].name == "crashing"
        assert statuses[1].status == ServiceState.OUTAGE
        assert statuses[1].error_message == SERVICE_CHECK_FAILED

    @pytest.mark.asyncio
    async def test_missing_service(self, clock):
        statuses = await make_aggregator({"library": None}, clock).check_all()

        assert statuses[0].status == ServiceState.OUTAGE
        assert statuses[0].error_message == SERVICE_NOT_AVAILABLE

    @pytest.mark.asyncio
    async def test_exception_without_message_uses_type_name(self, clock):
        statuses = await make_aggregator({"x": ProbedService(error=KeyError())}, clock).check_all()
        assert statuses[0].error_message == "KeyError"


# ============================================================
# PROBING
# ============================================================

class TestProbing:

    @pytest.mark.asyncio
    async def test_service_without_probe_is_operational(self, clock):
        statuses = await make_aggregator({"tasks": PlainService()}, clock).check_all()

        assert statuses[0].status == ServiceState.OPERATIONAL
        assert statuses[0].response_time_ms is not None

    @pytest.mark.asyncio
    async def test_probe_cannot_write(self, clock):
        statuses = await make_aggregator({"writer": WritingService()}, clock).check_all()

        assert statuses[0].status == ServiceState.OUTAGE
        assert ReadOnlyViolationError("members", "insert").message in statuses[0].error_message

    @pytest.mark.asyncio
    async def test_probe_called_once_per_check(self, clock):
        service = ProbedService()
        aggregator = make_aggregator({"member": service}, clock)

        await aggregator.check_all()
        await aggregator.check_all()

        assert service.calls == 2

    @pytest.mark.asyncio
    async def test_last_checked_comes_from_clock(self, clock):
        statuses = await make_aggregator({"member": ProbedService()}, clock).check_all()
        assert statuses[0].last_checked == clock.now()

    @pytest.mark.asyncio
    async def test_probes_run_concurrently(self, clock):
        services = {f"s{i}": ProbedService(delay=0.1) for i in range(5)}

        start = time.perf_counter()
        await make_aggregator(services, clock).check_all()
        elapsed = time.perf_counter() - start

        assert elapsed < 0.4

    @pytest.mark.asyncio
    async def test_concurrency_limit(self, clock):
        tracker = ConcurrencyTracker()
        services = {f"s{i}": tracker.service() for i in range(6)}

        await make_aggregator(services, clock, probe_concurrency=2).check_all()

        assert tracker.peak == 2

    @pytest.mark.asyncio
    async def test_timeout(self, clock):
        services = {"hung": ProbedService(delay=1.0), "fine": ProbedService()}

        statuses = await make_aggregator(services, clock, probe_timeout_seconds=0.05).check_all()

        assert statuses[0].status == ServiceState.OUTAGE
        assert statuses[0].error_message == "Probe timed out after 0.05s"
        assert statuses[1].status == ServiceState.OPERATIONAL

    @pytest.mark.asyncio
    async def test_slow_probe_is_degraded(self, clock):
        services = {"slow": ProbedService(delay=0.05), "fast": ProbedService()}

        statuses = await make_aggregator(services, clock, degraded_threshold_ms=20).check_all()

        assert statuses[0].status == ServiceState.DEGRADED
        assert statuses[0].response_time_ms >= 20
        assert statuses[1].status == ServiceState.OPERATIONAL


# ============================================================
# ROLLUP
# ============================================================

class TestRollup:

    @pytest.mark.parametrize(
        "has_outage,has_degraded,expected",
        [
            (False, False, OverallStatus.HEALTHY),
            (False, True, OverallStatus.DEGRADED),
            (True, False, OverallStatus.CRITICAL),
            (True, True, OverallStatus.CRITICAL),
        ],
    )
    def test_rollup_table(self, has_outage, has_degraded, expected):
        statuses = [status_of("ok", ServiceState.OPERATIONAL)]
        if has_outage:
            statuses.append(status_of("down", ServiceState.OUTAGE))
        if has_degraded:
            statuses.append(status_of("slow", ServiceState.DEGRADED))

        assert rollup(statuses) == expected

    def test_all_degraded(self):
        statuses = [status_of("a", ServiceState.DEGRADED), status_of("b", ServiceState.DEGRADED)]
        assert rollup(statuses) == OverallStatus.DEGRADED


class TestRegistry:

    def test_frozen_registry_rejects_registration(self):
        registry = ServiceRegistry.from_mapping({"member": PlainService()})

        with pytest.raises(RuntimeError):
            registry.register("event", PlainService())

    def test_duplicate_name_rejected(self):
        registry = ServiceRegistry()
        registry.register("member", PlainService())

        with pytest.raises(ValueError):
            registry.register("member", PlainService())

    def test_require_missing(self):
        with pytest.raises(KeyError):
            ServiceRegistry().require("zakatCalculator")

"""
Tests for the Maintenance Task Runner.

============================================================
PURPOSE
============================================================
Verify ordered, failure-isolated maintenance runs and the five
default upkeep tasks against a real SQLite store.

TEST PRINCIPLES:
- A failing task is recorded and the run continues
- Every task lands in exactly one of completed / failed
- The runner itself never raises

============================================================
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import MaintenanceTaskError
from integration.integration_checks import RandomIntegrationHealthCheck
from integration.maintenance import (
    MaintenanceRunner,
    MaintenanceTask,
    default_maintenance_tasks,
)
from integration.models import IntegrationStatus, JobStatus
from integration.registry import ServiceRegistry
from integration.repository import IntegrationRepository, SyncJobRepository
from services.reports import ReportsService
from services.system_monitoring import SystemMonitoringService


DEFAULT_TASK_NAMES = [
    "cleanup_old_sync_jobs",
    "update_integration_health",
    "process_zakat_reminders",
    "process_scheduled_reports",
    "record_system_metrics",
]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def mock_analytics():
    analytics = MagicMock()
    analytics.track_event = AsyncMock(return_value="event-1")
    return analytics


def recording_task(name, log, error=None):
    async def action():
        log.append(name)
        if error is not None:
            raise error
    return MaintenanceTask(name, action)


async def _completed_job(jobs, integration_id, total=10):
    job = await jobs.create(integration_id, "sync", total)
    await jobs.mark_running(job.id)
    return await jobs.mark_completed(job.id, total)


# ============================================================
# RUNNER
# ============================================================

class TestMaintenanceRunner:

    @pytest.mark.asyncio
    async def test_third_task_failure_is_isolated(self, mock_analytics):
        log = []
        tasks = [
            recording_task(f"task{i}", log, RuntimeError("boom") if i == 3 else None)
            for i in range(1, 6)
        ]

        report = await MaintenanceRunner(tasks, mock_analytics).run()

        assert log == ["task1", "task2", "task3", "task4", "task5"]
        assert report.tasks_completed == ["task1", "task2", "task4", "task5"]
        assert report.tasks_failed == ["task3"]
        assert len(report.tasks_completed) + len(report.tasks_failed) == 5

    @pytest.mark.asyncio
    async def test_all_tasks_fail(self):
        log = []
        tasks = [recording_task(f"task{i}", log, ValueError("bad")) for i in range(3)]

        report = await MaintenanceRunner(tasks).run()

        assert report.tasks_completed == []
        assert report.tasks_failed == ["task0", "task1", "task2"]

    @pytest.mark.asyncio
    async def test_tracks_summary_event(self, mock_analytics):
        tasks = [recording_task("a", []), recording_task("b", [], RuntimeError("x"))]

        report = await MaintenanceRunner(tasks, mock_analytics).run()

        mock_analytics.track_event.assert_awaited_once()
        event_type, category, data = mock_analytics.track_event.await_args.args
        assert event_type == "maintenance_tasks_completed"
        assert category == "system"
        assert data["completed_tasks"] == ["a"]
        assert data["failed_tasks"] == ["b"]
        assert data["duration_ms"] == report.total_duration_ms

    @pytest.mark.asyncio
    async def test_analytics_failure_does_not_fail_run(self, mock_analytics):
        mock_analytics.track_event.side_effect = RuntimeError("analytics down")

        report = await MaintenanceRunner([recording_task("a", [])], mock_analytics).run()

        assert report.tasks_completed == ["a"]

    @pytest.mark.asyncio
    async def test_duration_is_measured(self):
        async def slow():
            await asyncio.sleep(0.03)

        report = await MaintenanceRunner([MaintenanceTask("slow", slow)]).run()

        assert report.total_duration_ms >= 30


# ============================================================
# DEFAULT TASKS
# ============================================================

class TestDefaultTasks:

    @pytest.mark.asyncio
    async def test_all_default_tasks_complete(self, manager):
        report = await manager.run_maintenance_tasks()

        assert manager.maintenance.task_names == DEFAULT_TASK_NAMES
        assert report.tasks_completed == DEFAULT_TASK_NAMES
        assert report.tasks_failed == []

    @pytest.mark.asyncio
    async def test_cleanup_purges_only_old_completed_jobs(self, manager, clock):
        integration = await manager.create_integration("Prayer times feed", "external")
        jobs = manager.sync_jobs
        now = clock.now()

        clock.set_time(now - timedelta(days=40))
        old_completed = await _completed_job(jobs, integration.id)
        old_pending = await jobs.create(integration.id, "sync", 5)
        clock.set_time(now - timedelta(days=5))
        recent_completed = await _completed_job(jobs, integration.id)
        clock.set_time(now)

        await manager.run_maintenance_tasks()

        assert await jobs.get(old_completed.id) is None
        assert (await jobs.get(old_pending.id)).status == JobStatus.PENDING
        assert (await jobs.get(recent_completed.id)) is not None

    @pytest.mark.asyncio
    async def test_integration_health_stamps_status_and_last_sync(
        self, store, registry, clock
    ):
        integrations = IntegrationRepository(store, clock)
        jobs = SyncJobRepository(store, clock)
        first = await integrations.create("Donor CRM", "third_party")
        second = await integrations.create("Newsletter", "external")
        clock.advance(hours=1)

        tasks = default_maintenance_tasks(
            registry, jobs, integrations, RandomIntegrationHealthCheck(0.0), clock=clock
        )
        report = await MaintenanceRunner(tasks).run()

        assert "update_integration_health" in report.tasks_completed
        for integration_id in (first.id, second.id):
            stored = await integrations.get(integration_id)
            assert stored.status == IntegrationStatus.ERROR
            assert stored.last_sync == clock.now()

    @pytest.mark.asyncio
    async def test_missing_service_fails_only_its_task(self, store, analytics, clock):
        registry = ServiceRegistry.from_mapping({
            "reports": ReportsService(store, clock),
            "systemMonitoring": SystemMonitoringService(store, analytics, clock),
        })
        tasks = default_maintenance_tasks(
            registry,
            SyncJobRepository(store, clock),
            IntegrationRepository(store, clock),
            RandomIntegrationHealthCheck(1.0),
            clock=clock,
        )

        report = await MaintenanceRunner(tasks).run()

        assert report.tasks_failed == ["process_zakat_reminders"]
        assert len(report.tasks_completed) == 4

        zakat_task = next(t for t in tasks if t.name == "process_zakat_reminders")
        with pytest.raises(MaintenanceTaskError) as exc_info:
            await zakat_task.action()
        assert exc_info.value.task_name == "process_zakat_reminders"
        assert "zakatCalculator" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_metrics_are_recorded(self, manager, store):
        await manager.run_maintenance_tasks()

        names = {r["metric_name"] for r in await store.select("system_metrics")}
        assert {"response_time", "active_users", "events_today"} <= names

    @pytest.mark.asyncio
    async def test_run_is_tracked(self, manager, analytics, clock):
        await manager.run_maintenance_tasks()

        assert await analytics.count_events_since(
            clock.start_of_day(), "maintenance_tasks_completed"
        ) == 1

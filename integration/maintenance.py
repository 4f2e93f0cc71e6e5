"""
Integration Manager - Maintenance Task Runner.

============================================================
RESPONSIBILITY
============================================================
Runs an ordered list of upkeep tasks and reports which ones
succeeded. A failing task is recorded and the run moves on;
nothing is rolled back.

Default tasks, in order:
1. cleanup_old_sync_jobs
2. update_integration_health
3. process_zakat_reminders
4. process_scheduled_reports
5. record_system_metrics

============================================================
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from analytics.tracker import AnalyticsTracker, safe_track
from core.clock import ClockFactory, ClockProtocol
from core.exceptions import MaintenanceTaskError
from integration.config import MaintenanceSettings
from integration.integration_checks import IntegrationHealthCheck
from integration.models import IntegrationStatus, MaintenanceReport
from integration.registry import ServiceRegistry
from integration.repository import IntegrationRepository, SyncJobRepository


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaintenanceTask:
    """A named upkeep action."""
    name: str
    action: Callable[[], Awaitable[Any]]


class MaintenanceRunner:
    """
    Sequential, failure-isolated task runner.

    Usage:
        runner = MaintenanceRunner(tasks, analytics)
        report = await runner.run()
    """

    def __init__(
        self,
        tasks: Sequence[MaintenanceTask],
        analytics: Optional[AnalyticsTracker] = None,
    ) -> None:
        self._tasks = list(tasks)
        self._analytics = analytics

    @property
    def task_names(self) -> List[str]:
        return [t.name for t in self._tasks]

    async def run(self) -> MaintenanceReport:
        """
        Run every task once, in order.

        Never raises for a task failure; the task lands in
        tasks_failed instead.
        """
        start = time.perf_counter()
        report = MaintenanceReport()

        for task in self._tasks:
            try:
                await task.action()
            except Exception as e:
                logger.error(f"Maintenance task {task.name} failed: {e}")
                report.tasks_failed.append(task.name)
            else:
                logger.info(f"Maintenance task {task.name} completed")
                report.tasks_completed.append(task.name)

        report.total_duration_ms = round((time.perf_counter() - start) * 1000)

        await safe_track(self._analytics, "maintenance_tasks_completed", "system", {
            "completed_tasks": list(report.tasks_completed),
            "failed_tasks": list(report.tasks_failed),
            "duration_ms": report.total_duration_ms,
        })

        logger.info(
            f"Maintenance run finished in {report.total_duration_ms}ms: "
            f"{len(report.tasks_completed)} completed, {len(report.tasks_failed)} failed"
        )
        return report


# =============================================================
# DEFAULT TASKS
# =============================================================


async def cleanup_old_sync_jobs(
    jobs: SyncJobRepository,
    retention_days: int,
    clock: ClockProtocol,
) -> int:
    """Delete completed sync jobs older than the retention window."""
    return await jobs.delete_completed_before(clock.days_ago(retention_days))


async def update_integration_health(
    integrations: IntegrationRepository,
    check: IntegrationHealthCheck,
    clock: ClockProtocol,
) -> int:
    """
    Re-check every integration and stamp status and last_sync.

    Returns:
        Number of integrations found unhealthy
    """
    unhealthy = 0
    for integration in await integrations.list_all():
        healthy = await check.check(integration)
        if not healthy:
            unhealthy += 1
        await integrations.update(integration.id, {
            "status": IntegrationStatus.ACTIVE if healthy else IntegrationStatus.ERROR,
            "last_sync": clock.now(),
        })
    if unhealthy:
        logger.warning(f"{unhealthy} integration(s) marked as error")
    return unhealthy


def default_maintenance_tasks(
    registry: ServiceRegistry,
    jobs: SyncJobRepository,
    integrations: IntegrationRepository,
    integration_check: IntegrationHealthCheck,
    settings: Optional[MaintenanceSettings] = None,
    clock: Optional[ClockProtocol] = None,
) -> List[MaintenanceTask]:
    """
    The five standard upkeep tasks.

    Service lookups happen when a task runs, so a missing
    service fails only its own task.
    """
    settings = settings or MaintenanceSettings()
    clock = clock or ClockFactory.get_clock()

    def service(name: str, task_name: str) -> Any:
        try:
            return registry.require(name)
        except KeyError as e:
            raise MaintenanceTaskError(str(e.args[0]), task_name=task_name) from None

    async def process_zakat_reminders() -> Any:
        return await service("zakatCalculator", "process_zakat_reminders").process_scheduled_reminders()

    async def process_scheduled_reports() -> Any:
        return await service("reports", "process_scheduled_reports").process_scheduled_reports()

    async def record_system_metrics() -> Any:
        return await service("systemMonitoring", "record_system_metrics").record_metrics()

    return [
        MaintenanceTask(
            "cleanup_old_sync_jobs",
            lambda: cleanup_old_sync_jobs(jobs, settings.sync_job_retention_days, clock),
        ),
        MaintenanceTask(
            "update_integration_health",
            lambda: update_integration_health(integrations, integration_check, clock),
        ),
        MaintenanceTask("process_zakat_reminders", process_zakat_reminders),
        MaintenanceTask("process_scheduled_reports", process_scheduled_reports),
        MaintenanceTask("record_system_metrics", record_system_metrics),
    ]

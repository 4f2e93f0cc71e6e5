"""
Integration Manager - Facade.

============================================================
RESPONSIBILITY
============================================================
Single entry point the admin surface talks to.

- Service health: concurrent probes + rollup
- Integrations: list / create / update
- Sync jobs: create (queued), list, process
- Maintenance: ordered, failure-isolated upkeep run
- Bulk operations: export / import / cleanup / migration
- Rate limiting and the system health dashboard

============================================================
FAILURE POLICY
============================================================
CRUD and dispatch operations log the error, hand it to the
error reporter and re-raise. Health checks and maintenance
turn failures into data and do not raise for them.

Analytics is best effort everywhere.

============================================================
"""

import asyncio
import logging
import random
from typing import Any, Dict, List, Mapping, Optional

from analytics.tracker import AnalyticsTracker, safe_track
from core.clock import ClockFactory, ClockProtocol
from core.error_reporter import ErrorReporter, get_error_reporter
from core.exceptions import ErrorCategory, PortalException, Severity
from integration.bulk import BulkOperationDispatcher
from integration.config import IntegrationConfig, get_config
from integration.health import ServiceHealthAggregator, rollup
from integration.integration_checks import IntegrationHealthCheck, build_integration_check
from integration.maintenance import MaintenanceRunner, default_maintenance_tasks
from integration.models import (
    BulkOperation,
    BulkOperationResult,
    DataSyncJob,
    IntegrationStatus,
    MaintenanceReport,
    ServiceState,
    ServiceStatus,
    SystemHealthDashboard,
    SystemIntegration,
    SystemMetrics,
)
from integration.rate_limit import FixedWindowRateLimiter
from integration.registry import ServiceRegistry
from integration.repository import IntegrationRepository, SyncJobRepository
from integration.sync_jobs import SimulatedSyncEngine, SyncEngine, SyncJobProcessor, SyncJobQueue
from storage.gateway import RecordStore


logger = logging.getLogger(__name__)


RECENT_SYNC_JOBS_LIMIT = 10


class IntegrationManager:
    """
    Facade over the integration layer.

    All collaborators are injected; anything not given is built
    from the configuration.

    Usage:
        manager = IntegrationManager(store, registry, analytics)
        dashboard = await manager.get_system_health_dashboard()
        await manager.close()
    """

    def __init__(
        self,
        store: RecordStore,
        registry: ServiceRegistry,
        analytics: Optional[AnalyticsTracker] = None,
        config: Optional[IntegrationConfig] = None,
        clock: Optional[ClockProtocol] = None,
        error_reporter: Optional[ErrorReporter] = None,
        sync_engine: Optional[SyncEngine] = None,
        integration_check: Optional[IntegrationHealthCheck] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._config = config or get_config()
        self._clock = clock or ClockFactory.get_clock()
        self._registry = registry
        self._analytics = analytics
        self._errors = error_reporter if error_reporter is not None else get_error_reporter()

        self.integrations = IntegrationRepository(store, self._clock)
        self.sync_jobs = SyncJobRepository(store, self._clock)

        self._health = ServiceHealthAggregator(
            registry, store, self._config.health, self._clock
        )

        engine = sync_engine or SimulatedSyncEngine(
            step=self._config.sync.progress_step,
            step_delay_seconds=self._config.sync.step_delay_seconds,
        )
        self._processor = SyncJobProcessor(self.sync_jobs, engine, analytics, self._errors)
        self._queue = SyncJobQueue(self._processor, self._config.sync.worker_count)

        self._integration_check = integration_check or build_integration_check(self._config.maintenance)
        self._maintenance = MaintenanceRunner(
            default_maintenance_tasks(
                registry,
                self.sync_jobs,
                self.integrations,
                self._integration_check,
                self._config.maintenance,
                self._clock,
            ),
            analytics,
        )

        self._bulk = BulkOperationDispatcher(
            analytics,
            export_base_url=self._config.export_base_url,
            rng=rng,
            clock=self._clock,
        )
        self._rate_limiter = FixedWindowRateLimiter(
            self._config.rate_limit.requests,
            self._config.rate_limit.window_seconds,
            self._clock,
        )

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry

    @property
    def sync_queue(self) -> SyncJobQueue:
        return self._queue

    @property
    def maintenance(self) -> MaintenanceRunner:
        return self._maintenance

    @property
    def error_reporter(self) -> ErrorReporter:
        return self._errors

    def _report(self, error: BaseException, action: str, **metadata: Any) -> None:
        metadata["action"] = action
        if isinstance(error, PortalException):
            self._errors.handle_error(error, metadata=metadata)
        else:
            self._errors.handle_error(
                error, category=ErrorCategory.SYSTEM, severity=Severity.HIGH, metadata=metadata
            )

    # =========================================================
    # SERVICE HEALTH
    # =========================================================

    async def check_all_api_services(self) -> List[ServiceStatus]:
        """One status per registered service, in registry order."""
        return await self._health.check_all()

    # =========================================================
    # INTEGRATIONS
    # =========================================================

    async def list_integrations(self) -> List[SystemIntegration]:
        try:
            return await self.integrations.list_all()
        except Exception as e:
            logger.error(f"Error fetching system integrations: {e}")
            self._report(e, "list_integrations")
            raise

    async def create_integration(
        self,
        name: str,
        type: str,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        configuration: Optional[Mapping[str, Any]] = None,
    ) -> SystemIntegration:
        """Register an integration (status active, no errors)."""
        try:
            integration = await self.integrations.create(name, type, endpoint, api_key, configuration)
        except Exception as e:
            logger.error(f"Error creating system integration: {e}")
            self._report(e, "create_integration", name=name)
            raise

        await safe_track(self._analytics, "integration_created", "system", {
            "integration_id": integration.id,
            "integration_name": integration.name,
            "integration_type": integration.type.value,
        })
        return integration

    async def update_integration(self, integration_id: str, fields: Mapping[str, Any]) -> SystemIntegration:
        """Merge-update; last writer wins."""
        try:
            return await self.integrations.update(integration_id, fields)
        except Exception as e:
            logger.error(f"Error updating system integration {integration_id}: {e}")
            self._report(e, "update_integration", integration_id=integration_id)
            raise

    # =========================================================
    # SYNC JOBS
    # =========================================================

    async def create_sync_job(
        self,
        integration_id: str,
        job_type: str,
        total_records: Optional[int] = None,
    ) -> DataSyncJob:
        """
        Create a pending job and queue it for processing.

        Returns as soon as the job is stored; use
        wait_for_sync_jobs() to wait for the queue to drain.
        """
        try:
            job = await self.sync_jobs.create(integration_id, job_type, total_records)
        except Exception as e:
            logger.error(f"Error creating sync job: {e}")
            self._report(e, "create_sync_job", integration_id=integration_id)
            raise

        self._queue.enqueue(job.id)
        return job

    async def process_sync_job(self, job_id: str) -> Optional[DataSyncJob]:
        """Run one pending job inline instead of through the queue."""
        return await self._processor.process(job_id)

    async def list_sync_jobs(
        self,
        integration_id: Optional[str] = None,
        status: Optional[str] = None,
        job_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[DataSyncJob]:
        """Filtered, newest first."""
        try:
            return await self.sync_jobs.list(integration_id, status, job_type, limit)
        except Exception as e:
            logger.error(f"Error fetching sync jobs: {e}")
            self._report(e, "list_sync_jobs")
            raise

    async def wait_for_sync_jobs(self) -> None:
        await self._queue.join()

    # =========================================================
    # MAINTENANCE / BULK
    # =========================================================

    async def run_maintenance_tasks(self) -> MaintenanceReport:
        return await self._maintenance.run()

    async def perform_bulk_operation(self, operation: BulkOperation) -> BulkOperationResult:
        try:
            return await self._bulk.perform(operation)
        except Exception as e:
            logger.error(f"Error performing bulk operation: {e}")
            self._report(e, "perform_bulk_operation", operation_type=str(operation.type))
            raise

    # =========================================================
    # RATE LIMITING
    # =========================================================

    def check_rate_limit(self, api_key: str, endpoint: str) -> Dict[str, Any]:
        """
        Consume one request for (api_key, endpoint).

        An internal failure allows the request with a full quota.
        """
        try:
            return self._rate_limiter.check(api_key, endpoint).to_dict()
        except Exception as e:
            logger.error(f"Error checking rate limit: {e}")
            return {
                "allowed": True,
                "remaining_requests": self._rate_limiter.max_requests,
                "reset_time": self._rate_limiter.next_reset().isoformat(),
            }

    # =========================================================
    # DASHBOARD
    # =========================================================

    async def _api_calls_today(self) -> int:
        if self._analytics is None:
            return 0
        return await self._analytics.count_events_since(self._clock.start_of_day())

    async def get_system_health_dashboard(self) -> SystemHealthDashboard:
        """Services, integrations and recent jobs, gathered concurrently."""
        # Let every part settle before surfacing the first failure
        results = await asyncio.gather(
            self.check_all_api_services(),
            self.integrations.list_all(),
            self.sync_jobs.list(limit=RECENT_SYNC_JOBS_LIMIT),
            self._api_calls_today(),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Error fetching system health dashboard: {result}")
                self._report(result, "get_system_health_dashboard")
                raise result
        services, integrations, jobs, api_calls = results

        outages = sum(1 for s in services if s.status == ServiceState.OUTAGE)
        if services:
            average = round(sum(s.response_time_ms or 0 for s in services) / len(services))
            error_rate = round(outages / len(services) * 100, 2)
        else:
            average, error_rate = 0, 0.0

        return SystemHealthDashboard(
            overall_status=rollup(services),
            api_services=services,
            integrations=integrations,
            recent_sync_jobs=jobs,
            system_metrics=SystemMetrics(
                total_api_calls_today=api_calls,
                average_response_time=average,
                error_rate=error_rate,
                active_integrations=sum(
                    1 for i in integrations if i.status == IntegrationStatus.ACTIVE
                ),
            ),
        )

    # =========================================================
    # LIFECYCLE
    # =========================================================

    async def initialize_all_services(self) -> MaintenanceReport:
        """
        Startup sequence: automated checks, service health,
        initial maintenance.
        """
        logger.info("Initializing integration manager...")
        try:
            monitoring = self._registry.get("systemMonitoring")
            if monitoring is not None and hasattr(monitoring, "run_automated_checks"):
                await monitoring.run_automated_checks()

            statuses = await self.check_all_api_services()
            for status in statuses:
                logger.info(f"Service {status.name}: {status.status.value}")

            report = await self.run_maintenance_tasks()
            logger.info(f"Initial maintenance completed: {report.to_dict()}")
        except Exception as e:
            logger.error(f"Error initializing services: {e}")
            self._report(e, "initialize_all_services")
            raise

        logger.info("Integration manager initialized successfully")
        return report

    async def close(self) -> None:
        """Stop sync workers and release HTTP resources."""
        await self._queue.stop()
        await self._integration_check.close()

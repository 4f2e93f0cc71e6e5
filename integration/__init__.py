"""
Integration Manager Package.

============================================================
PURPOSE
============================================================
Operational backbone of the portal's admin surface:

- Service health aggregation over the service registry
- Integration registry and sync job processing
- Maintenance task runner
- Bulk data operation dispatcher

============================================================
USAGE
============================================================

    from integration import IntegrationManager
    from services.registry import build_default_registry

    registry = build_default_registry(store, analytics)
    manager = IntegrationManager(store, registry, analytics)
    statuses = await manager.check_all_api_services()

============================================================
"""

from integration.config import IntegrationConfig, get_config, set_config
from integration.health import ServiceHealthAggregator, rollup
from integration.manager import IntegrationManager
from integration.models import (
    BulkOperation,
    BulkOperationResult,
    DataSyncJob,
    IntegrationStatus,
    IntegrationType,
    JobStatus,
    JobType,
    MaintenanceReport,
    OverallStatus,
    ServiceState,
    ServiceStatus,
    SystemHealthDashboard,
    SystemIntegration,
)
from integration.registry import ServiceRegistry


__all__ = [
    "IntegrationConfig",
    "get_config",
    "set_config",
    "ServiceHealthAggregator",
    "rollup",
    "IntegrationManager",
    "BulkOperation",
    "BulkOperationResult",
    "DataSyncJob",
    "IntegrationStatus",
    "IntegrationType",
    "JobStatus",
    "JobType",
    "MaintenanceReport",
    "OverallStatus",
    "ServiceState",
    "ServiceStatus",
    "SystemHealthDashboard",
    "SystemIntegration",
    "ServiceRegistry",
]

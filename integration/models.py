"""
Integration Manager - Data Models.

============================================================
CORE DATA STRUCTURES
============================================================

- ServiceState / OverallStatus: per-service and rolled-up health
- IntegrationType / IntegrationStatus: registered integrations
- JobType / JobStatus: sync job kinds and lifecycle
- ServiceStatus: one service's health at a point in time
- SystemIntegration / DataSyncJob: persisted records
- SystemHealthDashboard: aggregate view for the admin page
- MaintenanceReport: outcome of a maintenance run
- BulkOperation / BulkOperationResult: bulk dispatch I/O

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from core.clock import ensure_utc


# =============================================================
# ENUMS
# =============================================================


class ServiceState(str, Enum):
    """Health of a single service."""
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    OUTAGE = "outage"


class OverallStatus(str, Enum):
    """
    Rolled-up system health.

    - HEALTHY: every service operational
    - DEGRADED: at least one degraded, none in outage
    - CRITICAL: at least one outage
    """
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


class IntegrationType(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    THIRD_PARTY = "third_party"


class IntegrationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class JobType(str, Enum):
    IMPORT = "import"
    EXPORT = "export"
    SYNC = "sync"
    BACKUP = "backup"


class JobStatus(str, Enum):
    """
    Sync job lifecycle.

    pending -> running -> completed | failed
    """
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class BulkOperationType(str, Enum):
    EXPORT = "export"
    IMPORT = "import"
    CLEANUP = "cleanup"
    MIGRATION = "migration"


def _dt(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return ensure_utc(value)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================
# SERVICE HEALTH
# =============================================================


@dataclass(frozen=True)
class ServiceStatus:
    """Health of one registered service at one instant."""
    name: str
    status: ServiceState
    last_checked: datetime
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "last_checked": self.last_checked.isoformat(),
            "response_time_ms": self.response_time_ms,
            "error_message": self.error_message,
        }


# =============================================================
# PERSISTED RECORDS
# =============================================================


@dataclass
class SystemIntegration:
    """A registered internal / external / third-party endpoint."""
    id: str
    name: str
    type: IntegrationType
    status: IntegrationStatus
    created_at: datetime
    updated_at: datetime
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    configuration: Dict[str, Any] = field(default_factory=dict)
    last_sync: Optional[datetime] = None
    error_count: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SystemIntegration":
        return cls(
            id=row["id"],
            name=row["name"],
            type=IntegrationType(row["type"]),
            status=IntegrationStatus(row["status"]),
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
            endpoint=row.get("endpoint"),
            api_key=row.get("api_key"),
            configuration=dict(row.get("configuration") or {}),
            last_sync=_dt(row.get("last_sync")),
            error_count=row.get("error_count") or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "status": self.status.value,
            "endpoint": self.endpoint,
            "api_key": self.api_key,
            "configuration": self.configuration,
            "last_sync": _iso(self.last_sync),
            "error_count": self.error_count,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class DataSyncJob:
    """One import / export / sync / backup run against an integration."""
    id: str
    integration_id: str
    job_type: JobType
    status: JobStatus
    created_at: datetime
    progress_percentage: int = 0
    records_processed: int = 0
    total_records: int = 0
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DataSyncJob":
        return cls(
            id=row["id"],
            integration_id=row["integration_id"],
            job_type=JobType(row["job_type"]),
            status=JobStatus(row["status"]),
            created_at=_dt(row["created_at"]),
            progress_percentage=row.get("progress_percentage") or 0,
            records_processed=row.get("records_processed") or 0,
            total_records=row.get("total_records") or 0,
            error_message=row.get("error_message"),
            started_at=_dt(row.get("started_at")),
            completed_at=_dt(row.get("completed_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "integration_id": self.integration_id,
            "job_type": self.job_type.value,
            "status": self.status.value,
            "progress_percentage": self.progress_percentage,
            "records_processed": self.records_processed,
            "total_records": self.total_records,
            "error_message": self.error_message,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "created_at": _iso(self.created_at),
        }


# =============================================================
# AGGREGATES
# =============================================================


@dataclass
class SystemMetrics:
    """Headline numbers on the health dashboard."""
    total_api_calls_today: int = 0
    average_response_time: int = 0
    error_rate: float = 0.0
    active_integrations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_api_calls_today": self.total_api_calls_today,
            "average_response_time": self.average_response_time,
            "error_rate": self.error_rate,
            "active_integrations": self.active_integrations,
        }


@dataclass
class SystemHealthDashboard:
    """Everything the admin health page shows."""
    overall_status: OverallStatus
    api_services: List[ServiceStatus]
    integrations: List[SystemIntegration]
    recent_sync_jobs: List[DataSyncJob]
    system_metrics: SystemMetrics

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_status": self.overall_status.value,
            "api_services": [s.to_dict() for s in self.api_services],
            "integrations": [i.to_dict() for i in self.integrations],
            "recent_sync_jobs": [j.to_dict() for j in self.recent_sync_jobs],
            "system_metrics": self.system_metrics.to_dict(),
        }


@dataclass
class MaintenanceReport:
    """Outcome of one maintenance run."""
    tasks_completed: List[str] = field(default_factory=list)
    tasks_failed: List[str] = field(default_factory=list)
    total_duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tasks_completed": list(self.tasks_completed),
            "tasks_failed": list(self.tasks_failed),
            "total_duration_ms": self.total_duration_ms,
        }


@dataclass
class BulkOperation:
    """A bulk request. `type` is validated by the dispatcher, not here."""
    type: str
    tables: List[str]
    filters: Dict[str, Any] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BulkOperationResult:
    success: bool
    message: str
    records_affected: int
    file_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "records_affected": self.records_affected,
            "file_url": self.file_url,
        }

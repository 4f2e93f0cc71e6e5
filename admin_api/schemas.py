"""
Pydantic schemas for the integration admin API.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================
# ENUMS
# =============================================================

class IntegrationTypeEnum(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    THIRD_PARTY = "third_party"


class IntegrationStatusEnum(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class JobTypeEnum(str, Enum):
    IMPORT = "import"
    EXPORT = "export"
    SYNC = "sync"
    BACKUP = "backup"


class JobStatusEnum(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================
# SERVICE HEALTH
# =============================================================

class ServiceStatusResponse(BaseModel):
    name: str
    status: str  # operational, degraded, outage
    last_checked: datetime
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None


class SystemMetricsResponse(BaseModel):
    total_api_calls_today: int
    average_response_time: int
    error_rate: float
    active_integrations: int


# =============================================================
# INTEGRATIONS
# =============================================================

class IntegrationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: IntegrationTypeEnum
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    configuration: Dict[str, Any] = Field(default_factory=dict)


class IntegrationUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[IntegrationTypeEnum] = None
    status: Optional[IntegrationStatusEnum] = None
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    configuration: Optional[Dict[str, Any]] = None
    error_count: Optional[int] = Field(None, ge=0)


class IntegrationResponse(BaseModel):
    id: str
    name: str
    type: str
    status: str
    endpoint: Optional[str] = None
    configuration: Dict[str, Any] = Field(default_factory=dict)
    last_sync: Optional[datetime] = None
    error_count: int
    created_at: datetime
    updated_at: datetime


# =============================================================
# SYNC JOBS
# =============================================================

class SyncJobCreate(BaseModel):
    integration_id: str
    job_type: JobTypeEnum
    total_records: Optional[int] = Field(None, ge=0)


class SyncJobResponse(BaseModel):
    id: str
    integration_id: str
    job_type: str
    status: str
    progress_percentage: int
    records_processed: int
    total_records: int
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


# =============================================================
# DASHBOARD / MAINTENANCE / BULK
# =============================================================

class SystemHealthDashboardResponse(BaseModel):
    overall_status: str  # healthy, degraded, critical
    api_services: List[ServiceStatusResponse]
    integrations: List[IntegrationResponse]
    recent_sync_jobs: List[SyncJobResponse]
    system_metrics: SystemMetricsResponse


class MaintenanceReportResponse(BaseModel):
    tasks_completed: List[str]
    tasks_failed: List[str]
    total_duration_ms: int


class BulkOperationRequest(BaseModel):
    # Validated by the dispatcher so unknown types get its error message
    type: str
    tables: List[str] = Field(..., min_length=1)
    filters: Dict[str, Any] = Field(default_factory=dict)
    options: Dict[str, Any] = Field(default_factory=dict)


class BulkOperationResponse(BaseModel):
    success: bool
    message: str
    records_affected: int
    file_url: Optional[str] = None


class RateLimitResponse(BaseModel):
    allowed: bool
    remaining_requests: int
    reset_time: datetime


class ErrorReportResponse(BaseModel):
    id: str
    message: str
    category: str
    severity: str
    timestamp: datetime
    error_type: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

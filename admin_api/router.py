"""
FastAPI Router for Integration Admin Endpoints.

Provides REST API over the integration manager:
- System health dashboard and service checks
- Integration registry
- Sync jobs
- Maintenance and bulk operations
- Rate limit checks and recent errors
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from admin_api.schemas import (
    BulkOperationRequest,
    BulkOperationResponse,
    ErrorReportResponse,
    IntegrationCreate,
    IntegrationResponse,
    IntegrationUpdate,
    JobStatusEnum,
    JobTypeEnum,
    MaintenanceReportResponse,
    RateLimitResponse,
    ServiceStatusResponse,
    SyncJobCreate,
    SyncJobResponse,
    SystemHealthDashboardResponse,
)
from core.exceptions import ValidationError
from integration.manager import IntegrationManager
from integration.models import BulkOperation
from storage.exceptions import IntegrityError, RecordNotFoundError, StoreError

router = APIRouter(prefix="/integration", tags=["Integration Manager"])


# =============================================================
# HELPER: Manager dependency
# =============================================================

def get_manager(request: Request) -> IntegrationManager:
    manager = getattr(request.app.state, "integration_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Integration manager not initialized")
    return manager


def _http_error(error: Exception) -> HTTPException:
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=error.message)
    if isinstance(error, RecordNotFoundError):
        return HTTPException(status_code=404, detail=error.message)
    if isinstance(error, IntegrityError):
        return HTTPException(status_code=409, detail="Request conflicts with existing data")
    return HTTPException(status_code=500, detail=str(error))


# =============================================================
# HEALTH ENDPOINTS
# =============================================================

@router.get("/dashboard", response_model=SystemHealthDashboardResponse)
async def get_dashboard(manager: IntegrationManager = Depends(get_manager)):
    """
    System health dashboard.

    Service statuses, integrations, the 10 most recent sync
    jobs and headline metrics.
    """
    try:
        dashboard = await manager.get_system_health_dashboard()
    except StoreError as e:
        raise _http_error(e)
    return SystemHealthDashboardResponse.model_validate(dashboard.to_dict())


@router.get("/services", response_model=List[ServiceStatusResponse])
async def check_services(manager: IntegrationManager = Depends(get_manager)):
    """Probe every registered service, in registry order."""
    statuses = await manager.check_all_api_services()
    return [ServiceStatusResponse.model_validate(s.to_dict()) for s in statuses]


# =============================================================
# INTEGRATION ENDPOINTS
# =============================================================

@router.get("/integrations", response_model=List[IntegrationResponse])
async def list_integrations(manager: IntegrationManager = Depends(get_manager)):
    try:
        integrations = await manager.list_integrations()
    except StoreError as e:
        raise _http_error(e)
    return [IntegrationResponse.model_validate(i.to_dict()) for i in integrations]


@router.post("/integrations", response_model=IntegrationResponse, status_code=status.HTTP_201_CREATED)
async def create_integration(
    body: IntegrationCreate,
    manager: IntegrationManager = Depends(get_manager),
):
    try:
        integration = await manager.create_integration(
            name=body.name,
            type=body.type.value,
            endpoint=body.endpoint,
            api_key=body.api_key,
            configuration=body.configuration,
        )
    except (ValidationError, StoreError) as e:
        raise _http_error(e)
    return IntegrationResponse.model_validate(integration.to_dict())


@router.patch("/integrations/{integration_id}", response_model=IntegrationResponse)
async def update_integration(
    integration_id: str,
    body: IntegrationUpdate,
    manager: IntegrationManager = Depends(get_manager),
):
    """Partial update. Fields left out of the body are untouched."""
    fields = body.model_dump(mode="json", exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    try:
        integration = await manager.update_integration(integration_id, fields)
    except (ValidationError, StoreError) as e:
        raise _http_error(e)
    return IntegrationResponse.model_validate(integration.to_dict())


# =============================================================
# SYNC JOB ENDPOINTS
# =============================================================

@router.get("/sync-jobs", response_model=List[SyncJobResponse])
async def list_sync_jobs(
    integration_id: Optional[str] = Query(None),
    status_filter: Optional[JobStatusEnum] = Query(None, alias="status"),
    job_type: Optional[JobTypeEnum] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    manager: IntegrationManager = Depends(get_manager),
):
    """Sync jobs, newest first."""
    try:
        jobs = await manager.list_sync_jobs(
            integration_id=integration_id,
            status=status_filter.value if status_filter else None,
            job_type=job_type.value if job_type else None,
            limit=limit,
        )
    except StoreError as e:
        raise _http_error(e)
    return [SyncJobResponse.model_validate(j.to_dict()) for j in jobs]


@router.post("/sync-jobs", response_model=SyncJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_sync_job(
    body: SyncJobCreate,
    manager: IntegrationManager = Depends(get_manager),
):
    """
    Queue a sync job.

    Returns the pending job immediately; poll GET /sync-jobs
    for progress.
    """
    try:
        job = await manager.create_sync_job(body.integration_id, body.job_type.value, body.total_records)
    except (ValidationError, StoreError) as e:
        raise _http_error(e)
    return SyncJobResponse.model_validate(job.to_dict())


# =============================================================
# OPERATIONS ENDPOINTS
# =============================================================

@router.post("/maintenance", response_model=MaintenanceReportResponse)
async def run_maintenance(manager: IntegrationManager = Depends(get_manager)):
    report = await manager.run_maintenance_tasks()
    return MaintenanceReportResponse.model_validate(report.to_dict())


@router.post("/bulk", response_model=BulkOperationResponse)
async def perform_bulk_operation(
    body: BulkOperationRequest,
    manager: IntegrationManager = Depends(get_manager),
):
    operation = BulkOperation(
        type=body.type,
        tables=list(body.tables),
        filters=dict(body.filters),
        options=dict(body.options),
    )
    try:
        result = await manager.perform_bulk_operation(operation)
    except ValidationError as e:
        raise _http_error(e)
    return BulkOperationResponse.model_validate(result.to_dict())


@router.get("/rate-limit", response_model=RateLimitResponse)
async def check_rate_limit(
    api_key: str = Query(..., min_length=1),
    endpoint: str = Query(..., min_length=1),
    manager: IntegrationManager = Depends(get_manager),
):
    return RateLimitResponse.model_validate(manager.check_rate_limit(api_key, endpoint))


@router.get("/errors", response_model=List[ErrorReportResponse])
async def recent_errors(
    limit: int = Query(20, ge=1, le=100),
    manager: IntegrationManager = Depends(get_manager),
):
    """Most recent reported errors, newest first."""
    reports = manager.error_reporter.get_reports(limit=limit)
    return [ErrorReportResponse.model_validate(r.to_dict()) for r in reports]

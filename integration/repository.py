"""
Integration Manager - Repositories.

============================================================
PURPOSE
============================================================
Persisted bookkeeping for the integration manager:

- IntegrationRepository: system_integrations
- SyncJobRepository: data_sync_jobs and its state machine

Both go through the record store gateway and return typed
records. Store errors are logged and re-raised unchanged.

============================================================
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import SyncJobError, ValidationError
from integration.models import (
    DataSyncJob,
    IntegrationStatus,
    IntegrationType,
    JobStatus,
    JobType,
    SystemIntegration,
)
from storage.exceptions import RecordNotFoundError, StoreError
from storage.gateway import Filter, RecordStore


INTEGRATIONS_TABLE = "system_integrations"
SYNC_JOBS_TABLE = "data_sync_jobs"

# Columns callers may not overwrite through update()
_IMMUTABLE_INTEGRATION_FIELDS = frozenset({"id", "created_at"})


class BaseRepository:
    """
    Common plumbing for the integration repositories.

    Holds the store, clock and a per-repository logger.
    """

    def __init__(
        self,
        store: RecordStore,
        table: str,
        repository_name: str,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._store = store
        self._table = table
        self._repository_name = repository_name
        self._clock = clock or ClockFactory.get_clock()
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def table(self) -> str:
        return self._table

    def _log_error(self, operation: str, error: StoreError) -> None:
        self._logger.error(f"{self._repository_name}.{operation} failed: {error}")


# =============================================================
# INTEGRATIONS
# =============================================================


class IntegrationRepository(BaseRepository):
    """CRUD for registered integrations."""

    def __init__(self, store: RecordStore, clock: Optional[ClockProtocol] = None) -> None:
        super().__init__(store, INTEGRATIONS_TABLE, "IntegrationRepository", clock)

    async def list_all(self) -> List[SystemIntegration]:
        """All integrations, alphabetical by name."""
        try:
            rows = await self._store.select(self._table, order_by="name")
        except StoreError as e:
            self._log_error("list_all", e)
            raise
        return [SystemIntegration.from_row(r) for r in rows]

    async def get(self, integration_id: str) -> Optional[SystemIntegration]:
        row = await self._store.select_one(self._table, [Filter.eq("id", integration_id)])
        return SystemIntegration.from_row(row) if row else None

    async def create(
        self,
        name: str,
        type: str,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        configuration: Optional[Mapping[str, Any]] = None,
    ) -> SystemIntegration:
        """
        Register a new integration as active with no errors.

        Raises:
            ValidationError for an empty name or unknown type
            StoreError if the insert fails
        """
        if not name or not name.strip():
            raise ValidationError("Integration name is required", field="name")
        try:
            integration_type = IntegrationType(type)
        except ValueError:
            raise ValidationError(f"Unknown integration type: {type}", field="type", value=type) from None

        now = self._clock.now()
        try:
            row = await self._store.insert(self._table, {
                "name": name.strip(),
                "type": integration_type,
                "status": IntegrationStatus.ACTIVE,
                "endpoint": endpoint,
                "api_key": api_key,
                "configuration": dict(configuration or {}),
                "error_count": 0,
                "created_at": now,
                "updated_at": now,
            })
        except StoreError as e:
            self._log_error("create", e)
            raise

        self._logger.info(f"Created integration: id={row['id']} name={row['name']}")
        return SystemIntegration.from_row(row)

    async def update(self, integration_id: str, fields: Mapping[str, Any]) -> SystemIntegration:
        """
        Merge-update an integration. updated_at is always stamped.

        Last writer wins; there is no version check.

        Raises:
            ValidationError for immutable or invalid fields
            RecordNotFoundError if the id does not exist
        """
        values: Dict[str, Any] = dict(fields)
        blocked = _IMMUTABLE_INTEGRATION_FIELDS.intersection(values)
        if blocked:
            raise ValidationError(f"Cannot update fields: {sorted(blocked)}", field=sorted(blocked)[0])
        if "status" in values:
            values["status"] = _enum_field(IntegrationStatus, "status", values["status"])
        if "type" in values:
            values["type"] = _enum_field(IntegrationType, "type", values["type"])
        values["updated_at"] = self._clock.now()

        try:
            rows = await self._store.update(self._table, values, [Filter.eq("id", integration_id)])
        except StoreError as e:
            self._log_error("update", e)
            raise

        if not rows:
            raise RecordNotFoundError(self._table, integration_id)
        return SystemIntegration.from_row(rows[0])

    async def count_by_status(self, status: IntegrationStatus) -> int:
        return await self._store.count(self._table, [Filter.eq("status", status)])


def _enum_field(enum_cls, field_name: str, value: Any):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value}", field=field_name, value=value) from None


# =============================================================
# SYNC JOBS
# =============================================================


class SyncJobRepository(BaseRepository):
    """
    Persistence and state transitions for sync jobs.

    pending -> running -> completed | failed
    """

    def __init__(self, store: RecordStore, clock: Optional[ClockProtocol] = None) -> None:
        super().__init__(store, SYNC_JOBS_TABLE, "SyncJobRepository", clock)

    async def create(
        self,
        integration_id: str,
        job_type: str,
        total_records: Optional[int] = None,
    ) -> DataSyncJob:
        """
        Insert a pending job with zeroed counters.

        Raises:
            ValidationError for an unknown job type or negative total
            StoreError if the insert fails (e.g. unknown integration)
        """
        job_type = _enum_field(JobType, "job_type", job_type)
        total = total_records or 0
        if total < 0:
            raise ValidationError("total_records must be >= 0", field="total_records", value=total)

        try:
            row = await self._store.insert(self._table, {
                "integration_id": integration_id,
                "job_type": job_type,
                "status": JobStatus.PENDING,
                "progress_percentage": 0,
                "records_processed": 0,
                "total_records": total,
                "created_at": self._clock.now(),
            })
        except StoreError as e:
            self._log_error("create", e)
            raise

        self._logger.info(f"Created sync job: id={row['id']} type={job_type.value} integration={integration_id}")
        return DataSyncJob.from_row(row)

    async def get(self, job_id: str) -> Optional[DataSyncJob]:
        row = await self._store.select_one(self._table, [Filter.eq("id", job_id)])
        return DataSyncJob.from_row(row) if row else None

    async def list(
        self,
        integration_id: Optional[str] = None,
        status: Optional[str] = None,
        job_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[DataSyncJob]:
        """Jobs matching every given filter, newest first."""
        filters: List[Filter] = []
        if integration_id:
            filters.append(Filter.eq("integration_id", integration_id))
        if status:
            filters.append(Filter.eq("status", _enum_field(JobStatus, "status", status)))
        if job_type:
            filters.append(Filter.eq("job_type", _enum_field(JobType, "job_type", job_type)))

        try:
            rows = await self._store.select(
                self._table, filters, order_by="created_at", descending=True, limit=limit
            )
        except StoreError as e:
            self._log_error("list", e)
            raise
        return [DataSyncJob.from_row(r) for r in rows]

    # ---------------------------------------------------------
    # TRANSITIONS
    # ---------------------------------------------------------

    async def mark_running(self, job_id: str) -> DataSyncJob:
        """
        pending -> running, stamping started_at.

        Raises:
            SyncJobError if the job is not pending
        """
        rows = await self._store.update(
            self._table,
            {"status": JobStatus.RUNNING, "started_at": self._clock.now()},
            [Filter.eq("id", job_id), Filter.eq("status", JobStatus.PENDING)],
        )
        if not rows:
            raise SyncJobError(f"Sync job {job_id} is not pending", job_id=job_id)
        return DataSyncJob.from_row(rows[0])

    async def update_progress(self, job_id: str, percentage: int, records_processed: int) -> None:
        await self._store.update(
            self._table,
            {"progress_percentage": percentage, "records_processed": records_processed},
            [Filter.eq("id", job_id), Filter.eq("status", JobStatus.RUNNING)],
        )

    async def mark_completed(self, job_id: str, records_processed: int) -> DataSyncJob:
        rows = await self._store.update(
            self._table,
            {
                "status": JobStatus.COMPLETED,
                "progress_percentage": 100,
                "records_processed": records_processed,
                "completed_at": self._clock.now(),
            },
            [Filter.eq("id", job_id)],
        )
        if not rows:
            raise RecordNotFoundError(self._table, job_id)
        return DataSyncJob.from_row(rows[0])

    async def mark_failed(self, job_id: str, error_message: str) -> None:
        await self._store.update(
            self._table,
            {
                "status": JobStatus.FAILED,
                "error_message": error_message,
                "completed_at": self._clock.now(),
            },
            [Filter.eq("id", job_id)],
        )

    async def delete_completed_before(self, cutoff: datetime) -> int:
        """Purge completed jobs created before the cutoff."""
        deleted = await self._store.delete(
            self._table,
            [Filter.eq("status", JobStatus.COMPLETED), Filter.lt("created_at", cutoff)],
        )
        self._logger.info(f"Deleted {deleted} completed sync job(s) created before {cutoff.isoformat()}")
        return deleted

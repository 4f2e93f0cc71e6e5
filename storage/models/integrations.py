"""
Integration Domain ORM Models.

============================================================
PURPOSE
============================================================
Tables owned by the integration manager: registered system
integrations and the sync jobs run against them.

============================================================
DATA LIFECYCLE ROLE
============================================================
- system_integrations: MUTABLE (status / last_sync flipped
  by maintenance), never hard-deleted by this layer
- data_sync_jobs: MUTABLE while pending/running, terminal once
  completed/failed; completed rows purged after retention

============================================================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, IdMixin, TimestampMixin


class SystemIntegration(Base, IdMixin, TimestampMixin):
    """
    A registered internal / external / third-party endpoint.

    ============================================================
    LIFECYCLE
    ============================================================
    - Created with status='active', error_count=0
    - Maintenance flips status between 'active' and 'error'
      and stamps last_sync
    - Deletion is an external admin action

    ============================================================
    """

    __tablename__ = "system_integrations"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Display name"
    )

    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="internal, external, third_party"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        comment="active, inactive, error"
    )

    endpoint: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Base URL of the integration"
    )

    api_key: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Credential used against the endpoint"
    )

    configuration: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Opaque integration settings"
    )

    last_sync: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last health refresh / sync"
    )

    error_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of recorded failures"
    )

    __table_args__ = (
        Index("idx_integration_name", "name"),
        Index("idx_integration_status", "status"),
    )


class DataSyncJob(Base, IdMixin):
    """
    One import / export / sync / backup run against an integration.

    ============================================================
    STATE MACHINE
    ============================================================
    pending -> running -> completed
                       -> failed

    progress_percentage never decreases within one job and is
    100 on completion.

    ============================================================
    """

    __tablename__ = "data_sync_jobs"

    integration_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("system_integrations.id"),
        nullable=False,
        comment="Integration this job runs against"
    )

    job_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="import, export, sync, backup"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        comment="pending, running, completed, failed"
    )

    progress_percentage: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="0-100"
    )

    records_processed: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    total_records: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Failure reason when status='failed'"
    )

    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Record creation timestamp (UTC)"
    )

    __table_args__ = (
        Index("idx_sync_job_integration", "integration_id"),
        Index("idx_sync_job_status", "status"),
        Index("idx_sync_job_created_at", "created_at"),
    )

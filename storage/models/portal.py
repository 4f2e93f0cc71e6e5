"""
Portal Domain ORM Models.

============================================================
PURPOSE
============================================================
Tables read or written by the domain services the integration
manager calls into: members, events, reports, zakat reminders,
and the analytics tables used for telemetry.

Only the columns those services touch are modelled here; the
rest of each table belongs to the portal's CRUD services.

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, IdMixin, TimestampMixin


class Member(Base, IdMixin, TimestampMixin):
    """Organization member."""

    __tablename__ = "members"

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        comment="active, inactive, pending"
    )

    __table_args__ = (
        Index("idx_member_status", "status"),
    )


class Event(Base, IdMixin, TimestampMixin):
    """Community event."""

    __tablename__ = "events"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    __table_args__ = (
        Index("idx_event_starts_at", "starts_at"),
    )


class Donation(Base, IdMixin, TimestampMixin):
    """Recorded donation."""

    __tablename__ = "donations"

    member_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")


class Report(Base, IdMixin, TimestampMixin):
    """
    Generated or scheduled report.

    scheduled_for / is_recurring / recurrence_pattern drive the
    scheduled report processor.
    """

    __tablename__ = "reports"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    report_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="scheduled",
        comment="scheduled, generating, completed, failed"
    )
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_pattern: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="daily, weekly, monthly"
    )
    generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


class ZakatReminder(Base, IdMixin):
    """Reminder to pay zakat, optionally recurring."""

    __tablename__ = "zakat_reminders"

    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    reminder_type: Mapped[str] = mapped_column(String(30), nullable=False, default="annual")
    scheduled_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_pattern: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="monthly, yearly"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_zakat_reminder_due", "is_sent", "scheduled_date"),
    )


class AnalyticsEvent(Base, IdMixin):
    """Telemetry event (append-only)."""

    __tablename__ = "analytics_events"

    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    event_category: Mapped[str] = mapped_column(String(50), nullable=False)
    event_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    session_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    page_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_analytics_event_type", "event_type"),
        Index("idx_analytics_created_at", "created_at"),
    )


class SystemMetric(Base, IdMixin):
    """Point-in-time system metric sample (append-only)."""

    __tablename__ = "system_metrics"

    metric_name: Mapped[str] = mapped_column(String(100), nullable=False)
    metric_value: Mapped[float] = mapped_column(Float, nullable=False)
    metric_unit: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_system_metric_name", "metric_name", "recorded_at"),
    )

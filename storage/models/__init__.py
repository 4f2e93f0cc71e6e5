"""
Storage Models Package.

ORM models for every table the integration layer touches.
Importing this package registers all tables on Base.metadata.

============================================================
MODEL ORGANIZATION
============================================================

Integrations (integrations.py)
- SystemIntegration   -> system_integrations
- DataSyncJob         -> data_sync_jobs

Portal (portal.py)
- Member              -> members
- Event               -> events
- Donation            -> donations
- Report              -> reports
- ZakatReminder       -> zakat_reminders
- AnalyticsEvent      -> analytics_events
- SystemMetric        -> system_metrics

============================================================
"""

from storage.models.base import Base, IdMixin, TimestampMixin, new_id
from storage.models.integrations import DataSyncJob, SystemIntegration
from storage.models.portal import (
    AnalyticsEvent,
    Donation,
    Event,
    Member,
    Report,
    SystemMetric,
    ZakatReminder,
)


__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "new_id",
    "SystemIntegration",
    "DataSyncJob",
    "Member",
    "Event",
    "Donation",
    "Report",
    "ZakatReminder",
    "AnalyticsEvent",
    "SystemMetric",
]

"""
Default Service Registry.

Wires the portal's domain services into the registry the
health aggregator walks. Order here is the order of every
health report.
"""

import logging
from typing import Optional

from analytics.tracker import AnalyticsTracker
from core.clock import ClockFactory, ClockProtocol
from integration.registry import ServiceRegistry
from services.admin_dashboard import AdminDashboardService
from services.base import TableService
from services.events import EventService
from services.members import MemberService
from services.reports import ReportsService
from services.system_monitoring import SystemMonitoringService
from services.zakat import ZakatCalculatorService
from storage.gateway import RecordStore


logger = logging.getLogger(__name__)


# Registry name -> backing table for the plain CRUD services
TABLE_SERVICES = {
    "islamicEducation": "islamic_courses",
    "halalMarketplace": "halal_businesses",
    "course": "courses",
    "volunteer": "volunteers",
    "donations": "donations",
    "communication": "messages",
    "roleManagement": "user_roles",
    "userVerification": "verification_requests",
    "loginActivity": "login_activity",
    "attendance": "attendance_records",
    "liveStreaming": "live_streams",
    "library": "library_items",
    "support": "support_tickets",
    "tasks": "tasks",
    "websiteContent": "website_content",
    "media": "media_files",
    "prayerTimes": "prayer_times",
    "islamicFeatures": "islamic_features",
    "committee": "committees",
}

SERVICE_ORDER = (
    "adminDashboard",
    "reports",
    "islamicEducation",
    "systemMonitoring",
    "zakatCalculator",
    "halalMarketplace",
    "member",
    "event",
    "course",
    "volunteer",
    "donations",
    "communication",
    "roleManagement",
    "userVerification",
    "loginActivity",
    "attendance",
    "liveStreaming",
    "library",
    "support",
    "tasks",
    "websiteContent",
    "media",
    "prayerTimes",
    "islamicFeatures",
    "committee",
)


def build_default_registry(
    store: RecordStore,
    analytics: AnalyticsTracker,
    clock: Optional[ClockProtocol] = None,
) -> ServiceRegistry:
    """
    Build and freeze the portal's service registry.

    Args:
        store: Record store every service reads and writes through
        analytics: Telemetry collaborator for the monitoring service
        clock: Time source (defaults to the global clock)
    """
    clock = clock or ClockFactory.get_clock()

    special = {
        "adminDashboard": AdminDashboardService(store, clock),
        "reports": ReportsService(store, clock),
        "systemMonitoring": SystemMonitoringService(store, analytics, clock),
        "zakatCalculator": ZakatCalculatorService(store, clock),
        "member": MemberService(store, clock),
        "event": EventService(store, clock),
    }

    registry = ServiceRegistry()
    for name in SERVICE_ORDER:
        service = special.get(name) or TableService(name, TABLE_SERVICES[name], store, clock)
        registry.register(name, service)

    registry.freeze()
    logger.info(f"Built service registry with {len(registry)} services")
    return registry

"""
Domain Services Package.

The portal services the integration manager calls into, plus
generic registry entries for the rest.
"""

from services.admin_dashboard import AdminDashboardService
from services.base import DomainService, HealthProbe, TableService
from services.events import EventService
from services.members import MemberService
from services.reports import ReportsService
from services.system_monitoring import SystemMonitoringService
from services.zakat import ZakatCalculatorService


__all__ = [
    "AdminDashboardService",
    "DomainService",
    "HealthProbe",
    "TableService",
    "EventService",
    "MemberService",
    "ReportsService",
    "SystemMonitoringService",
    "ZakatCalculatorService",
]

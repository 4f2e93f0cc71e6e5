"""
Core Module Package.

Infrastructure shared by every other package:

Components:
- clock: Unified time abstraction
- exceptions: Custom exception hierarchy
- error_reporter: Categorised error reports
"""

from .clock import ClockFactory, ClockProtocol, MockClock, SystemClock
from .error_reporter import ErrorReport, ErrorReporter, get_error_reporter, set_error_reporter
from .exceptions import (
    ConfigurationError,
    ErrorCategory,
    IntegrationError,
    MaintenanceTaskError,
    PortalException,
    ProbeError,
    ServiceError,
    Severity,
    SyncJobError,
    UnsupportedOperationError,
    ValidationError,
)


__all__ = [
    "ClockFactory",
    "ClockProtocol",
    "MockClock",
    "SystemClock",
    "ErrorReport",
    "ErrorReporter",
    "get_error_reporter",
    "set_error_reporter",
    "ConfigurationError",
    "ErrorCategory",
    "IntegrationError",
    "MaintenanceTaskError",
    "PortalException",
    "ProbeError",
    "ServiceError",
    "Severity",
    "SyncJobError",
    "UnsupportedOperationError",
    "ValidationError",
]

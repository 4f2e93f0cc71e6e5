"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the exception hierarchy of the integration layer.

- Carries severity and category for the error reporter
- Carries context for debugging
- Separates caller mistakes from collaborator failures

============================================================
EXCEPTION HIERARCHY
============================================================
PortalException (base)
├── ConfigurationError
├── ValidationError
│   └── UnsupportedOperationError
├── IntegrationError
│   ├── SyncJobError
│   └── MaintenanceTaskError
└── ServiceError
    └── ProbeError

Store failures live in storage.exceptions (StoreError) and
are re-raised unchanged by the CRUD operations.

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY / CATEGORY
# ============================================================

class Severity(Enum):
    """Error severity levels for reporting."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Where an error originated, as shown on the admin dashboard."""

    NETWORK = "network"
    AUTH = "auth"
    VALIDATION = "validation"
    PERMISSION = "permission"
    API = "api"
    UI = "ui"
    SYSTEM = "system"
    UNKNOWN = "unknown"


# ============================================================
# BASE EXCEPTION
# ============================================================

class PortalException(Exception):
    """
    Base exception for all integration layer errors.

    All exceptions carry:
    - severity: for reporting
    - category: for grouping on the dashboard
    - context: for debugging
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_category: ErrorCategory = ErrorCategory.SYSTEM

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        category: Optional[ErrorCategory] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.category = category or self.default_category
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(PortalException):
    """Error in configuration."""

    default_severity = Severity.HIGH

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key
        super().__init__(message, context=context, **kwargs)


# ============================================================
# VALIDATION ERRORS
# ============================================================

class ValidationError(PortalException):
    """Caller supplied an invalid argument."""

    default_severity = Severity.LOW
    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]
        super().__init__(message, context=context, **kwargs)


class UnsupportedOperationError(ValidationError):
    """Bulk operation type is not one of export/import/cleanup/migration."""

    def __init__(self, operation_type: str):
        super().__init__(
            f"Unsupported operation type: {operation_type}",
            field="type",
            value=operation_type,
        )
        self.operation_type = operation_type


# ============================================================
# INTEGRATION ERRORS
# ============================================================

class IntegrationError(PortalException):
    """Base class for integration / sync failures."""

    default_severity = Severity.HIGH
    default_category = ErrorCategory.API


class SyncJobError(IntegrationError):
    """A sync job could not be processed."""

    def __init__(self, message: str, job_id: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if job_id:
            context["job_id"] = job_id
        super().__init__(message, context=context, **kwargs)
        self.job_id = job_id


class MaintenanceTaskError(IntegrationError):
    """A maintenance task failed."""

    default_category = ErrorCategory.SYSTEM

    def __init__(self, message: str, task_name: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if task_name:
            context["task_name"] = task_name
        super().__init__(message, context=context, **kwargs)
        self.task_name = task_name


# ============================================================
# SERVICE ERRORS
# ============================================================

class ServiceError(PortalException):
    """A domain service call failed."""

    default_category = ErrorCategory.API

    def __init__(self, message: str, service_name: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if service_name:
            context["service_name"] = service_name
        super().__init__(message, context=context, **kwargs)
        self.service_name = service_name


class ProbeError(ServiceError):
    """A health probe did not answer."""

    default_category = ErrorCategory.NETWORK


__all__ = [
    "Severity",
    "ErrorCategory",
    "PortalException",
    "ConfigurationError",
    "ValidationError",
    "UnsupportedOperationError",
    "IntegrationError",
    "SyncJobError",
    "MaintenanceTaskError",
    "ServiceError",
    "ProbeError",
]

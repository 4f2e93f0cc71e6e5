"""
Core Module - Error Reporter.

Collects categorised error reports from the integration layer
so the admin dashboard can show what went wrong recently.
Reports are logged and kept in a bounded in-memory queue.
"""

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from .clock import ClockFactory, ClockProtocol
from .exceptions import ErrorCategory, PortalException, Severity


logger = logging.getLogger(__name__)


_LOG_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}


@dataclass(frozen=True)
class ErrorReport:
    """One reported error."""
    id: str
    message: str
    category: ErrorCategory
    severity: Severity
    timestamp: datetime
    error_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "error_type": self.error_type,
            "metadata": self.metadata,
        }


class ErrorReporter:
    """
    Bounded queue of error reports.

    Oldest reports are dropped once max_queue_size is reached.
    """

    def __init__(
        self,
        max_queue_size: int = 100,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._clock = clock or ClockFactory.get_clock()
        self._queue: Deque[ErrorReport] = deque(maxlen=max_queue_size)
        self._lock = threading.Lock()

    def handle_error(
        self,
        error: BaseException,
        category: Optional[ErrorCategory] = None,
        severity: Optional[Severity] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ErrorReport:
        """
        Record an error and log it at a level matching its severity.

        PortalException subclasses supply their own category and
        severity unless overridden here.
        """
        if isinstance(error, PortalException):
            category = category or error.category
            severity = severity or error.severity
        category = category or ErrorCategory.UNKNOWN
        severity = severity or Severity.MEDIUM

        report = ErrorReport(
            id=uuid.uuid4().hex,
            message=str(error) or type(error).__name__,
            category=category,
            severity=severity,
            timestamp=self._clock.now(),
            error_type=type(error).__name__,
            metadata=dict(metadata or {}),
        )

        with self._lock:
            self._queue.append(report)

        logger.log(
            _LOG_LEVELS[severity],
            f"[{category.value}/{severity.value}] {report.error_type}: {report.message}",
            extra={"metadata": report.metadata},
        )
        return report

    def get_reports(
        self,
        category: Optional[ErrorCategory] = None,
        limit: Optional[int] = None,
    ) -> List[ErrorReport]:
        """Newest-first list of reports, optionally filtered."""
        with self._lock:
            reports = list(reversed(self._queue))
        if category is not None:
            reports = [r for r in reports if r.category == category]
        if limit is not None:
            reports = reports[:limit]
        return reports

    def clear(self) -> None:
        with self._lock:
            self._queue.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)


_default_reporter: Optional[ErrorReporter] = None
_reporter_lock = threading.Lock()


def get_error_reporter() -> ErrorReporter:
    """Get the process-wide error reporter."""
    global _default_reporter

    with _reporter_lock:
        if _default_reporter is None:
            _default_reporter = ErrorReporter()
        return _default_reporter


def set_error_reporter(reporter: ErrorReporter) -> None:
    """Replace the process-wide error reporter."""
    global _default_reporter

    with _reporter_lock:
        _default_reporter = reporter

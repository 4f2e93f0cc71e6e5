"""
Reports Service.

Generates scheduled reports and reschedules recurring ones.
"""

import calendar
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from core.clock import ensure_utc
from services.base import DomainService
from storage.gateway import Filter, Row


logger = logging.getLogger(__name__)


REPORTS_TABLE = "reports"


def add_months(dt: datetime, months: int) -> datetime:
    """Same day `months` later, clamped to the last day of the month."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def next_schedule(pattern: Optional[str], now: datetime) -> datetime:
    """Next run time for a recurring report. Unknown patterns run daily."""
    if pattern == "weekly":
        return now + timedelta(days=7)
    if pattern == "monthly":
        return add_months(now, 1)
    return now + timedelta(days=1)


class ReportsService(DomainService):
    """Scheduled report processing."""

    name = "reports"

    async def get_scheduled_reports(self) -> List[Row]:
        return await self._store.select(
            REPORTS_TABLE,
            [Filter.eq("status", "scheduled")],
            order_by="scheduled_for",
        )

    async def generate_report(self, report: Row) -> Row:
        """Mark a report generated and stamp its summary payload."""
        now = self._clock.now()
        data: Dict[str, Any] = dict(report.get("data") or {})
        data["generated_at"] = now.isoformat()

        rows = await self._store.update(
            REPORTS_TABLE,
            {"status": "completed", "generated_at": now, "data": data, "updated_at": now},
            [Filter.eq("id", report["id"])],
        )
        logger.info(f"Generated report: id={report['id']} type={report['report_type']}")
        return rows[0] if rows else report

    async def process_scheduled_reports(self) -> int:
        """
        Generate every scheduled report that is due.

        Recurring reports go back to 'scheduled' with their next
        run time.

        Returns:
            Number of reports generated
        """
        now = self._clock.now()
        generated = 0

        for report in await self.get_scheduled_reports():
            scheduled_for = report.get("scheduled_for")
            if scheduled_for is None or ensure_utc(scheduled_for) > now:
                continue

            await self.generate_report(report)
            generated += 1

            if report.get("is_recurring") and report.get("recurrence_pattern"):
                await self._store.update(
                    REPORTS_TABLE,
                    {
                        "status": "scheduled",
                        "scheduled_for": next_schedule(report["recurrence_pattern"], now),
                        "updated_at": now,
                    },
                    [Filter.eq("id", report["id"])],
                )

        if generated:
            logger.info(f"Processed {generated} scheduled report(s)")
        return generated

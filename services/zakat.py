"""
Zakat Calculator Service.

Only the reminder automation is needed by the integration layer.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from services.base import DomainService
from services.reports import add_months
from storage.gateway import Filter, Row


logger = logging.getLogger(__name__)


REMINDERS_TABLE = "zakat_reminders"


def next_reminder_date(current: datetime, pattern: Optional[str]) -> datetime:
    """Monthly reminders move one month, everything else one year."""
    if pattern == "monthly":
        return add_months(current, 1)
    return add_months(current, 12)


class ZakatCalculatorService(DomainService):
    """Zakat reminders."""

    name = "zakatCalculator"

    async def create_reminder(self, user_id: str, reminder: Dict[str, Any]) -> Row:
        return await self._store.insert(REMINDERS_TABLE, {
            "user_id": user_id,
            "title": reminder["title"],
            "reminder_type": reminder.get("reminder_type", "annual"),
            "scheduled_date": reminder["scheduled_date"],
            "is_recurring": reminder.get("is_recurring", False),
            "recurrence_pattern": reminder.get("recurrence_pattern"),
            "created_at": self._clock.now(),
        })

    async def process_scheduled_reminders(self) -> int:
        """
        Send every unsent reminder that is due.

        A sent recurring reminder gets a new unsent reminder at
        its next date.

        Returns:
            Number of reminders sent
        """
        now = self._clock.now()
        due = await self._store.select(
            REMINDERS_TABLE,
            [Filter.eq("is_sent", False), Filter.lte("scheduled_date", now)],
            order_by="scheduled_date",
        )

        for reminder in due:
            # Delivery goes through the notification service
            logger.info(f"Sending zakat reminder: {reminder['title']} to user {reminder['user_id']}")

            await self._store.update(
                REMINDERS_TABLE,
                {"is_sent": True, "sent_at": now},
                [Filter.eq("id", reminder["id"])],
            )

            if reminder["is_recurring"] and reminder["recurrence_pattern"]:
                await self.create_reminder(reminder["user_id"], {
                    "title": reminder["title"],
                    "reminder_type": reminder["reminder_type"],
                    "scheduled_date": next_reminder_date(
                        reminder["scheduled_date"], reminder["recurrence_pattern"]
                    ),
                    "is_recurring": True,
                    "recurrence_pattern": reminder["recurrence_pattern"],
                })

        return len(due)

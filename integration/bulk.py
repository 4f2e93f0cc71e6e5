"""
Integration Manager - Bulk Data Operations.

Dispatches export / import / cleanup / migration requests over a
list of tables. Record counts are placeholders drawn from a
per-type range until a real bulk engine exists.
"""

import logging
import random
from typing import Dict, Optional, Tuple

from analytics.tracker import AnalyticsTracker, safe_track
from core.clock import ClockFactory, ClockProtocol
from core.exceptions import UnsupportedOperationError
from integration.models import BulkOperation, BulkOperationResult, BulkOperationType


logger = logging.getLogger(__name__)


# Inclusive synthetic record count range per table
RECORD_RANGES: Dict[BulkOperationType, Tuple[int, int]] = {
    BulkOperationType.EXPORT: (100, 1099),
    BulkOperationType.IMPORT: (50, 549),
    BulkOperationType.CLEANUP: (10, 209),
    BulkOperationType.MIGRATION: (25, 324),
}


class BulkOperationDispatcher:
    """Validates and runs bulk operations."""

    def __init__(
        self,
        analytics: Optional[AnalyticsTracker] = None,
        export_base_url: str = "https://storage.example.com/exports",
        rng: Optional[random.Random] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._analytics = analytics
        self._export_base_url = export_base_url.rstrip("/")
        self._rng = rng or random.Random()
        self._clock = clock or ClockFactory.get_clock()

    async def perform(self, operation: BulkOperation) -> BulkOperationResult:
        """
        Run one bulk operation.

        Raises:
            UnsupportedOperationError if the type is not one of
            export, import, cleanup, migration
        """
        try:
            op_type = BulkOperationType(operation.type)
        except ValueError:
            logger.error(f"Rejected bulk operation of type {operation.type!r}")
            raise UnsupportedOperationError(str(operation.type)) from None

        low, high = RECORD_RANGES[op_type]
        records_affected = 0
        for table in operation.tables:
            count = self._rng.randint(low, high)
            logger.debug(f"Bulk {op_type.value} on {table}: {count} records")
            records_affected += count

        file_url = None
        if op_type == BulkOperationType.EXPORT:
            file_url = f"{self._export_base_url}/export_{self._clock.epoch_ms()}.json"

        result = BulkOperationResult(
            success=True,
            message=f"{op_type.value} operation completed successfully",
            records_affected=records_affected,
            file_url=file_url,
        )

        await safe_track(self._analytics, "bulk_operation_completed", "system", {
            "operation_type": op_type.value,
            "tables": list(operation.tables),
            "records_affected": records_affected,
        })

        logger.info(f"Bulk {op_type.value}: {records_affected} records across {len(operation.tables)} table(s)")
        return result

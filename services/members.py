"""
Member Service.

Read access to the member directory.
"""

import logging
from typing import List, Optional

from services.base import DomainService
from storage.gateway import Filter, RecordStore, Row


logger = logging.getLogger(__name__)


MEMBERS_TABLE = "members"


class MemberService(DomainService):
    """Member directory queries."""

    name = "member"

    async def get_members(
        self,
        limit: int = 50,
        offset: int = 0,
        status: Optional[str] = None,
        store: Optional[RecordStore] = None,
    ) -> List[Row]:
        """Members ordered by name, optionally filtered by status."""
        if store is None:
            store = self._store
        filters = [Filter.eq("status", status)] if status else []
        return await store.select(
            MEMBERS_TABLE,
            filters,
            order_by="full_name",
            limit=limit,
            offset=offset,
        )

    async def count_members(self, status: Optional[str] = None) -> int:
        filters = [Filter.eq("status", status)] if status else []
        return await self._store.count(MEMBERS_TABLE, filters)

    async def probe(self, store: RecordStore) -> None:
        await self.get_members(limit=1, store=store)

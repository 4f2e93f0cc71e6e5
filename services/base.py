"""
Domain Services - Base Types.

============================================================
RESPONSIBILITY
============================================================
Shared shapes for the portal's domain services.

- HealthProbe: capability a service exposes so the health
  aggregator can check it
- DomainService: base class holding the store and clock
- TableService: generic single-table service used for the
  registry entries the integration layer never calls

============================================================
PROBE CONTRACT
============================================================
probe(store) receives a read-only record store. Returning
normally means "reachable"; raising means "outage". Any write
attempted through that store raises ReadOnlyViolationError.

============================================================
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from core.clock import ClockFactory, ClockProtocol
from storage.gateway import RecordStore


logger = logging.getLogger(__name__)


@runtime_checkable
class HealthProbe(Protocol):
    """Anything the health aggregator can actively probe."""

    async def probe(self, store: RecordStore) -> None:
        ...


class DomainService:
    """Base for services that read and write through the record store."""

    name: str = "service"

    def __init__(
        self,
        store: RecordStore,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._store = store
        self._clock = clock or ClockFactory.get_clock()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class TableService(DomainService):
    """
    Registry entry for a CRUD service backed by one table.

    Has no probe; the aggregator only checks that it is
    registered. The backing table is owned by the portal
    service itself, not declared in this package.
    """

    def __init__(
        self,
        name: str,
        table: str,
        store: RecordStore,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        super().__init__(store, clock)
        self.name = name
        self.table = table


__all__ = [
    "HealthProbe",
    "DomainService",
    "TableService",
]

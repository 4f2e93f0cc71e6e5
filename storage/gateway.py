"""
Storage - Record Store Gateway.

============================================================
RESPONSIBILITY
============================================================
The query interface every service and the integration manager
talk to. Rows go in and come out as plain dicts.

- Filtered / ordered / paginated select
- Insert returning the stored row
- Update returning the updated rows
- Delete returning the row count
- Named server-side procedures (rpc)

============================================================
FAILURE MODEL
============================================================
Every operation may raise a StoreError subclass. Callers
decide whether to log-and-rethrow (CRUD) or convert the
failure into data (health checks, maintenance).

============================================================
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import MetaData, Table, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError as SQLAlchemyIntegrityError
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from core.clock import ensure_utc
from storage.exceptions import (
    ConnectionError,
    IntegrityError,
    ProcedureNotFoundError,
    QueryError,
    ReadOnlyViolationError,
    StoreError,
    UnknownTableError,
)
from storage.models import Base, new_id


logger = logging.getLogger(__name__)


# =============================================================
# FILTERS
# =============================================================


class FilterOp(str, Enum):
    """Comparison operators supported by the gateway."""
    EQ = "eq"
    NEQ = "neq"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    IN = "in"


@dataclass(frozen=True)
class Filter:
    """One `column <op> value` condition. Conditions are AND-ed."""
    column: str
    op: FilterOp
    value: Any

    @classmethod
    def eq(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.EQ, value)

    @classmethod
    def neq(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.NEQ, value)

    @classmethod
    def lt(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.LT, value)

    @classmethod
    def lte(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.LTE, value)

    @classmethod
    def gt(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.GT, value)

    @classmethod
    def gte(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.GTE, value)

    @classmethod
    def in_(cls, column: str, values: Iterable[Any]) -> "Filter":
        return cls(column, FilterOp.IN, tuple(values))


Filters = Sequence[Filter]
Row = Dict[str, Any]
Procedure = Callable[..., Awaitable[Any]]


# =============================================================
# INTERFACE
# =============================================================


class RecordStore(ABC):
    """
    Abstract record store.

    All methods are coroutines and may raise StoreError.
    """

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Filters = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Row]:
        """Fetch rows matching all filters."""

    async def select_one(self, table: str, filters: Filters) -> Optional[Row]:
        """Fetch the first matching row, or None."""
        rows = await self.select(table, filters, limit=1)
        return rows[0] if rows else None

    @abstractmethod
    async def count(self, table: str, filters: Filters = ()) -> int:
        """Number of rows matching all filters."""

    @abstractmethod
    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        """Insert one row and return it as stored."""

    @abstractmethod
    async def update(self, table: str, values: Mapping[str, Any], filters: Filters) -> List[Row]:
        """Update matching rows and return them after the update."""

    @abstractmethod
    async def delete(self, table: str, filters: Filters) -> int:
        """Delete matching rows and return how many were removed."""

    @abstractmethod
    async def rpc(self, name: str, args: Optional[Mapping[str, Any]] = None) -> Any:
        """Invoke a named server-side procedure."""


# =============================================================
# SQLALCHEMY IMPLEMENTATION
# =============================================================


def _coerce(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)) and not isinstance(value, str):
        return type(value)(_coerce(v) for v in value)
    return value


def _row_to_dict(row: Any) -> Row:
    out = {}
    for key, value in row._mapping.items():
        # SQLite hands datetimes back naive; everything is stored in UTC
        if isinstance(value, datetime):
            value = ensure_utc(value)
        out[key] = value
    return out


class SqlAlchemyRecordStore(RecordStore):
    """
    Record store backed by a SQLAlchemy async engine.

    Tables are resolved by name from the declarative metadata.
    Each call runs in its own connection / transaction.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        metadata: Optional[MetaData] = None,
    ) -> None:
        self._engine = engine
        self._metadata = metadata or Base.metadata
        self._procedures: Dict[str, Procedure] = {}

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    # ---------------------------------------------------------
    # PROCEDURES
    # ---------------------------------------------------------

    def register_procedure(self, name: str, fn: Procedure) -> None:
        """
        Register a procedure callable as `await fn(store, **args)`.
        """
        self._procedures[name] = fn
        logger.debug(f"Registered procedure: {name}")

    async def rpc(self, name: str, args: Optional[Mapping[str, Any]] = None) -> Any:
        fn = self._procedures.get(name)
        if fn is None:
            raise ProcedureNotFoundError(name)
        return await fn(self, **dict(args or {}))

    # ---------------------------------------------------------
    # HELPERS
    # ---------------------------------------------------------

    def _table(self, name: str, operation: str) -> Table:
        table = self._metadata.tables.get(name)
        if table is None:
            raise UnknownTableError(name, operation)
        return table

    def _column(self, table: Table, name: str, operation: str):
        if name not in table.c:
            raise QueryError(table.name, operation, f"unknown column '{name}'")
        return table.c[name]

    def _where(self, table: Table, filters: Filters, operation: str) -> list:
        conditions = []
        for f in filters:
            column = self._column(table, f.column, operation)
            value = _coerce(f.value)
            op = FilterOp(f.op)
            if op == FilterOp.EQ:
                conditions.append(column.is_(None) if value is None else column == value)
            elif op == FilterOp.NEQ:
                conditions.append(column.is_not(None) if value is None else column != value)
            elif op == FilterOp.LT:
                conditions.append(column < value)
            elif op == FilterOp.LTE:
                conditions.append(column <= value)
            elif op == FilterOp.GT:
                conditions.append(column > value)
            elif op == FilterOp.GTE:
                conditions.append(column >= value)
            elif op == FilterOp.IN:
                conditions.append(column.in_(list(value)))
        return conditions

    def _values(self, table: Table, values: Mapping[str, Any], operation: str) -> Row:
        out = {}
        for key, value in values.items():
            self._column(table, key, operation)
            out[key] = _coerce(value)
        return out

    def _wrap_error(self, error: SQLAlchemyError, table: str, operation: str) -> StoreError:
        logger.error(f"Database error in {operation} on {table}: {error}")
        if isinstance(error, OperationalError):
            return ConnectionError(table, operation, str(error))
        if isinstance(error, SQLAlchemyIntegrityError):
            return IntegrityError(table, operation, str(error))
        return QueryError(table, operation, str(error))

    async def _fetch_by_ids(self, conn: AsyncConnection, table: Table, ids: List[Any]) -> List[Row]:
        if not ids:
            return []
        result = await conn.execute(select(table).where(table.c.id.in_(ids)))
        return [_row_to_dict(r) for r in result]

    # ---------------------------------------------------------
    # QUERIES
    # ---------------------------------------------------------

    async def select(
        self,
        table: str,
        filters: Filters = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Row]:
        t = self._table(table, "select")
        stmt = select(t).where(*self._where(t, filters, "select"))
        if order_by:
            column = self._column(t, order_by, "select")
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset is not None:
            stmt = stmt.offset(offset)

        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(stmt)
                return [_row_to_dict(r) for r in result]
        except SQLAlchemyError as e:
            raise self._wrap_error(e, table, "select") from e

    async def count(self, table: str, filters: Filters = ()) -> int:
        t = self._table(table, "count")
        stmt = select(func.count()).select_from(t).where(*self._where(t, filters, "count"))
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(stmt)
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise self._wrap_error(e, table, "count") from e

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        t = self._table(table, "insert")
        values = self._values(t, row, "insert")
        if "id" in t.c and values.get("id") is None:
            values["id"] = new_id()

        try:
            async with self._engine.begin() as conn:
                await conn.execute(insert(t).values(**values))
                rows = await self._fetch_by_ids(conn, t, [values["id"]])
        except SQLAlchemyError as e:
            raise self._wrap_error(e, table, "insert") from e

        logger.debug(f"Inserted row into {table}: id={values['id']}")
        return rows[0]

    async def update(self, table: str, values: Mapping[str, Any], filters: Filters) -> List[Row]:
        t = self._table(table, "update")
        new_values = self._values(t, values, "update")
        conditions = self._where(t, filters, "update")

        try:
            async with self._engine.begin() as conn:
                # Resolve ids first so filters on updated columns still find the rows
                result = await conn.execute(select(t.c.id).where(*conditions))
                ids = [r[0] for r in result]
                if not ids:
                    return []
                await conn.execute(update(t).where(t.c.id.in_(ids)).values(**new_values))
                rows = await self._fetch_by_ids(conn, t, ids)
        except SQLAlchemyError as e:
            raise self._wrap_error(e, table, "update") from e

        logger.debug(f"Updated {len(rows)} row(s) in {table}")
        return rows

    async def delete(self, table: str, filters: Filters) -> int:
        t = self._table(table, "delete")
        stmt = delete(t).where(*self._where(t, filters, "delete"))
        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(stmt)
        except SQLAlchemyError as e:
            raise self._wrap_error(e, table, "delete") from e

        logger.debug(f"Deleted {result.rowcount} row(s) from {table}")
        return result.rowcount


# =============================================================
# READ-ONLY VIEW
# =============================================================


class ReadOnlyRecordStore(RecordStore):
    """
    Forwards reads to another store and rejects every write.

    Handed to health probes so a probe cannot mutate data.
    """

    def __init__(self, inner: RecordStore) -> None:
        self._inner = inner

    async def select(
        self,
        table: str,
        filters: Filters = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Row]:
        return await self._inner.select(
            table, filters, order_by=order_by, descending=descending, limit=limit, offset=offset
        )

    async def count(self, table: str, filters: Filters = ()) -> int:
        return await self._inner.count(table, filters)

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        raise ReadOnlyViolationError(table, "insert")

    async def update(self, table: str, values: Mapping[str, Any], filters: Filters) -> List[Row]:
        raise ReadOnlyViolationError(table, "update")

    async def delete(self, table: str, filters: Filters) -> int:
        raise ReadOnlyViolationError(table, "delete")

    async def rpc(self, name: str, args: Optional[Mapping[str, Any]] = None) -> Any:
        raise ReadOnlyViolationError("rpc", name)


__all__ = [
    "FilterOp",
    "Filter",
    "Filters",
    "Row",
    "RecordStore",
    "SqlAlchemyRecordStore",
    "ReadOnlyRecordStore",
]

"""
Record Store Exceptions.

============================================================
PURPOSE
============================================================
Every failure of the record store surfaces as a StoreError
subclass. SQLAlchemy / driver exceptions are caught in the
gateway and re-raised with table and operation context.

Business layers catch StoreError, log it and re-raise.

============================================================
"""

from typing import Any, Optional


class StoreError(Exception):
    """
    Base exception for all record store operations.

    Business layers can catch this for generic error handling.
    """

    def __init__(
        self,
        message: str,
        table: str,
        operation: str,
        details: Optional[dict] = None,
    ) -> None:
        self.message = message
        self.table = table
        self.operation = operation
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return f"[{self.table}] {self.operation}: {self.message}"


class RecordNotFoundError(StoreError):
    """
    Raised when a record expected to exist cannot be found.

    Used by update-by-id style operations.
    """

    def __init__(self, table: str, record_id: Any, id_field: str = "id") -> None:
        super().__init__(
            message=f"Record with {id_field}={record_id} not found",
            table=table,
            operation="get",
            details={id_field: str(record_id)},
        )
        self.record_id = record_id
        self.id_field = id_field


class UnknownTableError(StoreError):
    """Raised when a table name is not part of the schema."""

    def __init__(self, table: str, operation: str) -> None:
        super().__init__(
            message=f"Unknown table '{table}'",
            table=table,
            operation=operation,
        )


class IntegrityError(StoreError):
    """
    Raised when database integrity constraints are violated.

    Includes foreign key violations, unique and not-null constraints.
    """

    def __init__(self, table: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Integrity constraint violated: {original_error}",
            table=table,
            operation=operation,
            details={"original_error": original_error},
        )


class ConnectionError(StoreError):
    """
    Raised when the database connection fails.

    Use for connection timeouts, pool exhaustion, etc.
    """

    def __init__(self, table: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Database connection failed: {original_error}",
            table=table,
            operation=operation,
            details={"original_error": original_error},
        )


class QueryError(StoreError):
    """
    Raised when a query execution fails.

    Use for invalid columns, bad filter operators, driver errors.
    """

    def __init__(self, table: str, operation: str, original_error: str) -> None:
        super().__init__(
            message=f"Query failed: {original_error}",
            table=table,
            operation=operation,
            details={"original_error": original_error},
        )


class ProcedureNotFoundError(StoreError):
    """Raised when rpc() names a procedure that was never registered."""

    def __init__(self, name: str) -> None:
        super().__init__(
            message=f"Procedure '{name}' is not registered",
            table="rpc",
            operation=name,
        )
        self.procedure = name


class ReadOnlyViolationError(StoreError):
    """
    Raised when a write is attempted through a read-only store view.

    Health probes only ever see a read-only view.
    """

    def __init__(self, table: str, operation: str) -> None:
        super().__init__(
            message="Write attempted through a read-only store",
            table=table,
            operation=operation,
        )

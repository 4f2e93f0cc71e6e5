"""
Storage Package.

Everything the portal persists goes through the record store
gateway defined here.

Modules:
- database: Async engine construction and table creation
- gateway: RecordStore interface, SQLAlchemy implementation,
  read-only view
- exceptions: StoreError hierarchy
- models/: ORM table definitions
"""

from storage.database import (
    DatabaseConfig,
    create_all_tables,
    create_engine_from_config,
    dispose_engine,
    verify_database_connection,
)
from storage.exceptions import (
    ProcedureNotFoundError,
    ReadOnlyViolationError,
    RecordNotFoundError,
    StoreError,
    UnknownTableError,
)
from storage.gateway import (
    Filter,
    FilterOp,
    ReadOnlyRecordStore,
    RecordStore,
    SqlAlchemyRecordStore,
)


__all__ = [
    "DatabaseConfig",
    "create_all_tables",
    "create_engine_from_config",
    "dispose_engine",
    "verify_database_connection",
    "ProcedureNotFoundError",
    "ReadOnlyViolationError",
    "RecordNotFoundError",
    "StoreError",
    "UnknownTableError",
    "Filter",
    "FilterOp",
    "ReadOnlyRecordStore",
    "RecordStore",
    "SqlAlchemyRecordStore",
]

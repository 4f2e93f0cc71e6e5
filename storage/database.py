"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Manages the async database engine behind the record store.

- Builds the engine from DATABASE_URL
- Connection pooling for server databases
- Creates the portal tables
- Connection health check

============================================================
DATABASE REQUIREMENTS
============================================================
- PostgreSQL via asyncpg in production
  (postgresql+asyncpg://...)
- SQLite via aiosqlite for local runs and tests
  (sqlite+aiosqlite:///portal.db)
- SQLAlchemy 2.x async engine

============================================================
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from storage.models import Base


# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///portal.db"


# =============================================================
# CONFIGURATION
# =============================================================


@dataclass
class DatabaseConfig:
    """Connection settings for the record store."""
    url: str = DEFAULT_DATABASE_URL
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout_seconds: int = 30
    pool_recycle_seconds: int = 1800
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def safe_url(self) -> str:
        """URL without credentials, for logging."""
        return self.url.split("@")[-1]

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - DATABASE_URL
        - DATABASE_POOL_SIZE
        - DATABASE_MAX_OVERFLOW
        - DATABASE_POOL_TIMEOUT
        - DATABASE_ECHO
        """
        config = cls()

        url = os.getenv("DATABASE_URL")
        if url:
            # Plain postgres URLs get the async driver
            if url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            config.url = url
        else:
            logger.warning(f"DATABASE_URL not set, using default: {DEFAULT_DATABASE_URL}")

        if os.getenv("DATABASE_POOL_SIZE"):
            config.pool_size = int(os.getenv("DATABASE_POOL_SIZE"))
        if os.getenv("DATABASE_MAX_OVERFLOW"):
            config.max_overflow = int(os.getenv("DATABASE_MAX_OVERFLOW"))
        if os.getenv("DATABASE_POOL_TIMEOUT"):
            config.pool_timeout_seconds = int(os.getenv("DATABASE_POOL_TIMEOUT"))
        if os.getenv("DATABASE_ECHO"):
            config.echo = os.getenv("DATABASE_ECHO", "").lower() in ("1", "true", "yes")

        return config


# =============================================================
# ENGINE
# =============================================================


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite leaves FK enforcement off per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_from_config(config: Optional[DatabaseConfig] = None) -> AsyncEngine:
    """
    Create the async SQLAlchemy engine.

    Pool sizing only applies to server databases; SQLite uses
    the driver's default pool.
    """
    config = config or DatabaseConfig.from_env()

    logger.info(f"Creating database engine for: {config.safe_url}")

    if config.is_sqlite:
        engine = create_async_engine(config.url, echo=config.echo)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_async_engine(
        config.url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout_seconds,
        pool_recycle=config.pool_recycle_seconds,
        pool_pre_ping=True,
        echo=config.echo,
    )


async def create_all_tables(engine: AsyncEngine) -> None:
    """
    Create all portal tables that do not exist yet.

    Raises:
        SQLAlchemyError if table creation fails
    """
    logger.info("Creating database tables...")
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise
    logger.info("Database tables created successfully")


async def verify_database_connection(engine: AsyncEngine) -> bool:
    """
    Check the connection is alive.

    Returns:
        True if SELECT 1 succeeds, False otherwise
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False


async def dispose_engine(engine: AsyncEngine) -> None:
    """Close every pooled connection."""
    await engine.dispose()
    logger.info("Database engine disposed")


__all__ = [
    "DEFAULT_DATABASE_URL",
    "DatabaseConfig",
    "create_engine_from_config",
    "create_all_tables",
    "verify_database_connection",
    "dispose_engine",
]

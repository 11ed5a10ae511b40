"""Query executor backed by an async SQLAlchemy engine."""

import logging
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from ..core.query_tool import QueryExecutor

logger = logging.getLogger(__name__)


def get_database_type(url: str) -> str:
    """
    Extract database type from connection URL.

    Args:
        url: Database connection URL

    Returns:
        "sqlite" or "postgresql" or "unknown"
    """
    if url.startswith("sqlite"):
        return "sqlite"
    elif url.startswith("postgresql"):
        return "postgresql"
    return "unknown"


def create_query_engine(url: str) -> AsyncEngine:
    """Create an engine suited to short read-only lookups."""
    if get_database_type(url) == "sqlite":
        # An in-memory database only exists on the connection that created it
        poolclass = StaticPool if ":memory:" in url else NullPool
        engine = create_async_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=poolclass,
        )
        logger.info("Query engine configured: SQLite")
    else:
        engine = create_async_engine(
            url,
            echo=False,
            pool_size=5,
            max_overflow=5,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
        logger.info("Query engine configured: pooled connection")
    return engine


def to_json_safe(value: Any) -> Any:
    """Convert a database value into something ``json.dumps`` accepts."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<{len(bytes(value))} bytes>"
    return value


class SQLAlchemyQueryExecutor(QueryExecutor):
    """Executes validated queries and returns rows as plain dicts.

    Each query runs on its own connection and the transaction is rolled back
    when the connection is released, so nothing is ever committed.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    @classmethod
    def from_url(cls, url: str) -> "SQLAlchemyQueryExecutor":
        return cls(create_query_engine(url))

    async def execute(self, sql: str) -> List[Dict[str, Any]]:
        logger.debug(f"Executing query: {sql}")
        async with self.engine.connect() as conn:
            # Colons are literal text here, never bind parameters
            result = await conn.execute(text(sql.replace(":", r"\:")))
            rows = [
                {key: to_json_safe(value) for key, value in row.items()}
                for row in result.mappings().all()
            ]
            await conn.rollback()
        logger.debug(f"Query returned {len(rows)} rows")
        return rows

    async def dispose(self) -> None:
        await self.engine.dispose()

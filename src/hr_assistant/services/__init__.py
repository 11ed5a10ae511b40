"""Service components for the HR assistant."""

from .background import BackgroundTaskRunner
from .memory import (
    InMemoryMemoryRepository,
    MemoryExtractor,
    MemoryRepository,
    MemoryStore,
    parse_extraction,
)
from .query_executor import SQLAlchemyQueryExecutor, create_query_engine
from .session_store import SessionStore

__all__ = [
    "BackgroundTaskRunner",
    "InMemoryMemoryRepository",
    "MemoryExtractor",
    "MemoryRepository",
    "MemoryStore",
    "SQLAlchemyQueryExecutor",
    "SessionStore",
    "create_query_engine",
    "parse_extraction",
]

"""
Adapters layer - Storage integrations (relational database, in-memory).
"""

from .db import init_db, make_engine, make_session_factory
from .memory_repository import MemoryRepository
from .sql_repository import SqlRepository

__all__ = ["MemoryRepository", "SqlRepository", "init_db", "make_engine", "make_session_factory"]

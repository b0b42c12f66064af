"""Persistent storage for tickets, orders, hedges and fixings."""

from .database import Database, SCHEMA_VERSION
from .store import MatchingStore, PhysicalHierarchy
from .sqlite_store import SQLiteMatchingStore

__all__ = [
    "Database",
    "SCHEMA_VERSION",
    "MatchingStore",
    "PhysicalHierarchy",
    "SQLiteMatchingStore",
]

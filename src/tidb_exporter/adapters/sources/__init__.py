"""Query source adapters."""

from tidb_exporter.adapters.sources.in_memory import InMemoryQuerySource
from tidb_exporter.adapters.sources.mysql import (
    ConnectionSettings,
    MySQLQuerySource,
    parse_dsn,
)
from tidb_exporter.adapters.sources.sqlite import SQLiteQuerySource

__all__ = [
    "ConnectionSettings",
    "InMemoryQuerySource",
    "MySQLQuerySource",
    "SQLiteQuerySource",
    "parse_dsn",
]

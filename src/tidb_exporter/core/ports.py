"""Port interfaces for query source adapters.

These protocols define the contracts that source adapters must implement.
Scrapers depend only on these interfaces, not on a particular driver.
"""

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, runtime_checkable

Row = tuple[Any, ...]


@runtime_checkable
class QuerySource(Protocol):
    """Port for executing read-only queries against the database.

    Adapters implementing this protocol translate driver failures into
    SourceUnavailable and support several queries in flight at once.
    Examples: InMemoryQuerySource, SQLiteQuerySource, MySQLQuerySource.
    """

    async def ping(self) -> None:
        """Check that the source is reachable.

        Raises:
            SourceUnavailable: If the source cannot be reached.
        """
        ...

    def query(self, sql: str) -> AbstractAsyncContextManager[AsyncIterator[Row]]:
        """Execute a query and expose its rows.

        Usage:
            async with source.query(sql) as rows:
                async for row in rows:
                    ...

        The underlying cursor is released when the block exits, whether it
        completes, raises or is cancelled.

        Raises:
            SourceUnavailable: If the query cannot be executed or fetched.
        """
        ...

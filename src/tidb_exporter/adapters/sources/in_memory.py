"""In-memory query source serving canned rows."""

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from tidb_exporter.core.errors import SourceUnavailable
from tidb_exporter.core.ports import Row


def normalize_sql(sql: str) -> str:
    """Collapse whitespace so queries match regardless of formatting."""
    return " ".join(sql.split())


class InMemoryQuerySource:
    """In-memory implementation of QuerySource.

    Serves rows registered per query text. Queries that were not registered
    fail with SourceUnavailable, like an unexpected statement against a
    mocked driver. Suitable for testing and for replaying captured rows.

    Args:
        row_delay: Seconds to sleep before yielding each row.
    """

    def __init__(self, row_delay: float = 0.0) -> None:
        self._rows: dict[str, list[Row]] = {}
        self._errors: dict[str, Exception] = {}
        self.row_delay = row_delay
        self.down = False
        self.executed: list[str] = []
        self.open_cursors = 0

    def add_rows(self, sql: str, rows: Iterable[Row]) -> None:
        """Register the rows returned for sql."""
        self._rows[normalize_sql(sql)] = [tuple(row) for row in rows]

    def fail(self, sql: str, error: Exception | None = None) -> None:
        """Make sql raise error (SourceUnavailable by default)."""
        self._errors[normalize_sql(sql)] = error or SourceUnavailable(
            f"query failed: {normalize_sql(sql)[:60]}"
        )

    async def ping(self) -> None:
        """Raise SourceUnavailable while the source is marked down."""
        if self.down:
            raise SourceUnavailable("source is down")

    async def _iterate(self, rows: list[Row]) -> AsyncIterator[Row]:
        for row in rows:
            await asyncio.sleep(self.row_delay)
            yield row

    @asynccontextmanager
    async def query(self, sql: str) -> AsyncIterator[AsyncIterator[Row]]:
        """Yield an iterator over the rows registered for sql."""
        key = normalize_sql(sql)
        self.executed.append(key)
        if self.down:
            raise SourceUnavailable("source is down")
        if key in self._errors:
            raise self._errors[key]
        if key not in self._rows:
            raise SourceUnavailable(f"unexpected query: {key[:60]}")
        rows = self._iterate(self._rows[key])
        self.open_cursors += 1
        try:
            yield rows
        finally:
            self.open_cursors -= 1
            await rows.aclose()

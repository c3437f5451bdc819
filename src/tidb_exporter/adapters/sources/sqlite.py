"""SQLite query source for offline fixtures.

Runs the exporter's queries against a SQLite database laid out like the
TiDB system schemas. Schemas such as ``information_schema`` are attached
under their TiDB names, and the MySQL functions the queries rely on
(``connection_id()``, ``SUBSTRING_INDEX``) are registered on every
connection.
"""

import asyncio
import sqlite3
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager

import aiosqlite

from tidb_exporter.core.errors import SourceUnavailable
from tidb_exporter.core.ports import Row


def substring_index(value: str | None, delimiter: str | None, count: int | None) -> str | None:
    """MySQL SUBSTRING_INDEX(str, delim, count)."""
    if value is None or delimiter is None or count is None:
        return None
    value = str(value)
    if not delimiter or count == 0:
        return ""
    parts = value.split(delimiter)
    if count > 0:
        return delimiter.join(parts[:count])
    return delimiter.join(parts[count:])


class _ConnectionManager:
    """Manages aiosqlite connections for a SQLiteQuerySource.

    For :memory: databases, maintains a persistent connection since SQLite
    in-memory databases (and anything attached to them) are connection-scoped.
    """

    def __init__(
        self,
        db_path: str,
        schema: str,
        attach: Mapping[str, str],
        session_id: int,
    ) -> None:
        self._db_path = db_path
        self._schema = schema
        self._attach = dict(attach)
        self._session_id = session_id
        self._initialized = False
        self._init_lock: asyncio.Lock | None = None
        self._persistent_conn: aiosqlite.Connection | None = None

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the initialization lock (lazy to avoid event loop issues)."""
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        return self._init_lock

    @property
    def _is_memory(self) -> bool:
        return self._db_path == ":memory:"

    async def _open(self) -> aiosqlite.Connection:
        """Open a connection with attachments and compatibility functions."""
        conn = await aiosqlite.connect(self._db_path)
        try:
            for name, path in self._attach.items():
                await conn.execute(f"ATTACH DATABASE ? AS {name}", (path,))
            session_id = self._session_id
            await conn.create_function("connection_id", 0, lambda: session_id)
            await conn.create_function("substring_index", 3, substring_index)
        except BaseException:
            await conn.close()
            raise
        return conn

    async def _ensure_initialized(self) -> None:
        """Create the fixture schema once."""
        if self._initialized:
            return
        async with self._get_lock():
            if self._initialized:
                return
            if self._is_memory:
                self._persistent_conn = await self._open()
                if self._schema:
                    await self._persistent_conn.executescript(self._schema)
            elif self._schema:
                conn = await self._open()
                try:
                    await conn.executescript(self._schema)
                finally:
                    await conn.close()
            self._initialized = True

    async def _get_connection(self) -> aiosqlite.Connection:
        await self._ensure_initialized()
        if self._is_memory:
            if self._persistent_conn is None:
                raise RuntimeError("Memory database connection not initialized")
            return self._persistent_conn
        return await self._open()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Context manager for connections; file-based ones are closed after use."""
        try:
            conn = await self._get_connection()
        except sqlite3.Error as exc:
            raise SourceUnavailable(f"cannot open {self._db_path}: {exc}") from exc
        try:
            yield conn
        finally:
            if not self._is_memory:
                await conn.close()

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        if self._persistent_conn is not None:
            await self._persistent_conn.close()
            self._persistent_conn = None
            self._initialized = False


class SQLiteQuerySource:
    """SQLite implementation of QuerySource.

    Args:
        db_path: Database file, or ":memory:".
        schema: Script run once to create fixture tables.
        attach: Extra databases to attach, as {schema name: path}.
        session_id: Value returned by connection_id().
        batch_size: Rows fetched per round trip.

    Example:
        ```python
        source = SQLiteQuerySource(attach={"information_schema": ":memory:"})
        await source.execute_script(FIXTURE_SQL)
        ```
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        *,
        schema: str = "",
        attach: Mapping[str, str] | None = None,
        session_id: int = 0,
        batch_size: int = 256,
    ) -> None:
        self._manager = _ConnectionManager(db_path, schema, attach or {}, session_id)
        self._batch_size = batch_size

    async def ping(self) -> None:
        """Run a trivial query."""
        async with self.query("SELECT 1") as rows:
            async for _ in rows:
                pass

    async def execute_script(self, script: str) -> None:
        """Run a SQL script, e.g. to load fixture rows."""
        async with self._manager.connection() as conn:
            try:
                await conn.executescript(script)
                await conn.commit()
            except sqlite3.Error as exc:
                raise SourceUnavailable(f"script failed: {exc}") from exc

    async def _rows(self, cursor: aiosqlite.Cursor) -> AsyncIterator[Row]:
        while True:
            try:
                batch = await cursor.fetchmany(self._batch_size)
            except sqlite3.Error as exc:
                raise SourceUnavailable(f"fetch failed: {exc}") from exc
            if not batch:
                return
            for row in batch:
                yield tuple(row)

    @asynccontextmanager
    async def query(self, sql: str) -> AsyncIterator[AsyncIterator[Row]]:
        """Execute sql and yield an iterator over its rows."""
        async with self._manager.connection() as conn:
            try:
                cursor = await conn.execute(sql)
            except sqlite3.Error as exc:
                raise SourceUnavailable(f"query failed: {exc}") from exc
            rows = self._rows(cursor)
            try:
                yield rows
            finally:
                await rows.aclose()
                await cursor.close()

    async def close(self) -> None:
        """Release the persistent connection, if any."""
        await self._manager.close()

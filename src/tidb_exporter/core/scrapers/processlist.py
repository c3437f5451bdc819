"""Scrape `information_schema.cluster_processlist`."""

from collections.abc import Callable
from decimal import Decimal
from typing import Any, NamedTuple

from tidb_exporter.core.aggregation import Aggregator
from tidb_exporter.core.errors import RowDecodeError
from tidb_exporter.core.metrics import NAMESPACE, MetricDesc, build_fq_name
from tidb_exporter.core.options import ScrapeOptions
from tidb_exporter.core.ports import QuerySource, Row
from tidb_exporter.core.scrapers.base import Emit, Scraper

INFORMATION_SCHEMA = "info_schema"

PROCESSLIST_QUERY = """
  SELECT
    instance,
    user,
    SUBSTRING_INDEX(host, ':', 1) AS host,
    COALESCE(db, '') AS db,
    time,
    state,
    mem,
    disk
  FROM information_schema.cluster_processlist
  WHERE ID != connection_id()
    AND TIME >= %d
"""

UNKNOWN_HOST = "unknown"


def _desc(name: str, help: str, label: str) -> MetricDesc:
    return MetricDesc(
        build_fq_name(NAMESPACE, INFORMATION_SCHEMA, name), help, (label,)
    )


THREADS = _desc(
    "threads",
    "The number of threads (connections) split by current state.",
    "state",
)
THREADS_SECONDS = _desc(
    "threads_seconds",
    "The number of seconds threads (connections) have used split by current state.",
    "state",
)
MEMORY_BYTES = _desc(
    "memory_bytes",
    "The number of bytes memory have allocated split by current state.",
    "state",
)
DISK_BYTES = _desc(
    "disk_bytes",
    "The number of disk bytes have used split by current state.",
    "state",
)
PROCESSES_BY_SERVER = _desc(
    "processes_by_server", "The number of processes by tidb server node.", "server"
)
PROCESSES_BY_CLIENT = _desc(
    "processes_by_client", "The number of processes by client host.", "client"
)
PROCESSES_BY_USER = _desc(
    "processes_by_user", "The number of processes by user.", "mysql_user"
)
PROCESSES_BY_DB = _desc("processes_by_db", "The number of processes by database.", "db")

_COLUMNS = ("instance", "user", "host", "db", "time", "state", "mem", "disk")


class Process(NamedTuple):
    """One decoded processlist row."""

    instance: str
    user: str
    host: str
    db: str
    time: int
    state: str
    mem: int
    disk: int


def _text(column: str, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        try:
            return value.decode()
        except UnicodeDecodeError:
            raise RowDecodeError(column, value, "text") from None
    if isinstance(value, str | int | Decimal):
        return str(value)
    raise RowDecodeError(column, value, "text")


def _unsigned(column: str, value: Any) -> int:
    if isinstance(value, bytes):
        value = value.decode("ascii", "replace")
    try:
        if value is None or isinstance(value, bool):
            raise TypeError
        number = int(value.strip()) if isinstance(value, str) else int(value)
        if not isinstance(value, str) and number != value:
            raise ValueError
    except (TypeError, ValueError, ArithmeticError):
        raise RowDecodeError(column, value, "unsigned integer") from None
    if number < 0:
        raise RowDecodeError(column, value, "unsigned integer")
    return number


def decode_process(row: Row) -> Process:
    """Decode a processlist row.

    Raises:
        RowDecodeError: If the row has the wrong shape or a cell has the wrong type.
    """
    if len(row) != len(_COLUMNS):
        raise RowDecodeError("row", row, f"{len(_COLUMNS)} columns")
    instance, user, host, db, time, state, mem, disk = row
    return Process(
        instance=_text("instance", instance),
        user=_text("user", user),
        host=_text("host", host) or UNKNOWN_HOST,
        db=_text("db", db),
        time=_unsigned("time", time),
        state=_text("state", state),
        mem=_unsigned("mem", mem),
        disk=_unsigned("disk", disk),
    )


class ScrapeProcesslist(Scraper):
    """Collects from `information_schema.cluster_processlist`."""

    name = INFORMATION_SCHEMA + ".processlist"
    help = (
        "Collect current thread state counts from the "
        "information_schema.cluster_processlist"
    )
    minimum_version = 5.1

    async def scrape(
        self, source: QuerySource, emit: Emit, options: ScrapeOptions
    ) -> None:
        query = PROCESSLIST_QUERY % options.processlist_min_time

        by_state: Aggregator[str] = Aggregator("threads", "seconds", "memory", "disk")
        dimensions: list[tuple[MetricDesc, Callable[[Process], str], bool]] = [
            (PROCESSES_BY_SERVER, lambda p: p.instance, options.processes_by_server),
            (PROCESSES_BY_CLIENT, lambda p: p.host, options.processes_by_client),
            (PROCESSES_BY_USER, lambda p: p.user, options.processes_by_user),
            (PROCESSES_BY_DB, lambda p: p.db, options.processes_by_db),
        ]
        counters = [
            (desc, key, Aggregator[str]())
            for desc, key, enabled in dimensions
            if enabled
        ]

        async with source.query(query) as rows:
            async for row in rows:
                process = decode_process(row)
                by_state.add(process.state, "threads")
                by_state.add(process.state, "seconds", process.time)
                by_state.add(process.state, "memory", process.mem)
                by_state.add(process.state, "disk", process.disk)
                for _, key, aggregator in counters:
                    aggregator.add(key(process))

        for state, values in by_state.items():
            emit(THREADS.sample(values["threads"], state))
            emit(THREADS_SECONDS.sample(values["seconds"], state))
            emit(MEMORY_BYTES.sample(values["memory"], state))
            emit(DISK_BYTES.sample(values["disk"], state))

        for desc, _, aggregator in counters:
            for key, values in aggregator.items():
                emit(desc.sample(values["count"], key))

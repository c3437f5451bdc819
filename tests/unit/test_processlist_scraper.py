"""Tests for the processlist scraper."""

import asyncio
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tests.rows import PROCESSLIST_ROWS
from tidb_exporter.adapters.sources.in_memory import InMemoryQuerySource
from tidb_exporter.core.errors import RowDecodeError, SourceUnavailable
from tidb_exporter.core.options import ScrapeOptions
from tidb_exporter.core.scrapers.processlist import (
    PROCESSLIST_QUERY,
    UNKNOWN_HOST,
    ScrapeProcesslist,
    decode_process,
)


def _series(samples, name):
    return [
        (next(iter(s.labels.values())), s.value)
        for s in samples
        if s.name == f"tidb_info_schema_{name}"
    ]


def _source(rows, min_time: int = 0) -> InMemoryQuerySource:
    source = InMemoryQuerySource()
    source.add_rows(PROCESSLIST_QUERY % min_time, rows)
    return source


rows_strategy = st.lists(
    st.tuples(
        st.sampled_from(["tidb-0:10080", "tidb-1:10080"]),
        st.sampled_from(["root", "app", "observer"]),
        st.sampled_from(["10.0.0.1", "10.0.0.2", ""]),
        st.sampled_from(["", "mysql", "employee"]),
        st.integers(0, 10_000),
        st.sampled_from(["autocommit", "in transaction", "sleep"]),
        st.integers(0, 1 << 30),
        st.integers(0, 1 << 20),
    ),
    max_size=40,
)


class TestDecodeProcess:
    """Tests for decode_process()."""

    @pytest.mark.scraper
    def test_decodes_row(self) -> None:
        process = decode_process(PROCESSLIST_ROWS[0])
        assert process.instance == "tidb-0:10080"
        assert process.time == 1425

    @pytest.mark.scraper
    def test_empty_host_becomes_unknown(self) -> None:
        process = decode_process(("i", "u", "", "db", 1, "s", 0, 0))
        assert process.host == UNKNOWN_HOST

    @pytest.mark.scraper
    def test_null_db_becomes_empty(self) -> None:
        assert decode_process(("i", "u", "h", None, 1, "s", 0, 0)).db == ""

    @pytest.mark.scraper
    def test_accepts_driver_types(self) -> None:
        process = decode_process((b"i", b"u", b"h", b"d", Decimal(3), "s", "10", b"0"))
        assert (process.instance, process.time, process.mem, process.disk) == ("i", 3, 10, 0)

    @pytest.mark.scraper
    @pytest.mark.parametrize(
        ("column", "value"),
        [(4, "abc"), (4, -1), (6, 1.5), (7, None), (0, 1.5), (4, True)],
    )
    def test_rejects_bad_cells(self, column: int, value: object) -> None:
        row = list(PROCESSLIST_ROWS[0])
        row[column] = value
        with pytest.raises(RowDecodeError):
            decode_process(tuple(row))

    @pytest.mark.scraper
    def test_rejects_wrong_width(self) -> None:
        with pytest.raises(RowDecodeError):
            decode_process(PROCESSLIST_ROWS[0][:7])


class TestScrapeProcesslist:
    """Tests for ScrapeProcesslist.scrape()."""

    @pytest.mark.scraper
    async def test_state_series(self, run_scraper) -> None:
        samples = await run_scraper(ScrapeProcesslist(), _source(PROCESSLIST_ROWS))
        assert _series(samples, "threads") == [("autocommit", 4), ("in transaction", 2)]
        assert _series(samples, "threads_seconds") == [
            ("autocommit", 3284),
            ("in transaction", 551),
        ]
        assert _series(samples, "memory_bytes") == [
            ("autocommit", 8192),
            ("in transaction", 2054),
        ]
        assert _series(samples, "disk_bytes") == [("autocommit", 0), ("in transaction", 1024)]

    @pytest.mark.scraper
    async def test_dimension_series(self, run_scraper) -> None:
        samples = await run_scraper(ScrapeProcesslist(), _source(PROCESSLIST_ROWS))
        assert _series(samples, "processes_by_server") == [
            ("tidb-0:10080", 4),
            ("tidb-1:10080", 2),
        ]
        assert _series(samples, "processes_by_client") == [
            ("10.0.0.10", 2),
            ("10.0.0.16", 1),
            ("10.0.0.28", 2),
            ("10.0.0.70", 1),
        ]
        assert _series(samples, "processes_by_user") == [
            ("admin", 1),
            ("house", 2),
            ("observer", 2),
            ("r-reader", 1),
        ]
        assert _series(samples, "processes_by_db") == [("employee", 4), ("mysql", 2)]

    @pytest.mark.scraper
    async def test_emission_order(self, run_scraper) -> None:
        """Per-state series interleave by state, then server, client, user, db."""
        samples = await run_scraper(ScrapeProcesslist(), _source(PROCESSLIST_ROWS))
        names = [s.name.removeprefix("tidb_info_schema_") for s in samples]
        per_state = ["threads", "threads_seconds", "memory_bytes", "disk_bytes"]
        assert names == (
            per_state * 2
            + ["processes_by_server"] * 2
            + ["processes_by_client"] * 4
            + ["processes_by_user"] * 4
            + ["processes_by_db"] * 2
        )

    @pytest.mark.scraper
    async def test_label_names(self, run_scraper) -> None:
        samples = await run_scraper(ScrapeProcesslist(), _source(PROCESSLIST_ROWS))
        labels = {s.name: tuple(s.labels) for s in samples}
        assert labels["tidb_info_schema_threads"] == ("state",)
        assert labels["tidb_info_schema_processes_by_server"] == ("server",)
        assert labels["tidb_info_schema_processes_by_client"] == ("client",)
        assert labels["tidb_info_schema_processes_by_user"] == ("mysql_user",)
        assert labels["tidb_info_schema_processes_by_db"] == ("db",)

    @pytest.mark.scraper
    async def test_disabled_dimensions_are_not_emitted(self, run_scraper) -> None:
        options = ScrapeOptions(processes_by_client=False, processes_by_db=False)
        samples = await run_scraper(
            ScrapeProcesslist(), _source(PROCESSLIST_ROWS), options
        )
        names = {s.name for s in samples}
        assert "tidb_info_schema_processes_by_client" not in names
        assert "tidb_info_schema_processes_by_db" not in names
        assert "tidb_info_schema_processes_by_user" in names

    @pytest.mark.scraper
    async def test_min_time_goes_into_query(self, run_scraper) -> None:
        source = _source(PROCESSLIST_ROWS[:1], min_time=60)
        samples = await run_scraper(
            ScrapeProcesslist(), source, ScrapeOptions(processlist_min_time=60)
        )
        assert "TIME >= 60" in source.executed[0]
        assert _series(samples, "threads") == [("autocommit", 1)]

    @pytest.mark.scraper
    async def test_empty_result_emits_nothing(self, run_scraper) -> None:
        assert await run_scraper(ScrapeProcesslist(), _source([])) == []

    @pytest.mark.scraper
    async def test_bad_row_fails_scrape(self, run_scraper) -> None:
        rows = [*PROCESSLIST_ROWS, ("i", "u", "h", "d", "x", "s", 0, 0)]
        with pytest.raises(RowDecodeError):
            await run_scraper(ScrapeProcesslist(), _source(rows))

    @pytest.mark.scraper
    async def test_query_failure_propagates(self, run_scraper) -> None:
        source = InMemoryQuerySource()
        source.fail(PROCESSLIST_QUERY % 0)
        with pytest.raises(SourceUnavailable):
            await run_scraper(ScrapeProcesslist(), source)

    @pytest.mark.scraper
    async def test_cursor_closed_after_scrape(self, run_scraper) -> None:
        source = _source(PROCESSLIST_ROWS)
        await run_scraper(ScrapeProcesslist(), source)
        assert source.open_cursors == 0

    @pytest.mark.scraper
    async def test_scrape_is_repeatable(self, run_scraper) -> None:
        source = _source(PROCESSLIST_ROWS)
        first = await run_scraper(ScrapeProcesslist(), source)
        second = await run_scraper(ScrapeProcesslist(), source)
        assert first == second


class TestProcesslistProperties:
    """Property tests over generated processlists."""

    @staticmethod
    def _scrape(rows):
        samples = []
        asyncio.run(
            ScrapeProcesslist().scrape(_source(rows), samples.append, ScrapeOptions())
        )
        return samples

    @pytest.mark.scraper
    @settings(max_examples=50)
    @given(rows_strategy)
    def test_counts_and_sums_match_rows(self, rows) -> None:
        samples = self._scrape(rows)
        assert sum(v for _, v in _series(samples, "threads")) == len(rows)
        assert sum(v for _, v in _series(samples, "threads_seconds")) == sum(r[4] for r in rows)
        assert sum(v for _, v in _series(samples, "memory_bytes")) == sum(r[6] for r in rows)
        for dimension in ("server", "client", "user", "db"):
            counts = _series(samples, f"processes_by_{dimension}")
            assert sum(v for _, v in counts) == len(rows)
            keys = [k for k, _ in counts]
            assert keys == sorted(keys)

    @pytest.mark.scraper
    @settings(max_examples=50)
    @given(rows_strategy, st.randoms(use_true_random=False))
    def test_row_order_does_not_matter(self, rows, rnd) -> None:
        shuffled = list(rows)
        rnd.shuffle(shuffled)
        assert self._scrape(rows) == self._scrape(shuffled)

    @pytest.mark.scraper
    @settings(max_examples=25)
    @given(rows_strategy)
    def test_blank_client_host_reported_as_unknown(self, rows) -> None:
        samples = self._scrape(rows)
        clients = dict(_series(samples, "processes_by_client"))
        assert "" not in clients
        blank = sum(1 for r in rows if r[2] == "")
        assert clients.get(UNKNOWN_HOST, 0) == blank

"""Tests for the command line entry point."""

import logging

import pytest

from tidb_exporter import cli
from tidb_exporter.core.errors import ConfigurationError
from tidb_exporter.core.options import ScrapeOptions


@pytest.fixture
def restore_root_logger():
    """Put the root logger's handlers and level back after the test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def uvicorn_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    """Replace uvicorn.run with a recorder."""
    calls: list[dict] = []

    def fake_run(app, **kwargs) -> None:
        calls.append({"app": app, **kwargs})

    monkeypatch.setattr(cli.uvicorn, "run", fake_run)
    return calls


class TestParseListenAddress:
    """Tests for parse_listen_address()."""

    @pytest.mark.tier(0)
    @pytest.mark.parametrize(
        ("address", "expected"),
        [
            (":9104", ("0.0.0.0", 9104)),
            ("127.0.0.1:8080", ("127.0.0.1", 8080)),
            ("[::1]:9104", ("::1", 9104)),
        ],
    )
    def test_valid(self, address: str, expected: tuple[str, int]) -> None:
        assert cli.parse_listen_address(address) == expected

    @pytest.mark.tier(0)
    @pytest.mark.parametrize("address", ["9104", "host:", "host:http"])
    def test_invalid(self, address: str) -> None:
        with pytest.raises(ConfigurationError):
            cli.parse_listen_address(address)


class TestBuildCollector:
    """Tests for flag parsing into a Collector."""

    @pytest.mark.tier(0)
    def test_defaults_enable_every_scraper(self) -> None:
        args = cli.build_parser().parse_args([])
        collector = cli.build_collector(args)
        assert [s.name for s in collector.scrapers] == [
            "global_variables",
            "info_schema.processlist",
        ]
        assert collector.options == ScrapeOptions()

    @pytest.mark.tier(0)
    def test_scraper_can_be_disabled(self) -> None:
        args = cli.build_parser().parse_args(["--no-collect.info_schema.processlist"])
        collector = cli.build_collector(args)
        assert [s.name for s in collector.scrapers] == ["global_variables"]

    @pytest.mark.tier(0)
    def test_option_flags(self) -> None:
        args = cli.build_parser().parse_args(
            [
                "--collect.info_schema.processlist.min_time=15",
                "--no-collect.info_schema.processlist.processes_by_db",
            ]
        )
        options = cli.build_collector(args).options
        assert options.processlist_min_time == 15
        assert options.processes_by_db is False
        assert options.processes_by_user is True

    @pytest.mark.tier(0)
    def test_invalid_min_time(self) -> None:
        args = cli.build_parser().parse_args(
            ["--collect.info_schema.processlist.min_time=-4"]
        )
        with pytest.raises(ConfigurationError):
            cli.build_collector(args)

    @pytest.mark.tier(0)
    def test_web_flags(self) -> None:
        args = cli.build_parser().parse_args(
            ["--web.listen-address=:9200", "--web.telemetry-path=/tidb", "--timeout-offset=1"]
        )
        assert (args.listen_address, args.telemetry_path, args.timeout_offset) == (
            ":9200",
            "/tidb",
            1.0,
        )


class TestMain:
    """Tests for main()."""

    @pytest.mark.tier(1)
    def test_missing_dsn_is_usage_error(
        self, monkeypatch: pytest.MonkeyPatch, uvicorn_calls
    ) -> None:
        monkeypatch.delenv(cli.DSN_ENV, raising=False)
        with pytest.raises(SystemExit) as excinfo:
            cli.main([])
        assert excinfo.value.code == 2
        assert uvicorn_calls == []

    @pytest.mark.tier(1)
    def test_invalid_dsn_is_usage_error(self, uvicorn_calls, restore_root_logger) -> None:
        with pytest.raises(SystemExit):
            cli.main(["--dsn", "not a dsn"])
        assert uvicorn_calls == []

    @pytest.mark.tier(1)
    def test_serves_with_uvicorn(self, uvicorn_calls, restore_root_logger) -> None:
        assert cli.main(["--dsn", "mysql://root@tidb:4000/", "--web.listen-address=127.0.0.1:9999"]) == 0
        (call,) = uvicorn_calls
        assert (call["host"], call["port"]) == ("127.0.0.1", 9999)
        assert callable(call["app"])

    @pytest.mark.tier(1)
    def test_dsn_from_environment(
        self, monkeypatch: pytest.MonkeyPatch, uvicorn_calls, restore_root_logger
    ) -> None:
        monkeypatch.setenv(cli.DSN_ENV, "root:@tcp(tidb:4000)/")
        assert cli.main(["--log.level=warn"]) == 0
        assert uvicorn_calls[0]["log_level"] == "warning"

"""Command line entry point: parse flags, configure logging, serve."""

import argparse
import os
from collections.abc import Sequence
from typing import Any

import uvicorn

from tidb_exporter.adapters.frameworks.asgi import create_asgi_app
from tidb_exporter.adapters.sources.mysql import MySQLQuerySource
from tidb_exporter.core.collector import Collector
from tidb_exporter.core.errors import ConfigurationError
from tidb_exporter.core.logs import FORMATS, LEVELS, configure_logging, get_logger
from tidb_exporter.core.options import FLAG_HELP, FLAG_NAMES, ScrapeOptions
from tidb_exporter.core.scrapers import ALL_SCRAPERS, Scraper

logger = get_logger(__name__)

DSN_ENV = "DATA_SOURCE_NAME"

# uvicorn spells the warning level out
_UVICORN_LEVELS = {"warn": "warning"}


def _switch_dest(scraper_name: str) -> str:
    return "collect_" + scraper_name.replace(".", "_")


def _option_dest(flag: str) -> str:
    return "opt_" + FLAG_NAMES[flag]


def parse_listen_address(address: str) -> tuple[str, int]:
    """Split "host:port" (host optional) into its parts.

    Raises:
        ConfigurationError: If the port is missing or not a number.
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ConfigurationError(f"invalid listen address {address!r}")
    return host.strip("[]") or "0.0.0.0", int(port)


def build_parser(
    scrapers: Sequence[type[Scraper]] = ALL_SCRAPERS,
) -> argparse.ArgumentParser:
    """Build the argument parser, with one switch per registered scraper."""
    parser = argparse.ArgumentParser(
        prog="tidb_exporter",
        description="Prometheus exporter for TiDB server metrics.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default=":9104",
        help="Address to listen on for web interface and telemetry.",
    )
    parser.add_argument(
        "--web.telemetry-path",
        dest="telemetry_path",
        default="/metrics",
        help="Path under which to expose metrics.",
    )
    parser.add_argument(
        "--timeout-offset",
        dest="timeout_offset",
        type=float,
        default=0.25,
        help="Offset to subtract from the Prometheus scrape timeout in seconds.",
    )
    parser.add_argument(
        "--scrape-timeout",
        dest="scrape_timeout",
        type=float,
        default=None,
        help="Deadline in seconds for scrapes without a Prometheus timeout header.",
    )
    parser.add_argument(
        "--log.level", dest="log_level", choices=list(LEVELS), default="info"
    )
    parser.add_argument(
        "--log.format", dest="log_format", choices=list(FORMATS), default="logfmt"
    )
    parser.add_argument(
        "--dsn",
        default=None,
        help=f"Data source name (default: ${DSN_ENV}).",
    )

    switches = parser.add_argument_group("scrapers")
    for scraper_cls in scrapers:
        switches.add_argument(
            f"--collect.{scraper_cls.name}",
            dest=_switch_dest(scraper_cls.name),
            action=argparse.BooleanOptionalAction,
            default=True,
            help=scraper_cls.help or None,
        )

    options = parser.add_argument_group("scraper options")
    for flag in FLAG_NAMES:
        if FLAG_NAMES[flag] == "processlist_min_time":
            options.add_argument(
                f"--{flag}", dest=_option_dest(flag), default=None, help=FLAG_HELP[flag]
            )
        else:
            options.add_argument(
                f"--{flag}",
                dest=_option_dest(flag),
                action=argparse.BooleanOptionalAction,
                default=None,
                help=FLAG_HELP[flag],
            )
    return parser


def build_collector(
    args: argparse.Namespace,
    scrapers: Sequence[type[Scraper]] = ALL_SCRAPERS,
) -> Collector:
    """Instantiate the enabled scrapers with the options given on the command line.

    Raises:
        ConfigurationError: On an invalid option value.
    """
    flags: dict[str, Any] = {}
    for flag in FLAG_NAMES:
        value = getattr(args, _option_dest(flag))
        if value is not None:
            flags[flag] = value
    options = ScrapeOptions.from_flags(flags)
    enabled = [
        scraper_cls()
        for scraper_cls in scrapers
        if getattr(args, _switch_dest(scraper_cls.name))
    ]
    return Collector(enabled, options, timeout=args.scrape_timeout)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the exporter until interrupted."""
    parser = build_parser()
    args = parser.parse_args(argv)
    dsn = args.dsn or os.environ.get(DSN_ENV)
    if not dsn:
        parser.error(f"no data source given: pass --dsn or set {DSN_ENV}")

    try:
        configure_logging(args.log_level, args.log_format)
        host, port = parse_listen_address(args.listen_address)
        collector = build_collector(args)
        source = MySQLQuerySource.from_dsn(dsn)
    except ConfigurationError as exc:
        parser.error(str(exc))

    app = create_asgi_app(
        collector,
        source,
        telemetry_path=args.telemetry_path,
        timeout_offset=args.timeout_offset,
    )
    logger.with_fields(
        address=f"{host}:{port}",
        scrapers=",".join(s.name for s in collector.scrapers),
    ).info("Starting tidb_exporter")
    uvicorn.run(
        app,
        host=host,
        port=port,
        lifespan="off",
        log_config=None,
        log_level=_UVICORN_LEVELS.get(args.log_level, args.log_level),
    )
    return 0

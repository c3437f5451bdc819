"""Tunable scrape options.

All options are fixed at process start and passed explicitly into every
scrape. Flag names match the exporter's command line.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from tidb_exporter.core.errors import ConfigurationError

_PROCESSLIST = "collect.info_schema.processlist"

FLAG_NAMES: Mapping[str, str] = {
    f"{_PROCESSLIST}.min_time": "processlist_min_time",
    f"{_PROCESSLIST}.processes_by_client": "processes_by_client",
    f"{_PROCESSLIST}.processes_by_user": "processes_by_user",
    f"{_PROCESSLIST}.processes_by_server": "processes_by_server",
    f"{_PROCESSLIST}.processes_by_db": "processes_by_db",
}

FLAG_HELP: Mapping[str, str] = {
    f"{_PROCESSLIST}.min_time": (
        "Minimum time a thread must be in each state to be counted"
    ),
    f"{_PROCESSLIST}.processes_by_client": (
        "Enable collecting the number of processes by client host"
    ),
    f"{_PROCESSLIST}.processes_by_user": (
        "Enable collecting the number of processes by user"
    ),
    f"{_PROCESSLIST}.processes_by_server": (
        "Enable collecting the number of processes by tidb server host"
    ),
    f"{_PROCESSLIST}.processes_by_db": (
        "Enable collecting the number of processes by database"
    ),
}

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def _parse_bool(flag: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(f"flag {flag}: expected a boolean, got {value!r}")


def _parse_min_time(flag: str, value: Any) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigurationError(f"flag {flag}: expected an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"flag {flag}: expected an integer, got {value!r}"
        ) from None
    if number < 0:
        raise ConfigurationError(f"flag {flag}: must not be negative, got {number}")
    return number


@dataclass(frozen=True)
class ScrapeOptions:
    """Options recognised by the scrapers.

    Attributes:
        processlist_min_time: Minimum elapsed seconds for a session to be counted.
        processes_by_client: Emit the per-client-host breakdown.
        processes_by_user: Emit the per-user breakdown.
        processes_by_server: Emit the per-TiDB-server breakdown.
        processes_by_db: Emit the per-schema breakdown.
    """

    processlist_min_time: int = 0
    processes_by_client: bool = True
    processes_by_user: bool = True
    processes_by_server: bool = True
    processes_by_db: bool = True

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any]) -> "ScrapeOptions":
        """Build options from flag-name keyed values.

        Values may be native (int/bool) or strings as read from a command
        line or environment.

        Raises:
            ConfigurationError: On an unknown flag name or an invalid value.
        """
        unknown = sorted(set(flags) - set(FLAG_NAMES))
        if unknown:
            raise ConfigurationError(f"unknown option(s): {', '.join(unknown)}")
        values: dict[str, Any] = {}
        for flag, raw in flags.items():
            attr = FLAG_NAMES[flag]
            if attr == "processlist_min_time":
                values[attr] = _parse_min_time(flag, raw)
            else:
                values[attr] = _parse_bool(flag, raw)
        return replace(cls(), **values)

    def as_flags(self) -> dict[str, Any]:
        """Inverse of from_flags."""
        by_attr = {attr: flag for flag, attr in FLAG_NAMES.items()}
        return {by_attr[f.name]: getattr(self, f.name) for f in fields(self)}

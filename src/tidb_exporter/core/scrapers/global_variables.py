"""Scrape `SHOW GLOBAL VARIABLES`."""

from collections.abc import Mapping
from typing import Any

from tidb_exporter.core.errors import RowDecodeError
from tidb_exporter.core.metrics import NAMESPACE, MetricDesc, build_fq_name, sanitize_name
from tidb_exporter.core.normalize import (
    VARIABLE_POLICIES,
    VariablePolicy,
    normalize_variable,
    policy_for,
)
from tidb_exporter.core.options import ScrapeOptions
from tidb_exporter.core.ports import QuerySource, Row
from tidb_exporter.core.scrapers.base import Emit, Scraper

GLOBAL_VARIABLES_QUERY = "SHOW GLOBAL VARIABLES"

GLOBAL_VARIABLES = "global_variables"

VERSION_INFO = MetricDesc(
    build_fq_name(NAMESPACE, "version", "info"),
    "TiDB version and distribution.",
    ("version", "version_comment"),
)

_GENERIC_HELP = "Generic gauge metric from SHOW GLOBAL VARIABLES."


def _variable_desc(name: str) -> MetricDesc:
    return MetricDesc(
        build_fq_name(NAMESPACE, GLOBAL_VARIABLES, sanitize_name(name)),
        _GENERIC_HELP,
    )


def _decode_variable(row: Row) -> tuple[str, str]:
    if len(row) != 2:
        raise RowDecodeError("row", row, "2 columns")
    name, value = row
    return _as_text("Variable_name", name), _as_text("Value", value)


def _as_text(column: str, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        try:
            return value.decode()
        except UnicodeDecodeError:
            raise RowDecodeError(column, value, "text") from None
    return str(value)


class ScrapeGlobalVariables(Scraper):
    """Collects from `SHOW GLOBAL VARIABLES`.

    Each row is converted according to the variable policy table. The
    version and version_comment variables are reported together as the
    labels of a single version info gauge.
    """

    name = GLOBAL_VARIABLES
    help = "Collect from SHOW GLOBAL VARIABLES"
    minimum_version = 5.1

    def __init__(
        self, policies: Mapping[str, VariablePolicy] = VARIABLE_POLICIES
    ) -> None:
        self._policies = policies

    async def scrape(
        self, source: QuerySource, emit: Emit, options: ScrapeOptions
    ) -> None:
        info: dict[str, str] = {}

        async with source.query(GLOBAL_VARIABLES_QUERY) as rows:
            async for row in rows:
                name, value = _decode_variable(row)
                if policy_for(name, self._policies) is VariablePolicy.INFO:
                    info[name.lower()] = value
                    continue
                number = normalize_variable(name, value, self._policies)
                if number is None:
                    continue
                emit(_variable_desc(name).sample(number))

        if info:
            emit(
                VERSION_INFO.sample(
                    1, info.get("version", ""), info.get("version_comment", "")
                )
            )

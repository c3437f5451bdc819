"""Conversion of raw variable values into numeric sample values.

SHOW GLOBAL VARIABLES returns every value as text. Each known variable name is
mapped to a policy that decides how its text becomes a number, or whether it is
exported at all. Names missing from the table are skipped, so variables added
by newer servers never break a scrape.
"""

import math
import re
from collections.abc import Mapping
from enum import Enum

from tidb_exporter.core.errors import PolicyViolation


class VariablePolicy(Enum):
    """How a server variable is turned into a sample."""

    SKIP = "skip"
    NUMBER = "number"
    DURATION = "duration"
    SWITCH = "switch"
    INFO = "info"


_P = VariablePolicy

VARIABLE_POLICIES: Mapping[str, VariablePolicy] = {
    # Durations such as "10m0s" or "168h".
    "tidb_gc_life_time": _P.DURATION,
    "tidb_gc_run_interval": _P.DURATION,
    # ON/OFF switches.
    "autocommit": _P.SWITCH,
    "tidb_enable_1pc": _P.SWITCH,
    "tidb_enable_async_commit": _P.SWITCH,
    "tidb_enable_auto_analyze": _P.SWITCH,
    "tidb_enable_collect_execution_info": _P.SWITCH,
    "tidb_enable_index_merge": _P.SWITCH,
    "tidb_enable_metadata_lock": _P.SWITCH,
    "tidb_enable_paging": _P.SWITCH,
    "tidb_enable_prepared_plan_cache": _P.SWITCH,
    "tidb_enable_rate_limit_action": _P.SWITCH,
    "tidb_enable_slow_log": _P.SWITCH,
    "tidb_enable_stmt_summary": _P.SWITCH,
    "tidb_enable_tmp_storage_on_oom": _P.SWITCH,
    "tidb_gc_enable": _P.SWITCH,
    "tidb_persist_analyze_options": _P.SWITCH,
    "tidb_rc_write_check_ts": _P.SWITCH,
    "tidb_restricted_read_only": _P.SWITCH,
    "tidb_super_read_only": _P.SWITCH,
    # Sizes, counts, ratios and plain-integer timeouts.
    "interactive_timeout": _P.NUMBER,
    "max_allowed_packet": _P.NUMBER,
    "max_connections": _P.NUMBER,
    "max_execution_time": _P.NUMBER,
    "tidb_auto_analyze_ratio": _P.NUMBER,
    "tidb_build_stats_concurrency": _P.NUMBER,
    "tidb_distsql_scan_concurrency": _P.NUMBER,
    "tidb_executor_concurrency": _P.NUMBER,
    "tidb_expensive_query_time_threshold": _P.NUMBER,
    "tidb_gc_concurrency": _P.NUMBER,
    "tidb_gc_max_wait_time": _P.NUMBER,
    "tidb_index_lookup_size": _P.NUMBER,
    "tidb_init_chunk_size": _P.NUMBER,
    "tidb_max_chunk_size": _P.NUMBER,
    "tidb_max_tiflash_threads": _P.NUMBER,
    "tidb_mem_quota_analyze": _P.NUMBER,
    "tidb_mem_quota_query": _P.NUMBER,
    "tidb_memory_usage_alarm_ratio": _P.NUMBER,
    "tidb_query_log_max_len": _P.NUMBER,
    "tidb_retry_limit": _P.NUMBER,
    "tidb_server_memory_limit_sess_min_size": _P.NUMBER,
    "tidb_slow_log_threshold": _P.NUMBER,
    "tidb_stats_cache_mem_quota": _P.NUMBER,
    "tidb_stmt_summary_history_size": _P.NUMBER,
    "tidb_stmt_summary_max_stmt_count": _P.NUMBER,
    "tidb_stmt_summary_refresh_interval": _P.NUMBER,
    "tidb_txn_entry_size_limit": _P.NUMBER,
    "wait_timeout": _P.NUMBER,
    # Exported as labels of the version info sample.
    "version": _P.INFO,
    "version_comment": _P.INFO,
    # Accepted for MySQL compatibility but no-ops on TiDB.
    "innodb_open_files": _P.SKIP,
    "lower_case_table_names": _P.SKIP,
    "rpl_semi_sync_slave_enabled": _P.SKIP,
    # Literal values with no meaningful numeric form.
    "character_set_server": _P.SKIP,
    "innodb_default_row_format": _P.SKIP,
    "sql_mode": _P.SKIP,
    "tidb_mem_oom_action": _P.SKIP,
    "tidb_replica_read": _P.SKIP,
    "tidb_server_memory_limit": _P.SKIP,
    "tidb_txn_mode": _P.SKIP,
    "time_zone": _P.SKIP,
    "tls_version": _P.SKIP,
    "transaction_isolation": _P.SKIP,
}

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_SWITCH_VALUES = {
    "on": 1.0,
    "true": 1.0,
    "yes": 1.0,
    "1": 1.0,
    "off": 0.0,
    "false": 0.0,
    "no": 0.0,
    "0": 0.0,
}


def parse_number(value: str) -> float:
    """Parse a decimal integer or float.

    Raises:
        ValueError: If value is not a finite number.
    """
    number = float(value.strip())
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def parse_duration(value: str) -> float:
    """Parse a Go-style duration (e.g., "168h", "10m0s", "1.5s") into seconds.

    A bare number is taken to already be in seconds.

    Raises:
        ValueError: If value is not a valid duration.
    """
    text = value.strip()
    sign = 1.0
    if text[:1] in ("+", "-"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if not text:
        raise ValueError(f"empty duration: {value!r}")
    try:
        return sign * parse_number(text)
    except ValueError:
        pass

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position == 0 or position != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return sign * total


def parse_switch(value: str) -> float:
    """Map ON/OFF style values (any case) to 1.0 and 0.0.

    Raises:
        ValueError: If value is not a recognised switch value.
    """
    try:
        return _SWITCH_VALUES[value.strip().lower()]
    except KeyError:
        raise ValueError(f"not a switch value: {value!r}") from None


_PARSERS = {
    VariablePolicy.NUMBER: parse_number,
    VariablePolicy.DURATION: parse_duration,
    VariablePolicy.SWITCH: parse_switch,
}


def policy_for(
    name: str, policies: Mapping[str, VariablePolicy] = VARIABLE_POLICIES
) -> VariablePolicy:
    """Return the policy for a variable name; unknown names are skipped."""
    return policies.get(name.lower(), VariablePolicy.SKIP)


def normalize_variable(
    name: str,
    value: str,
    policies: Mapping[str, VariablePolicy] = VARIABLE_POLICIES,
) -> float | None:
    """Convert a variable's raw value according to its policy.

    Args:
        name: Variable name as returned by the server.
        value: Raw text value.
        policies: Policy table to consult.

    Returns:
        The numeric value, or None for SKIP and INFO variables.

    Raises:
        PolicyViolation: If the value does not parse under its policy.
    """
    policy = policy_for(name, policies)
    parser = _PARSERS.get(policy)
    if parser is None:
        return None
    try:
        return parser(value)
    except ValueError:
        raise PolicyViolation(name, value, policy.value) from None

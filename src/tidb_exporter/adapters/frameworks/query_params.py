"""Shared request parsing utilities for framework adapters.

This module provides utilities for parsing and validating the scrape
request parameters understood by every framework adapter (ASGI, FastAPI).
"""

import math

SCRAPE_TIMEOUT_HEADER = "X-Prometheus-Scrape-Timeout-Seconds"


def _parse_collect_param(params: dict[str, list[str]]) -> list[str]:
    """Return the scraper names selected with ``collect[]``.

    Args:
        params: Parsed query string parameters (as returned by urllib.parse.parse_qs).

    Returns:
        Selected names in request order; empty when none were given.
    """
    return [name for name in params.get("collect[]", []) if name]


def _parse_scrape_timeout(header_value: str | None, offset: float) -> float | None:
    """Turn the Prometheus scrape-timeout header into a cycle deadline.

    Args:
        header_value: Raw header value, or None when absent.
        offset: Seconds subtracted from the header to leave room for encoding.

    Returns:
        Deadline in seconds, or None when the header is absent or blank.

    Raises:
        ValueError: If the header is not a finite number or the offset
            consumes the whole timeout.
    """
    if header_value is None or not header_value.strip():
        return None
    try:
        seconds = float(header_value)
    except ValueError:
        raise ValueError(
            f"failed to parse timeout from Prometheus header: {header_value!r}"
        ) from None
    if not math.isfinite(seconds):
        raise ValueError(f"failed to parse timeout from Prometheus header: {header_value!r}")
    timeout = seconds - offset
    if timeout <= 0:
        raise ValueError(
            f"timeout offset ({offset}) should be lower than prometheus "
            f"scrape timeout ({seconds})"
        )
    return timeout

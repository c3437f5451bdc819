"""ASGI adapter serving the exporter.

This adapter provides a framework-agnostic ASGI application that can be used
with any ASGI server (uvicorn, hypercorn, daphne) without requiring FastAPI
as a dependency.
"""

import html
import json
from collections.abc import Callable, Coroutine
from typing import Any
from urllib.parse import parse_qs

from tidb_exporter.adapters.frameworks.query_params import (
    SCRAPE_TIMEOUT_HEADER,
    _parse_collect_param,
    _parse_scrape_timeout,
)
from tidb_exporter.core.collector import Collector
from tidb_exporter.core.encoding.prometheus import CONTENT_TYPE, encode_metrics
from tidb_exporter.core.logs import get_logger, log_exception
from tidb_exporter.core.ports import QuerySource

logger = get_logger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]


def _parse_query_params(scope: Scope) -> dict[str, list[str]]:
    """Parse query string from ASGI scope into parameter dictionary.

    Args:
        scope: ASGI scope dictionary containing request metadata.

    Returns:
        Dictionary mapping parameter names to lists of values.
        Returns empty dict if query_string is missing or empty.
    """
    query_string = scope.get("query_string", b"").decode(errors="replace")
    return parse_qs(query_string)


def _get_header(scope: Scope, header_name: str) -> str | None:
    """Return the first value of a header (case-insensitive), or None."""
    header_bytes = header_name.lower().encode()
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    for name, value in headers:
        if name.lower() == header_bytes:
            return value.decode("utf-8", errors="replace")
    return None


def _landing_page(collector: Collector, telemetry_path: str) -> str:
    items = "".join(
        f"<li>{html.escape(scraper.name)}</li>" for scraper in collector.scrapers
    )
    return (
        "<html><head><title>TiDB Exporter</title></head><body>"
        "<h1>TiDB Exporter</h1>"
        f'<p><a href="{html.escape(telemetry_path)}">Metrics</a></p>'
        f"<h2>Scrapers</h2><ul>{items}</ul>"
        "</body></html>"
    )


async def _send_response(send: Send, status: int, content_type: str, body: str) -> None:
    """Send an HTTP response with headers and body.

    Args:
        send: ASGI send callable for writing response.
        status: HTTP status code.
        content_type: Content-Type header value.
        body: Response body as string (will be encoded to bytes).
    """
    headers = [(b"content-type", content_type.encode())]
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": body.encode()})


async def _handle_endpoint(
    send: Send,
    endpoint_func: Callable[[], Coroutine[Any, Any, str]],
    content_type: str,
    log_message: str,
) -> None:
    """Execute an endpoint function with error handling and send response.

    Args:
        send: ASGI send callable for writing response.
        endpoint_func: Async function that returns response body.
        content_type: Content-Type header for success response.
        log_message: Message to log on error.
    """
    try:
        body = await endpoint_func()
        await _send_response(send, 200, content_type, body)
    except Exception:
        log_exception(log_message, logger)
        error_body = json.dumps({"error": "Internal Server Error"})
        await _send_response(send, 500, "application/json", error_body)


async def _scrape(
    collector: Collector, source: QuerySource, timeout: float | None
) -> str:
    result = await collector.collect(source, timeout=timeout)
    return encode_metrics(result.all_samples())


def create_asgi_app(
    collector: Collector,
    source: QuerySource,
    *,
    telemetry_path: str = "/metrics",
    timeout_offset: float = 0.25,
) -> ASGIApp:
    """Create an ASGI app exposing the collector in Prometheus format.

    Args:
        collector: Collector run on every scrape.
        source: Query source shared by all scrapes.
        telemetry_path: Path serving the metrics.
        timeout_offset: Seconds subtracted from the Prometheus scrape timeout.

    Returns:
        ASGI application callable.
    """

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        path = scope["path"]

        if path == telemetry_path:
            params = _parse_query_params(scope)
            try:
                timeout = _parse_scrape_timeout(
                    _get_header(scope, SCRAPE_TIMEOUT_HEADER), timeout_offset
                )
            except ValueError as exc:
                logger.with_fields(err=str(exc)).warning("Invalid scrape timeout")
                await _send_response(send, 400, "text/plain", str(exc))
                return
            selected = collector.select(_parse_collect_param(params))
            await _handle_endpoint(
                send,
                lambda: _scrape(selected, source, timeout),
                CONTENT_TYPE,
                "Error encoding metrics endpoint",
            )
        elif path == "/":
            await _send_response(
                send,
                200,
                "text/html; charset=utf-8",
                _landing_page(collector, telemetry_path),
            )
        elif path == "/-/healthy":
            await _send_response(send, 200, "text/plain", "OK")
        else:
            await _send_response(send, 404, "text/plain", "Not Found")

    return app

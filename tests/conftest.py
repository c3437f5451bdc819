"""Shared test fixtures for all test modules."""

from collections.abc import Callable, Coroutine
from typing import Any

import pytest

from tests.rows import GLOBAL_VARIABLE_ROWS, PROCESSLIST_ROWS, VERSION_ROWS
from tidb_exporter.adapters.sources.in_memory import InMemoryQuerySource
from tidb_exporter.core.collector import VERSION_QUERY
from tidb_exporter.core.models import Sample
from tidb_exporter.core.options import ScrapeOptions
from tidb_exporter.core.scrapers.base import Scraper
from tidb_exporter.core.scrapers.global_variables import GLOBAL_VARIABLES_QUERY
from tidb_exporter.core.scrapers.processlist import PROCESSLIST_QUERY

try:
    import httpx
except ImportError:
    httpx = None


@pytest.fixture
def source() -> InMemoryQuerySource:
    """Provide an empty in-memory query source."""
    return InMemoryQuerySource()


@pytest.fixture
def options() -> ScrapeOptions:
    """Provide default scrape options."""
    return ScrapeOptions()


@pytest.fixture
def tidb_source() -> InMemoryQuerySource:
    """In-memory source answering every query the default scrapers run."""
    source = InMemoryQuerySource()
    source.add_rows(VERSION_QUERY, VERSION_ROWS)
    source.add_rows(GLOBAL_VARIABLES_QUERY, GLOBAL_VARIABLE_ROWS)
    source.add_rows(PROCESSLIST_QUERY % 0, PROCESSLIST_ROWS)
    return source


@pytest.fixture
def run_scraper() -> Callable[..., Coroutine[Any, Any, list[Sample]]]:
    """Factory fixture running one scraper and returning what it emitted.

    Usage:
        async def test_something(run_scraper, source):
            samples = await run_scraper(ScrapeProcesslist(), source)
    """

    async def _run(
        scraper: Scraper,
        source: InMemoryQuerySource,
        options: ScrapeOptions | None = None,
    ) -> list[Sample]:
        samples: list[Sample] = []
        await scraper.scrape(source, samples.append, options or ScrapeOptions())
        return samples

    return _run


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Returns a callable that accepts an ASGI app and yields a client
    with ASGITransport configured.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(collector, source)
            async with asgi_test_client(app) as client:
                response = await client.get("/metrics")
    """
    if httpx is None:
        pytest.skip("httpx not installed")

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""

    def _scope(
        path: str = "/metrics",
        query_string: bytes = b"",
        headers: list[tuple[bytes, bytes]] | None = None,
    ) -> dict[str, Any]:
        return {
            "type": "http",
            "method": "GET",
            "path": path,
            "query_string": query_string,
            "headers": headers or [],
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""
    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        """Capture ASGI messages."""
        responses.append(message)

    return send, responses

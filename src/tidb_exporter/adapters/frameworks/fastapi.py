"""FastAPI adapter for the exporter endpoint."""

from fastapi import APIRouter, Header, Query, Response

from tidb_exporter.adapters.frameworks.query_params import (
    SCRAPE_TIMEOUT_HEADER,
    _parse_scrape_timeout,
)
from tidb_exporter.core.collector import Collector
from tidb_exporter.core.encoding.prometheus import CONTENT_TYPE, encode_metrics
from tidb_exporter.core.ports import QuerySource


def create_exporter_router(
    collector: Collector,
    source: QuerySource,
    *,
    telemetry_path: str = "/metrics",
    timeout_offset: float = 0.25,
) -> APIRouter:
    """Create a FastAPI router with the metrics endpoint.

    Args:
        collector: Collector run on every scrape.
        source: Query source shared by all scrapes.
        telemetry_path: Path serving the metrics.
        timeout_offset: Seconds subtracted from the Prometheus scrape timeout.

    Returns:
        APIRouter with the metrics endpoint configured.
    """
    router = APIRouter()

    @router.get(telemetry_path)
    async def get_metrics(
        collect: list[str] | None = Query(default=None, alias="collect[]"),
        scrape_timeout: str | None = Header(default=None, alias=SCRAPE_TIMEOUT_HEADER),
    ) -> Response:
        """Run one scrape cycle and return it in Prometheus text format.

        Args:
            collect: Names of the scrapers to run (default: all).
            scrape_timeout: Prometheus scrape timeout in seconds.
        """
        try:
            timeout = _parse_scrape_timeout(scrape_timeout, timeout_offset)
        except ValueError as exc:
            return Response(content=str(exc), status_code=400, media_type="text/plain")
        selected = collector.select([name for name in collect or [] if name])
        result = await selected.collect(source, timeout=timeout)
        return Response(
            content=encode_metrics(result.all_samples()),
            media_type=CONTENT_TYPE,
        )

    return router

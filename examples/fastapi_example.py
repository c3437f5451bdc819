"""Example FastAPI application exporting a live TiDB server.

Run with:
    DATA_SOURCE_NAME=mysql://root@127.0.0.1:4000/ uvicorn examples.fastapi_example:app

Endpoints:
    /metrics                      - Prometheus text format (all scrapers)
    /metrics?collect[]=<name>     - Only the named scrapers
"""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tidb_exporter.adapters.frameworks.fastapi import create_exporter_router
from tidb_exporter.adapters.sources.mysql import MySQLQuerySource
from tidb_exporter.core.collector import Collector
from tidb_exporter.core.options import ScrapeOptions
from tidb_exporter.core.scrapers import default_scrapers

source = MySQLQuerySource.from_dsn(
    os.environ.get("DATA_SOURCE_NAME", "mysql://root@127.0.0.1:4000/")
)
collector = Collector(default_scrapers(), ScrapeOptions(processlist_min_time=1))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Close the connection pool on shutdown."""
    yield
    await source.close()


app = FastAPI(title="TiDB Exporter", lifespan=lifespan)
app.include_router(create_exporter_router(collector, source))

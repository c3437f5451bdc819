"""Example ASGI exporter serving canned TiDB rows.

Run with:
    uvicorn examples.asgi_example:app

Endpoints:
    /metrics                      - Prometheus text format (all scrapers)
    /metrics?collect[]=<name>     - Only the named scrapers
    /                             - Landing page
    /-/healthy                    - Health check

No server is needed: the rows come from an InMemoryQuerySource, so the
output is the same on every scrape.
"""

from tidb_exporter.adapters.frameworks.asgi import create_asgi_app
from tidb_exporter.adapters.sources.in_memory import InMemoryQuerySource
from tidb_exporter.core.collector import VERSION_QUERY, Collector
from tidb_exporter.core.scrapers import default_scrapers
from tidb_exporter.core.scrapers.global_variables import GLOBAL_VARIABLES_QUERY
from tidb_exporter.core.scrapers.processlist import PROCESSLIST_QUERY

source = InMemoryQuerySource()
source.add_rows(VERSION_QUERY, [("8.0.11-TiDB-v7.5.0",)])
source.add_rows(
    GLOBAL_VARIABLES_QUERY,
    [
        ("tidb_gc_life_time", "10m0s"),
        ("tidb_enable_async_commit", "ON"),
        ("max_connections", "0"),
        ("version", "8.0.11-TiDB-v7.5.0"),
        ("version_comment", "TiDB Server (Apache License 2.0) Community Edition"),
    ],
)
source.add_rows(
    PROCESSLIST_QUERY % 0,
    [
        ("tidb-0:10080", "app", "10.0.0.1", "shop", 12, "autocommit", 4096, 0),
        ("tidb-0:10080", "app", "10.0.0.2", "shop", 3, "in transaction", 8192, 0),
        ("tidb-1:10080", "report", "10.0.0.3", "", 640, "autocommit", 0, 1 << 20),
    ],
)

app = create_asgi_app(Collector(default_scrapers(), timeout=5.0), source)

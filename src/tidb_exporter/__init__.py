"""Prometheus exporter for TiDB clusters."""

from tidb_exporter.core.collector import Collector
from tidb_exporter.core.models import CycleResult, MetricKind, Sample, ScrapeOutcome
from tidb_exporter.core.options import ScrapeOptions
from tidb_exporter.core.scrapers import ALL_SCRAPERS, default_scrapers

__version__ = "0.1.0"

__all__ = [
    "ALL_SCRAPERS",
    "Collector",
    "CycleResult",
    "MetricKind",
    "Sample",
    "ScrapeOptions",
    "ScrapeOutcome",
    "default_scrapers",
]

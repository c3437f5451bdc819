"""Scrapers and the registry of scrapers known to the exporter."""

from tidb_exporter.core.scrapers.base import Emit, Scraper
from tidb_exporter.core.scrapers.global_variables import ScrapeGlobalVariables
from tidb_exporter.core.scrapers.processlist import ScrapeProcesslist

# Registration order is the order samples appear in the exposition.
ALL_SCRAPERS: tuple[type[Scraper], ...] = (
    ScrapeGlobalVariables,
    ScrapeProcesslist,
)


def default_scrapers() -> list[Scraper]:
    """Instantiate every registered scraper."""
    return [scraper_cls() for scraper_cls in ALL_SCRAPERS]


__all__ = [
    "ALL_SCRAPERS",
    "Emit",
    "ScrapeGlobalVariables",
    "ScrapeProcesslist",
    "Scraper",
    "default_scrapers",
]

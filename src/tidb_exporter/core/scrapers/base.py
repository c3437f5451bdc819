"""Abstract base class for scrapers."""

from abc import ABC, abstractmethod
from collections.abc import Callable

from tidb_exporter.core.models import Sample
from tidb_exporter.core.options import ScrapeOptions
from tidb_exporter.core.ports import QuerySource

Emit = Callable[[Sample], None]


class Scraper(ABC):
    """A unit of work that queries one source facility and emits samples.

    Subclasses set the class attributes and implement scrape(). Each scrape
    must read every row of the queries it opens, must not keep a reference
    to the source after returning, and raises a ScrapeError subclass on
    failure. Deadlines are applied by the caller through task cancellation.

    Attributes:
        name: Stable unique identifier, also used in collect[] selection.
        help: Short description of what is collected.
        minimum_version: Lowest server version (major.minor) supporting it.
    """

    name: str
    help: str = ""
    minimum_version: float = 5.1

    @abstractmethod
    async def scrape(
        self, source: QuerySource, emit: Emit, options: ScrapeOptions
    ) -> None:
        """Query the source and pass samples to emit."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

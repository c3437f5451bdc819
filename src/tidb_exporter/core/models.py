"""Core domain models for scraped metrics."""

from dataclasses import dataclass, field
from enum import Enum


class MetricKind(Enum):
    """Exposition type of a metric."""

    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class Sample:
    """A single metric data point produced by a scrape.

    Attributes:
        name: Fully qualified metric name (e.g., tidb_info_schema_threads).
        kind: Counter (cumulative) or gauge (instantaneous).
        value: The metric value.
        labels: Ordered key-value pairs for metric dimensions.
        help: Help text rendered in the exposition header.
    """

    name: str
    kind: MetricKind
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    help: str = ""


@dataclass(frozen=True)
class ScrapeOutcome:
    """Result of running one scraper for one cycle.

    Attributes:
        name: Scraper name.
        success: True if the scraper returned without error.
        duration: Wall time spent in the scraper, in seconds.
        error: The exception that ended the scrape, if any.
    """

    name: str
    success: bool
    duration: float
    error: BaseException | None = None


@dataclass
class CycleResult:
    """Everything one scrape cycle produced.

    Attributes:
        samples: Samples from successful scrapers, merged in registration order.
        outcomes: One outcome per scraper that was run.
        skipped: Names of scrapers not run because the server version is too old.
        up: Whether the query source answered the initial ping.
        exporter_samples: Self-observability samples for this cycle.
    """

    samples: list[Sample] = field(default_factory=list)
    outcomes: list[ScrapeOutcome] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    up: bool = True
    exporter_samples: list[Sample] = field(default_factory=list)

    @property
    def failed(self) -> list[ScrapeOutcome]:
        """Outcomes of scrapers that did not succeed."""
        return [o for o in self.outcomes if not o.success]

    def all_samples(self) -> list[Sample]:
        """Scraper samples followed by the exporter's own samples."""
        return [*self.samples, *self.exporter_samples]

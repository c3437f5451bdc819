"""Runs the registered scrapers for one cycle and merges their output.

Every scraper runs as its own task under the cycle deadline and writes into
its own buffer. A scraper that fails or runs out of time contributes no
samples and a failed outcome; the others are unaffected.
"""

import asyncio
import re
import time
from collections.abc import Iterable
from dataclasses import dataclass

from tidb_exporter.core.errors import ScrapeCancelled, ScrapeError, SourceUnavailable
from tidb_exporter.core.logs import get_logger, log_exception
from tidb_exporter.core.metrics import NAMESPACE, MetricDesc, build_fq_name
from tidb_exporter.core.models import CycleResult, Sample, ScrapeOutcome
from tidb_exporter.core.options import ScrapeOptions
from tidb_exporter.core.ports import QuerySource
from tidb_exporter.core.scrapers.base import Scraper

logger = get_logger(__name__)

VERSION_QUERY = "SELECT @@version"

EXPORTER = "exporter"

UP = MetricDesc(build_fq_name(NAMESPACE, "up"), "Whether the TiDB server is up.")
COLLECTOR_DURATION = MetricDesc(
    build_fq_name(NAMESPACE, EXPORTER, "collector_duration_seconds"),
    "Collector time duration.",
    ("collector",),
)
COLLECTOR_SUCCESS = MetricDesc(
    build_fq_name(NAMESPACE, EXPORTER, "collector_success"),
    "tidb_exporter: Whether a collector succeeded.",
    ("collector",),
)
COLLECTOR_SKIPPED = MetricDesc(
    build_fq_name(NAMESPACE, EXPORTER, "collector_skipped"),
    "tidb_exporter: Whether a collector was skipped as unsupported by the server version.",
    ("collector",),
)
LAST_SCRAPE_ERROR = MetricDesc(
    build_fq_name(NAMESPACE, EXPORTER, "last_scrape_error"),
    "Whether the last scrape of metrics from TiDB resulted in an error "
    "(1 for error, 0 for success).",
)

_VERSION_NUMBER = re.compile(r"^\d+\.\d+")


def parse_version(version: str) -> float | None:
    """Extract major.minor from a server version string.

    "5.7.25-TiDB-v6.5.0" -> 5.7
    """
    match = _VERSION_NUMBER.match(version.strip())
    return float(match.group()) if match else None


@dataclass
class _Run:
    outcome: ScrapeOutcome
    samples: list[Sample]


class Collector:
    """Orchestrates a fixed, ordered set of scrapers.

    Args:
        scrapers: Scrapers to run, in registration order.
        options: Tunable options passed to every scraper.
        timeout: Default cycle deadline in seconds (None for no deadline).

    Raises:
        ValueError: If two scrapers share a name.
    """

    def __init__(
        self,
        scrapers: Iterable[Scraper],
        options: ScrapeOptions | None = None,
        *,
        timeout: float | None = None,
    ) -> None:
        self._scrapers = tuple(scrapers)
        names = [s.name for s in self._scrapers]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate scraper names: {', '.join(duplicates)}")
        self._options = options or ScrapeOptions()
        self._timeout = timeout

    @property
    def scrapers(self) -> tuple[Scraper, ...]:
        """Registered scrapers in registration order."""
        return self._scrapers

    @property
    def options(self) -> ScrapeOptions:
        return self._options

    def select(self, names: Iterable[str]) -> "Collector":
        """Return a collector restricted to the named scrapers.

        Unknown names are ignored. An empty selection keeps every scraper.
        """
        wanted = set(names)
        if not wanted:
            return self
        return Collector(
            [s for s in self._scrapers if s.name in wanted],
            self._options,
            timeout=self._timeout,
        )

    async def collect(
        self, source: QuerySource, *, timeout: float | None = None
    ) -> CycleResult:
        """Run one scrape cycle against source.

        Args:
            source: Query source shared by all scrapers.
            timeout: Deadline for this cycle in seconds; overrides the default.

        Returns:
            CycleResult with merged samples, one outcome per scraper run,
            and the exporter's own samples.
        """
        if timeout is None:
            timeout = self._timeout
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        result = CycleResult()
        start = time.perf_counter()
        ping_error = await self._ping(source, deadline)
        connect_duration = time.perf_counter() - start
        result.up = ping_error is None

        if ping_error is not None:
            error_cls, message = ping_error
            result.outcomes = [
                ScrapeOutcome(
                    name=scraper.name,
                    success=False,
                    duration=0.0,
                    error=error_cls(message, scraper.name),
                )
                for scraper in self._scrapers
            ]
        else:
            scrapers = await self._eligible(source, deadline)
            result.skipped = [s.name for s in self._scrapers if s not in scrapers]
            runs = await asyncio.gather(
                *(self._run(scraper, source, deadline) for scraper in scrapers)
            )
            for run in runs:
                result.samples.extend(run.samples)
                result.outcomes.append(run.outcome)

        result.exporter_samples = self._exporter_samples(result, connect_duration)
        return result

    async def _ping(
        self, source: QuerySource, deadline: float | None
    ) -> tuple[type[ScrapeError], str] | None:
        """Ping source; return the error class and message scrapers should get."""
        scope = asyncio.timeout_at(deadline)
        try:
            async with scope:
                await source.ping()
        except TimeoutError:
            logger.error("Timed out pinging source")
            if scope.expired():
                return ScrapeCancelled, "scrape deadline exceeded before source answered ping"
            return SourceUnavailable, "source ping timed out"
        except ScrapeError as exc:
            logger.with_fields(err=str(exc)).error("Error pinging source")
            return SourceUnavailable, "source did not answer ping"
        except Exception:
            log_exception("Unexpected error pinging source", logger)
            return SourceUnavailable, "source did not answer ping"
        return None

    async def _server_version(
        self, source: QuerySource, deadline: float | None
    ) -> float | None:
        first = None
        try:
            async with asyncio.timeout_at(deadline):
                async with source.query(VERSION_QUERY) as rows:
                    async for row in rows:
                        if first is None:
                            first = row
        except (TimeoutError, ScrapeError) as exc:
            logger.with_fields(err=str(exc)).debug("Could not read server version")
            return None
        except Exception:
            log_exception("Unexpected error reading server version", logger)
            return None
        if not first or first[0] is None:
            return None
        raw = first[0]
        if isinstance(raw, bytes):
            raw = raw.decode(errors="replace")
        return parse_version(str(raw))

    async def _eligible(
        self, source: QuerySource, deadline: float | None
    ) -> list[Scraper]:
        version = await self._server_version(source, deadline)
        if version is None:
            return list(self._scrapers)
        eligible = []
        for scraper in self._scrapers:
            if scraper.minimum_version > version:
                logger.with_fields(
                    scraper=scraper.name,
                    minimum_version=scraper.minimum_version,
                    server_version=version,
                ).debug("Skipping scraper unsupported by server version")
                continue
            eligible.append(scraper)
        return eligible

    async def _run(
        self, scraper: Scraper, source: QuerySource, deadline: float | None
    ) -> _Run:
        log = logger.with_fields(scraper=scraper.name)
        samples: list[Sample] = []
        error: BaseException | None = None
        scope = asyncio.timeout_at(deadline)
        start = time.perf_counter()
        try:
            async with scope:
                await scraper.scrape(source, samples.append, self._options)
        except TimeoutError as exc:
            if scope.expired():
                error = ScrapeCancelled("scrape deadline exceeded", scraper.name)
            else:
                error = SourceUnavailable(str(exc) or "timed out", scraper.name)
            log.with_fields(err=str(error)).error("Error from scraper")
        except ScrapeError as exc:
            if exc.scraper is None:
                exc.scraper = scraper.name
            error = exc
            log.with_fields(err=str(exc)).error("Error from scraper")
        except Exception as exc:
            error = exc
            log_exception("Unexpected error from scraper", log)
        duration = time.perf_counter() - start

        if error is not None:
            return _Run(ScrapeOutcome(scraper.name, False, duration, error), [])
        log.with_fields(duration=round(duration, 6), samples=len(samples)).debug(
            "Scraper finished"
        )
        return _Run(ScrapeOutcome(scraper.name, True, duration), samples)

    def _exporter_samples(
        self, result: CycleResult, connect_duration: float
    ) -> list[Sample]:
        samples = [
            UP.sample(1 if result.up else 0),
            COLLECTOR_DURATION.sample(connect_duration, "connection"),
        ]
        samples.extend(
            COLLECTOR_DURATION.sample(o.duration, o.name) for o in result.outcomes
        )
        samples.extend(
            COLLECTOR_SUCCESS.sample(1 if o.success else 0, o.name)
            for o in result.outcomes
        )
        samples.extend(COLLECTOR_SKIPPED.sample(1, name) for name in result.skipped)
        errored = not result.up or bool(result.failed)
        samples.append(LAST_SCRAPE_ERROR.sample(1 if errored else 0))
        return samples

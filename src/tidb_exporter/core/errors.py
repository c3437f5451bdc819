"""Exception hierarchy for configuration and scrape failures."""

from typing import Any


class ExporterError(Exception):
    """Base class for all tidb_exporter errors."""


class ConfigurationError(ExporterError, ValueError):
    """Raised when options or flags cannot be loaded."""


class ScrapeError(ExporterError):
    """A failure scoped to a single scraper for a single cycle.

    Args:
        message: Human readable description.
        scraper: Name of the scraper that failed, when known.
    """

    def __init__(self, message: str, scraper: str | None = None) -> None:
        super().__init__(message)
        self.scraper = scraper

    def __str__(self) -> str:
        message = super().__str__()
        if self.scraper:
            return f"{self.scraper}: {message}"
        return message


class SourceUnavailable(ScrapeError):
    """Connecting to the source or executing a query failed."""


class RowDecodeError(ScrapeError):
    """A cell could not be converted to the type its column requires."""

    def __init__(
        self,
        column: str,
        value: Any,
        expected: str,
        scraper: str | None = None,
    ) -> None:
        super().__init__(
            f"cannot decode column {column!r} value {value!r} as {expected}",
            scraper,
        )
        self.column = column
        self.value = value


class PolicyViolation(ScrapeError):
    """A variable's value did not match the policy registered for its name."""

    def __init__(
        self,
        variable: str,
        value: str,
        policy: str,
        scraper: str | None = None,
    ) -> None:
        super().__init__(
            f"variable {variable!r} value {value!r} is not a valid {policy}",
            scraper,
        )
        self.variable = variable
        self.value = value


class ScrapeCancelled(ScrapeError):
    """The cycle deadline elapsed before the scraper finished."""

"""Metric descriptors and helper functions for creating Sample objects."""

import re
from dataclasses import dataclass

from tidb_exporter.core.models import MetricKind, Sample

NAMESPACE = "tidb"

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def build_fq_name(*parts: str) -> str:
    """Join non-empty name parts with underscores.

    Args:
        parts: Namespace, subsystem and name (e.g., "tidb", "info_schema", "threads").

    Returns:
        Fully qualified metric name (e.g., "tidb_info_schema_threads").
    """
    return "_".join(part for part in parts if part)


def sanitize_name(name: str) -> str:
    """Lower-case a raw name and replace characters invalid in metric names."""
    return _INVALID_NAME_CHARS.sub("_", name.lower())


@dataclass(frozen=True)
class MetricDesc:
    """Describes a metric whose label keys are fixed.

    Attributes:
        name: Fully qualified metric name.
        help: Help text for the exposition header.
        label_names: Label keys every sample of this metric carries, in order.
        kind: Counter or gauge.
    """

    name: str
    help: str
    label_names: tuple[str, ...] = ()
    kind: MetricKind = MetricKind.GAUGE

    def sample(self, value: float, *label_values: str) -> Sample:
        """Create a sample with one value per declared label.

        Raises:
            ValueError: If the number of label values does not match label_names.
        """
        if len(label_values) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, "
                f"got {len(label_values)}"
            )
        return Sample(
            name=self.name,
            kind=self.kind,
            value=float(value),
            labels=dict(zip(self.label_names, label_values, strict=True)),
            help=self.help,
        )


def counter(
    name: str,
    value: float = 1.0,
    labels: dict[str, str] | None = None,
    help: str = "",
) -> Sample:
    """Create a counter sample.

    Args:
        name: Metric name (e.g., "tidb_exporter_scrapes_total")
        value: Cumulative value (default: 1.0)
        labels: Optional dimension labels
        help: Optional help text

    Returns:
        Sample of kind COUNTER
    """
    return Sample(
        name=name,
        kind=MetricKind.COUNTER,
        value=float(value),
        labels=labels or {},
        help=help,
    )


def gauge(
    name: str,
    value: float,
    labels: dict[str, str] | None = None,
    help: str = "",
) -> Sample:
    """Create a gauge sample.

    Args:
        name: Metric name (e.g., "tidb_up")
        value: Current gauge value
        labels: Optional dimension labels
        help: Optional help text

    Returns:
        Sample of kind GAUGE
    """
    return Sample(
        name=name,
        kind=MetricKind.GAUGE,
        value=float(value),
        labels=labels or {},
        help=help,
    )

"""Prometheus text exposition format encoder."""

import math
from collections.abc import Iterable

from tidb_exporter.core.models import Sample

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def format_value(value: float) -> str:
    """Format a sample value the way Prometheus clients do.

    Integral values are written without a fractional part; infinities and
    NaN use the exposition spellings.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _format_labels(labels: dict[str, str]) -> str:
    if not labels:
        return ""
    pairs = ",".join(
        f'{key}="{_escape_label_value(value)}"' for key, value in labels.items()
    )
    return "{" + pairs + "}"


def encode_metrics(samples: Iterable[Sample]) -> str:
    """Encode samples in the Prometheus text format.

    Samples are grouped by metric name in the order each name is first seen,
    keeping the relative order of samples within a name. Each group gets one
    HELP and one TYPE line.

    Args:
        samples: An iterable of Sample objects.

    Returns:
        Exposition text ending with a newline, or an empty string if there
        are no samples.
    """
    groups: dict[str, list[Sample]] = {}
    for sample in samples:
        groups.setdefault(sample.name, []).append(sample)

    lines: list[str] = []
    for name, group in groups.items():
        first = group[0]
        if first.help:
            lines.append(f"# HELP {name} {_escape_help(first.help)}")
        lines.append(f"# TYPE {name} {first.kind.value}")
        for sample in group:
            lines.append(
                f"{name}{_format_labels(sample.labels)} {format_value(sample.value)}"
            )

    if not lines:
        return ""

    return "\n".join(lines) + "\n"

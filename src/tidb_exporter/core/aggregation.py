"""Keyed summation buckets with deterministic output order.

Rows arrive in whatever order the cluster returns them, which differs between
cycles and between nodes. Every dimension is therefore re-sorted by key before
it is emitted.
"""

from collections.abc import Callable, Iterator, Mapping
from typing import Any, Generic, TypeVar

K = TypeVar("K", str, int)


def sorted_keys(mapping: Mapping[K, Any]) -> list[K]:
    """Return the keys of a mapping in ascending order."""
    return sorted(mapping)


class Aggregator(Generic[K]):
    """Accumulates one or more numeric series per dimension key.

    All series share one key set, so a key that received a contribution to any
    series reports every declared series (missing ones as 0).

    Args:
        series: Names of the parallel series kept per key. Defaults to a single
            "count" series.
    """

    def __init__(self, *series: str) -> None:
        self._series = series or ("count",)
        self._buckets: dict[K, dict[str, int | float]] = {}

    @property
    def series(self) -> tuple[str, ...]:
        """Declared series names, in declaration order."""
        return self._series

    def add(self, key: K, series: str = "count", delta: int | float = 1) -> None:
        """Add delta to one series of the bucket for key.

        Raises:
            KeyError: If series was not declared.
        """
        if series not in self._series:
            raise KeyError(f"undeclared series {series!r}")
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = dict.fromkeys(self._series, 0)
            self._buckets[key] = bucket
        bucket[series] += delta

    def items(self) -> Iterator[tuple[K, dict[str, int | float]]]:
        """Yield (key, values) pairs in ascending key order."""
        for key in sorted_keys(self._buckets):
            yield key, dict(self._buckets[key])

    def for_each_sorted(
        self, fn: Callable[[K, dict[str, int | float]], None]
    ) -> None:
        """Call fn(key, values) once per key in ascending key order."""
        for key, values in self.items():
            fn(key, values)

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: object) -> bool:
        return key in self._buckets

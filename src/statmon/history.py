"""Bounded in-memory metric history for statmon."""

import logging
import math
from collections import deque
from collections.abc import Iterator

from statmon.models import StatSnapshot

logger = logging.getLogger(__name__)


class MetricSeries:
    """
    Fixed-capacity history of (timestamp, value) samples for one metric.

    Backed by a deque with maxlen, so pushing at capacity evicts the oldest
    sample in O(1). Values are stored raw, including NaN and infinities;
    display clamping is the renderer's job.
    """

    __slots__ = ("name", "_samples")

    def __init__(self, name: str, capacity: int) -> None:
        """
        Initialize the series.

        Args:
            name: Metric name this series tracks.
            capacity: Maximum number of retained samples (chart width).
        """
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.name = name
        self._samples: deque[tuple[float, float]] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        """Get the maximum number of samples kept."""
        return self._samples.maxlen or 0

    def __len__(self) -> int:
        return len(self._samples)

    def __repr__(self) -> str:
        return f"MetricSeries({self.name!r}, {len(self)}/{self.capacity})"

    def push(self, timestamp: float, value: float) -> None:
        """Append a sample, evicting the oldest one when full."""
        if self._samples:
            # Keep timestamps non-decreasing even if the wall clock steps back
            timestamp = max(timestamp, self._samples[-1][0])
        self._samples.append((timestamp, float(value)))

    def samples(self) -> Iterator[tuple[float, float]]:
        """Iterate (timestamp, value) pairs, oldest first."""
        return iter(self._samples)

    def values(self) -> Iterator[float]:
        """Iterate stored values, oldest first. Each call starts afresh."""
        return (value for _, value in self._samples)

    def _ordered(self) -> list[float]:
        # NaN compares false with everything, so it has no place in min/max
        return [value for _, value in self._samples if not math.isnan(value)]

    def min(self) -> float | None:
        """Smallest stored value, or None when there is no data."""
        ordered = self._ordered()
        return min(ordered) if ordered else None

    def max(self) -> float | None:
        """Largest stored value, or None when there is no data."""
        ordered = self._ordered()
        return max(ordered) if ordered else None

    def mean(self) -> float | None:
        """Average of the finite stored values, or None when there are none."""
        finite = [value for _, value in self._samples if math.isfinite(value)]
        if not finite:
            return None
        return math.fsum(finite) / len(finite)

    def latest(self) -> float | None:
        """Most recent value, or None when there is no data."""
        if not self._samples:
            return None
        return self._samples[-1][1]


class MetricStore:
    """
    One MetricSeries per metric name, in first-seen order.

    Series are created lazily the first time a snapshot mentions a metric
    and are never removed; a metric missing from later snapshots simply
    stops receiving samples.
    """

    def __init__(self, capacity: int) -> None:
        """
        Initialize an empty store.

        Args:
            capacity: Capacity given to every series created (chart width).
        """
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._series: dict[str, MetricSeries] = {}

    @property
    def capacity(self) -> int:
        """Get the per-series capacity."""
        return self._capacity

    def __len__(self) -> int:
        return len(self._series)

    def __contains__(self, name: object) -> bool:
        return name in self._series

    def apply(self, snapshot: StatSnapshot) -> None:
        """Push every reading of a snapshot into its series."""
        for name, value in snapshot.items():
            series = self._series.get(name)
            if series is None:
                series = MetricSeries(name, self._capacity)
                self._series[name] = series
                logger.debug("tracking new metric %r", name)
            series.push(snapshot.timestamp, value)

    def series(self, name: str) -> MetricSeries | None:
        """Get the series for a metric, or None if it was never seen."""
        return self._series.get(name)

    def names(self) -> Iterator[str]:
        """Iterate tracked metric names in first-seen order."""
        return iter(self._series)

    def all_series(self) -> Iterator[MetricSeries]:
        """Iterate tracked series in first-seen order."""
        return iter(self._series.values())

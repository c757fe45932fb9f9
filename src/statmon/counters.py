"""Cumulative counter to per-second rate conversion."""

import logging
from collections.abc import Sequence
from fnmatch import fnmatchcase

from statmon.models import Fetcher, StatSnapshot

logger = logging.getLogger(__name__)

RATE_SUFFIX = "/s"


class RateConverter:
    """
    Turns monotonically growing counters into per-second rates.

    Metrics matching one of the glob patterns are treated as counters and
    renamed with a "/s" suffix; everything else passes through as a gauge.
    A counter yields no sample on its first observation, when no time has
    passed, or when it went backwards (the service restarted).
    """

    def __init__(self, patterns: Sequence[str]) -> None:
        self._patterns = tuple(patterns)
        self._previous: dict[str, tuple[float, float]] = {}

    def is_counter(self, name: str) -> bool:
        """Check if a metric is charted as a rate."""
        return any(fnmatchcase(name, pattern) for pattern in self._patterns)

    def convert(self, snapshot: StatSnapshot) -> StatSnapshot:
        """Convert one snapshot, remembering counter values for the next."""
        values: dict[str, float] = {}
        for name, value in snapshot.items():
            if not self.is_counter(name):
                values[name] = value
                continue

            previous = self._previous.get(name)
            self._previous[name] = (snapshot.timestamp, value)
            if previous is None:
                continue

            elapsed = snapshot.timestamp - previous[0]
            delta = value - previous[1]
            if elapsed <= 0:
                continue
            if delta < 0:
                logger.info("counter %r went backwards, treating it as reset", name)
                continue
            values[f"{name}{RATE_SUFFIX}"] = delta / elapsed

        return StatSnapshot(timestamp=snapshot.timestamp, values=values)


class RatingFetcher:
    """Wraps a fetcher so counter metrics come out as rates."""

    def __init__(self, inner: Fetcher, converter: RateConverter) -> None:
        self._inner = inner
        self._converter = converter

    def __call__(self) -> StatSnapshot:
        return self._converter.convert(self._inner())

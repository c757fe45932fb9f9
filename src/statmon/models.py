"""Data models for statmon."""

import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(slots=True, frozen=True)
class StatSnapshot:
    """Immutable point-in-time set of metric readings from one poll."""

    timestamp: float  # Wall-clock seconds since the epoch
    values: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Normalise to float and freeze, keeping the producer's key order
        normalised = {str(name): float(value) for name, value in self.values.items()}
        object.__setattr__(self, "values", MappingProxyType(normalised))

    @classmethod
    def capture(cls, values: Mapping[str, float]) -> "StatSnapshot":
        """Build a snapshot stamped with the current wall-clock time."""
        return cls(timestamp=time.time(), values=values)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def items(self) -> Iterator[tuple[str, float]]:
        """Iterate (name, value) pairs in enumeration order."""
        return iter(self.values.items())

    def select(self, predicate: Callable[[str], bool]) -> "StatSnapshot":
        """Return a snapshot holding only the metrics whose name matches."""
        return StatSnapshot(
            timestamp=self.timestamp,
            values={name: value for name, value in self.values.items() if predicate(name)},
        )


# Anything that produces one snapshot per call
Fetcher = Callable[[], StatSnapshot]

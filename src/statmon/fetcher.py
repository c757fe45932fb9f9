"""HTTP snapshot fetching for statmon."""

import logging
import math
import time
from collections.abc import Callable, Mapping, Sequence
from fnmatch import fnmatchcase
from typing import Any

import httpx

from statmon.errors import ConnectionFailure, FetchTimeout, MalformedResponse
from statmon.models import Fetcher, StatSnapshot

logger = logging.getLogger(__name__)

USER_AGENT = "statmon"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_float(name: str, value: Any) -> float | None:
    try:
        return float(value)
    except OverflowError:
        logger.debug("skipping %r: value out of float range", name)
        return None


def flatten_stats(payload: Mapping[str, Any], prefix: str = "") -> dict[str, float]:
    """
    Extract numeric metrics from a JSON statistics document.

    Nested objects are flattened with dotted names ("actions.reject").
    Arrays of numbers collapse to the mean of their finite entries, the way
    Rspamd's scan_times are charted. Strings, booleans, nulls and arrays
    without numbers are skipped.
    """
    metrics: dict[str, float] = {}
    for key, value in payload.items():
        name = f"{prefix}{key}"
        if _is_number(value):
            number = _as_float(name, value)
            if number is not None:
                metrics[name] = number
        elif isinstance(value, Mapping):
            metrics.update(flatten_stats(value, prefix=f"{name}."))
        elif isinstance(value, list):
            numbers = (_as_float(name, item) for item in value if _is_number(item))
            finite = [number for number in numbers if number is not None and math.isfinite(number)]
            if finite:
                metrics[name] = math.fsum(finite) / len(finite)
    return metrics


class HttpSnapshotFetcher:
    """
    Fetches one statistics snapshot per call with a GET request.

    Transport problems map onto the FetchError kinds the poll loop reports:
    timeouts, connection failures (including HTTP error statuses) and
    malformed bodies.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 1.0,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            url: Statistics endpoint to poll.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport, e.g. a MockTransport.
            clock: Wall-clock source for snapshot timestamps.
        """
        self._url = url
        self._timeout = timeout
        self._clock = clock
        self._client = httpx.Client(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            transport=transport,
        )

    @property
    def url(self) -> str:
        """Get the polled endpoint."""
        return self._url

    def __call__(self) -> StatSnapshot:
        return self.fetch()

    def __enter__(self) -> "HttpSnapshotFetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def fetch(self) -> StatSnapshot:
        """Perform one request and parse it into a snapshot."""
        url = self._url
        try:
            response = self._client.get(url, timeout=self._timeout)
        except httpx.TimeoutException as exc:
            raise FetchTimeout(url, f"no response within {self._timeout:.2f}s") from exc
        except httpx.TransportError as exc:
            raise ConnectionFailure(url, str(exc) or type(exc).__name__) from exc

        if response.is_error:
            raise ConnectionFailure(
                url,
                f"HTTP {response.status_code} {response.reason_phrase}".strip(),
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponse(url, f"invalid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise MalformedResponse(url, f"expected a JSON object, got {type(payload).__name__}")

        metrics = flatten_stats(payload)
        if not metrics:
            raise MalformedResponse(url, "no numeric metrics in response")

        logger.debug("fetched %d metric(s) from %s", len(metrics), url)
        return StatSnapshot(timestamp=self._clock(), values=metrics)


class FilteringFetcher:
    """Wraps a fetcher, keeping only metrics matching any glob pattern."""

    def __init__(self, inner: Fetcher, patterns: Sequence[str], url: str = "") -> None:
        self._inner = inner
        self._patterns = tuple(patterns)
        self._url = url

    def matches(self, name: str) -> bool:
        """Check if a metric name is selected."""
        return any(fnmatchcase(name, pattern) for pattern in self._patterns)

    def __call__(self) -> StatSnapshot:
        snapshot = self._inner()
        selected = snapshot.select(self.matches)
        if not len(selected):
            patterns = ", ".join(self._patterns)
            raise MalformedResponse(self._url, f"no metric matches {patterns}")
        return selected

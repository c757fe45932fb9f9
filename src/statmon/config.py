"""Resolved runtime configuration for statmon."""

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any
from urllib.parse import urlsplit

from statmon.chart import ChartStyle
from statmon.errors import ConfigError

DEFAULT_URL = "http://localhost:11334/stat"
DEFAULT_INTERVAL = 1.0
DEFAULT_CHART_WIDTH = 80
DEFAULT_CHART_HEIGHT = 6
MAX_VERBOSITY = 3

# Rspamd /stat fields that only ever grow
RSPAMD_RATE_PATTERNS = ("actions.*", "scanned", "learned", "spam_count", "ham_count")


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """Everything the poll loop and front-ends need, already resolved."""

    url: str = DEFAULT_URL
    interval: float = DEFAULT_INTERVAL  # Also the per-request timeout
    chart_width: int = DEFAULT_CHART_WIDTH
    chart_height: int = DEFAULT_CHART_HEIGHT
    verbosity: int = 0
    style: ChartStyle = ChartStyle.BAR
    include: tuple[str, ...] = ()
    rates: tuple[str, ...] = ()
    plain: bool = False
    log_file: str | None = None

    @property
    def timeout(self) -> float:
        """Get the fetch timeout, which equals the poll interval."""
        return self.interval

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "MonitorConfig":
        """
        Build a config from STATMON_* environment variables plus overrides.

        Overrides whose value is None are ignored so unset CLI flags fall
        back to the environment and then to the defaults.
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        if "STATMON_URL" in environ:
            values["url"] = environ["STATMON_URL"]
        if "STATMON_INTERVAL" in environ:
            raw = environ["STATMON_INTERVAL"]
            try:
                values["interval"] = float(raw)
            except ValueError as exc:
                raise ConfigError(f"STATMON_INTERVAL is not a number: {raw!r}") from exc
        values.update({key: value for key, value in overrides.items() if value is not None})
        return replace(cls(), **values)

    def validate(self) -> "MonitorConfig":
        """Check the config, raising ConfigError on the first problem."""
        if not (math.isfinite(self.interval) and self.interval > 0):
            raise ConfigError(f"interval must be a positive number of seconds, got {self.interval}")
        if self.chart_width < 1:
            raise ConfigError(f"chart width must be at least 1, got {self.chart_width}")
        if self.chart_height < 1:
            raise ConfigError(f"chart height must be at least 1, got {self.chart_height}")
        if not self.url:
            raise ConfigError("url must not be empty")
        parts = urlsplit(self.url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ConfigError(f"url must be an http(s) address, got {self.url!r}")
        if not 0 <= self.verbosity <= MAX_VERBOSITY:
            raise ConfigError(f"verbosity must be between 0 and {MAX_VERBOSITY}, got {self.verbosity}")
        return self

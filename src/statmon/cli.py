"""Command-line entry point for statmon."""

import argparse
import logging
import signal
import sys
from collections.abc import Sequence

from rich.console import Console

from statmon.app import StatmonApp
from statmon.chart import ChartRenderer, ChartStyle, TerminalWriter
from statmon.config import (
    DEFAULT_CHART_HEIGHT,
    DEFAULT_CHART_WIDTH,
    DEFAULT_URL,
    MAX_VERBOSITY,
    RSPAMD_RATE_PATTERNS,
    MonitorConfig,
)
from statmon.counters import RateConverter, RatingFetcher
from statmon.errors import ConfigError, TerminalError
from statmon.fetcher import FilteringFetcher, HttpSnapshotFetcher
from statmon.history import MetricStore
from statmon.log import setup_logging
from statmon.models import Fetcher
from statmon.monitor import PollLoop

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SETUP_ERROR = 2


class Interrupted(BaseException):
    """Raised from the plain-mode signal handler to unwind the poll loop."""

    def __init__(self, signum: int) -> None:
        super().__init__(signum)
        self.signum = signum


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="statmon",
        description="Chart a service's statistics endpoint live in the terminal.",
    )
    parser.add_argument("--url", help=f"statistics endpoint (default: {DEFAULT_URL}, env STATMON_URL)")
    parser.add_argument(
        "--interval",
        "--timeout",
        dest="interval",
        type=float,
        help="seconds between polls, also the request timeout (default: 1.0, env STATMON_INTERVAL)",
    )
    parser.add_argument("--chart-width", type=int, help=f"chart width in columns (default: {DEFAULT_CHART_WIDTH})")
    parser.add_argument("--chart-height", type=int, help=f"chart height in rows (default: {DEFAULT_CHART_HEIGHT})")
    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbosity",
        action="count",
        default=0,
        help="-v info, -vv debug, -vvv debug including HTTP traffic",
    )
    parser.add_argument(
        "--style",
        choices=[style.value for style in ChartStyle],
        default=ChartStyle.BAR.value,
        help="chart style (default: bar)",
    )
    parser.add_argument(
        "--metric",
        dest="include",
        action="append",
        default=[],
        metavar="PATTERN",
        help="only chart metrics matching this glob; repeatable",
    )
    parser.add_argument(
        "--rate",
        dest="rates",
        action="append",
        default=[],
        metavar="PATTERN",
        help="chart matching cumulative counters as per-second rates; repeatable",
    )
    parser.add_argument(
        "--rspamd",
        action="store_true",
        help="chart Rspamd action and scan counters as rates",
    )
    parser.add_argument("--plain", action="store_true", help="draw on stdout instead of the full-screen app")
    parser.add_argument("--log-file", help="write logs to this file")
    return parser


def parse_config(argv: Sequence[str] | None = None) -> MonitorConfig:
    """Parse arguments and the environment into a validated config."""
    args = build_parser().parse_args(argv)
    rates = list(args.rates)
    if args.rspamd:
        rates.extend(pattern for pattern in RSPAMD_RATE_PATTERNS if pattern not in rates)

    config = MonitorConfig.from_env(
        url=args.url,
        interval=args.interval,
        chart_width=args.chart_width,
        chart_height=args.chart_height,
        verbosity=min(args.verbosity, MAX_VERBOSITY),
        style=ChartStyle(args.style),
        include=tuple(args.include),
        rates=tuple(rates),
        plain=args.plain,
        log_file=args.log_file,
    )
    return config.validate()


def build_fetcher(config: MonitorConfig, base: Fetcher) -> Fetcher:
    """Layer metric selection and rate conversion over a raw fetcher."""
    fetch = base
    if config.include:
        fetch = FilteringFetcher(fetch, config.include, url=config.url)
    if config.rates:
        fetch = RatingFetcher(fetch, RateConverter(config.rates))
    return fetch


def run_plain(config: MonitorConfig, fetch: Fetcher, console: Console | None = None) -> int:
    """Run the poll loop on this thread, drawing frames on stdout."""
    console = console or Console(highlight=False)
    if not console.is_terminal:
        raise TerminalError("stdout is not a terminal; use the full-screen mode or attach a TTY")

    loop = PollLoop(
        fetch,
        MetricStore(config.chart_width),
        ChartRenderer(config.chart_width, config.chart_height, config.style),
        TerminalWriter(console),
        interval=config.interval,
        url=config.url,
    )

    # The handler runs on this thread, possibly inside the stop event's wait,
    # so it must not take that event's lock.
    def _cancel(signum: int, frame: object) -> None:
        raise Interrupted(signum)

    previous = {sig: signal.signal(sig, _cancel) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        loop.run()
    except Interrupted as exc:
        logger.info("received signal %d, stopped", exc.signum)
        loop.request_stop()
        loop.state.cancelled = True
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return EXIT_OK


def run_app(config: MonitorConfig, fetch: Fetcher) -> int:
    """Run the full-screen Textual app until the operator quits."""
    StatmonApp(config, fetch).run()
    return EXIT_OK


def _report(message: str) -> None:
    Console(stderr=True).print(f"statmon: {message}", style="red", markup=False, highlight=False)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the statmon command."""
    try:
        config = parse_config(argv)
    except ConfigError as exc:
        _report(str(exc))
        return EXIT_SETUP_ERROR

    setup_logging(config.verbosity, config.log_file, textual=not config.plain)

    with HttpSnapshotFetcher(config.url, timeout=config.timeout) as fetcher:
        fetch = build_fetcher(config, fetcher)
        try:
            if config.plain:
                return run_plain(config, fetch)
            return run_app(config, fetch)
        except TerminalError as exc:
            _report(str(exc))
            return EXIT_SETUP_ERROR


if __name__ == "__main__":
    sys.exit(main())

"""Polling engine for statmon."""

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from queue import Queue
from typing import Protocol

from rich.text import Text

from statmon.chart import ChartRenderer
from statmon.errors import FetchError
from statmon.history import MetricStore
from statmon.models import Fetcher, StatSnapshot

logger = logging.getLogger(__name__)

# Consecutive failures after which the operator is warned once
FAILURE_WARNING_THRESHOLD = 5


class PollPhase(Enum):
    """States of the poll loop."""

    IDLE = "idle"
    WAITING = "waiting"
    FETCHING = "fetching"
    APPLYING = "applying"
    RENDERING = "rendering"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class PollState:
    """Run-scoped state of the poll loop, mutated once per tick."""

    tick: int = 0
    phase: PollPhase = PollPhase.IDLE
    last_error: FetchError | None = None
    last_success: float | None = None  # Timestamp of the last applied snapshot
    consecutive_failures: int = 0
    total_failures: int = 0
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        """Whether the most recent fetch succeeded."""
        return self.last_error is None

    def record_success(self, snapshot: StatSnapshot) -> None:
        """Note a successful fetch."""
        self.last_error = None
        self.last_success = snapshot.timestamp
        self.consecutive_failures = 0

    def record_failure(self, error: FetchError) -> None:
        """Note a failed fetch."""
        self.last_error = error
        self.consecutive_failures += 1
        self.total_failures += 1


def format_status(state: PollState, url: str) -> Text:
    """Build the status line shown under the charts."""
    if state.tick == 0:
        return Text(f"… polling {url}", style="dim")

    if state.last_error is not None:
        failures = state.consecutive_failures
        plural = "s" if failures != 1 else ""
        return Text.assemble(
            ("✖ ", "bold red"),
            (f"tick {state.tick}: ", "red"),
            (f"{state.last_error.kind.value}: {state.last_error.detail}", "red"),
            (f" ({failures} consecutive failure{plural})", "dim"),
        )

    captured = ""
    if state.last_success is not None:
        captured = datetime.fromtimestamp(state.last_success).strftime(" at %H:%M:%S")
    return Text.assemble(
        ("● ", "bold green"),
        (f"{url} ", "bold"),
        (f"tick {state.tick}{captured}", "dim"),
    )


class FrameSink(Protocol):
    """Receives finished screens from the poll loop."""

    def show(self, screen: Text) -> None: ...

    def close(self) -> None: ...


class QueueSink:
    """Frame sink that hands screens to another thread through a Queue."""

    def __init__(self, frame_queue: Queue[Text]) -> None:
        self._queue = frame_queue

    def show(self, screen: Text) -> None:
        """Queue a screen for display."""
        self._queue.put(screen)

    def close(self) -> None:
        """Nothing to release; the consumer owns the queue."""


class PollLoop:
    """
    Poll loop tying the fetcher, the metric store and the renderer together.

    Each tick is strictly sequential: fetch, apply, render. Ticks are scheduled
    on a fixed grid of deadlines so the cadence does not drift with fetch time.
    The wait between ticks is a cancellable timer; a cancellation request
    always wins over an elapsed interval. The loop can run on the calling
    thread (run) or on a daemon thread of its own (start/stop).
    """

    def __init__(
        self,
        fetch: Fetcher,
        store: MetricStore,
        renderer: ChartRenderer,
        sink: FrameSink,
        interval: float = 1.0,
        url: str = "",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the PollLoop.

        Args:
            fetch: Callable returning one snapshot or raising FetchError.
            store: Metric store that accumulates the history.
            renderer: Renderer producing a screen from the store.
            sink: Destination for rendered screens.
            interval: Seconds between ticks. Must be positive and finite.
            url: Endpoint shown in the status line.
            clock: Monotonic clock used for scheduling.
        """
        if not (math.isfinite(interval) and interval > 0):
            raise ValueError(f"interval must be positive and finite, got {interval}")
        self._fetch = fetch
        self._store = store
        self._renderer = renderer
        self._sink = sink
        self._interval = interval
        self._url = url
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.state = PollState()

    @property
    def interval(self) -> float:
        """Get the tick interval in seconds."""
        return self._interval

    @property
    def store(self) -> MetricStore:
        """Get the metric store fed by this loop."""
        return self._store

    @property
    def cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._stop_event.is_set()

    @property
    def is_running(self) -> bool:
        """Check if the loop thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def request_stop(self) -> None:
        """Request cancellation of the running loop."""
        self._stop_event.set()

    def start(self) -> None:
        """Start the loop on a daemon thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_in_thread,
            daemon=True,
            name="PollLoop",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Cancel the loop and wait for its thread to finish.

        Args:
            timeout: How long to wait for the thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run_in_thread(self) -> None:
        try:
            self.run()
        except Exception:
            logger.exception("poll loop for %s stopped unexpectedly", self._url)

    def run(self) -> PollState:
        """
        Run ticks until cancelled. Blocks the calling thread.

        Returns:
            The final poll state.
        """
        state = self.state
        state.phase = PollPhase.IDLE
        logger.info("polling %s every %.2fs", self._url, self._interval)

        try:
            deadline = self._clock()
            while True:
                state.phase = PollPhase.WAITING
                if self._wait_until(deadline):
                    break
                self.tick(state)
                if self._stop_event.is_set():
                    break
                deadline = self._next_deadline(deadline)
        finally:
            state.phase = PollPhase.CANCELLED
            state.cancelled = self._stop_event.is_set()
            self._sink.close()
            logger.info("poll loop stopped after %d tick(s)", state.tick)

        return state

    def tick(self, state: PollState | None = None) -> PollState:
        """
        Run a single fetch, apply and render cycle.

        A FetchError skips the apply step and renders the failure instead;
        accumulated history is never touched by a failed tick.
        """
        if state is None:
            state = self.state
        state.tick += 1

        state.phase = PollPhase.FETCHING
        snapshot: StatSnapshot | None = None
        try:
            snapshot = self._fetch()
        except FetchError as exc:
            state.record_failure(exc)
            logger.info("tick %d failed: %s", state.tick, exc)
            if state.consecutive_failures == FAILURE_WARNING_THRESHOLD:
                logger.warning(
                    "%d consecutive fetch failures from %s, still polling",
                    state.consecutive_failures,
                    self._url,
                )

        if self._stop_event.is_set():
            return state

        if snapshot is not None:
            state.phase = PollPhase.APPLYING
            self._store.apply(snapshot)
            state.record_success(snapshot)
            logger.debug("tick %d applied %d metric(s)", state.tick, len(snapshot))

        state.phase = PollPhase.RENDERING
        screen = self._renderer.render_screen(self._store, format_status(state, self._url))
        self._sink.show(screen)
        return state

    def _wait_until(self, deadline: float) -> bool:
        """Wait for the deadline; return True if cancelled instead."""
        if self._stop_event.is_set():
            return True
        remaining = deadline - self._clock()
        if remaining > 0:
            self._stop_event.wait(timeout=remaining)
        return self._stop_event.is_set()

    def _next_deadline(self, deadline: float) -> float:
        """Advance to the next grid deadline, skipping any that already passed."""
        deadline += self._interval
        now = self._clock()
        if deadline < now:
            skipped = math.ceil((now - deadline) / self._interval)
            logger.debug("tick overran the interval, skipping %d tick(s)", skipped)
            deadline += skipped * self._interval
        return deadline

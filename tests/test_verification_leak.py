"""Verification Test: Memory stays bounded over a long run.

The poll loop is meant to run for an unbounded time. Every series is a ring
buffer sized to the chart width, so after the buffers fill up, further ticks
must not grow memory. This drives many ticks through the real store and
renderer with an in-process fetcher and checks both the buffer bounds and the
RSS delta.
"""

import gc
import random

import psutil

from statmon.chart import ChartRenderer
from statmon.history import MetricStore
from statmon.models import StatSnapshot
from statmon.monitor import PollLoop

METRICS = [f"metric_{i}" for i in range(8)]
WIDTH = 40
HEIGHT = 6


def get_current_memory_mb() -> float:
    """Get current process memory usage in MB."""
    process = psutil.Process()
    return process.memory_info().rss / (1024 * 1024)


class RandomFetcher:
    """Fetcher producing random readings for a fixed set of metrics."""

    def __init__(self, seed: int = 7) -> None:
        self._random = random.Random(seed)
        self.calls = 0

    def __call__(self) -> StatSnapshot:
        self.calls += 1
        values = {name: self._random.uniform(0, 1000) for name in METRICS}
        return StatSnapshot(timestamp=float(self.calls), values=values)


class DiscardingSink:
    """Sink that only counts frames."""

    def __init__(self) -> None:
        self.frames = 0

    def show(self, screen) -> None:
        self.frames += 1

    def close(self) -> None:
        pass


def make_loop():
    store = MetricStore(WIDTH)
    sink = DiscardingSink()
    loop = PollLoop(RandomFetcher(), store, ChartRenderer(WIDTH, HEIGHT), sink, interval=1.0)
    return loop, store, sink


class TestMemoryLeakCheck:
    """Memory verification suite tests."""

    def test_series_stay_within_capacity(self):
        """Test no series ever holds more than the chart width."""
        loop, store, sink = make_loop()

        for _ in range(WIDTH * 5):
            loop.tick()
            assert all(len(series) <= WIDTH for series in store.all_series())

        assert len(store) == len(METRICS)
        assert all(len(series) == WIDTH for series in store.all_series())
        assert sink.frames == WIDTH * 5

    def test_memory_stability(self):
        """
        Test that ticking long after the buffers are full does not grow RSS.

        The first WIDTH ticks fill the buffers; memory is sampled after a
        warm-up and again after many more ticks.
        """
        loop, store, sink = make_loop()

        for _ in range(WIDTH * 3):
            loop.tick()
        gc.collect()
        initial_memory = get_current_memory_mb()

        for _ in range(1500):
            loop.tick()
        gc.collect()
        final_memory = get_current_memory_mb()

        memory_delta = final_memory - initial_memory
        assert memory_delta < 5.0, (
            f"Memory grew by {memory_delta:.2f}MB after {sink.frames} frames "
            f"(initial: {initial_memory:.2f}MB, final: {final_memory:.2f}MB)"
        )
        assert all(len(series) == WIDTH for series in store.all_series())

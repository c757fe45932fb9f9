"""statmon - Textual front-end."""

from queue import Empty, Queue

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import VerticalScroll
from textual.widgets import Footer, Static

from statmon.chart import ChartRenderer
from statmon.config import MonitorConfig
from statmon.history import MetricStore
from statmon.models import Fetcher
from statmon.monitor import PollLoop, QueueSink


class ChartView(Static):
    """Widget showing the most recent rendered frame."""

    DEFAULT_CSS = """
    ChartView {
        height: auto;
        padding: 0 1;
    }
    """

    def __init__(self, **kwargs) -> None:
        """Initialize ChartView."""
        super().__init__(Text("Waiting for the first sample...", style="dim"), **kwargs)
        self._frame: Text | None = None

    @property
    def frame(self) -> Text | None:
        """Get the frame currently displayed, if any."""
        return self._frame

    def show_frame(self, frame: Text) -> None:
        """Replace the displayed frame."""
        self._frame = frame
        self.update(frame)


class StatmonApp(App):
    """Full-screen live chart of a statistics endpoint."""

    TITLE = "statmon"
    SUB_TITLE = "Live service statistics"

    CSS = """
    Screen {
        layout: vertical;
    }

    #charts-scroll {
        height: 1fr;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(self, config: MonitorConfig, fetch: Fetcher) -> None:
        """
        Initialize the StatmonApp.

        Args:
            config: Resolved configuration.
            fetch: Callable producing one snapshot per tick.
        """
        super().__init__()
        self._frame_queue: Queue[Text] = Queue()
        self._metric_store = MetricStore(config.chart_width)
        self._poller = PollLoop(
            fetch,
            self._metric_store,
            ChartRenderer(config.chart_width, config.chart_height, config.style),
            QueueSink(self._frame_queue),
            interval=config.interval,
            url=config.url,
        )

    @property
    def poller(self) -> PollLoop:
        """Get the poll loop feeding this app."""
        return self._poller

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        with VerticalScroll(id="charts-scroll"):
            yield ChartView(id="charts")
        yield Footer()

    def on_mount(self) -> None:
        """Start polling when the app is mounted."""
        self._poller.start()
        # Frames are produced on the poll thread; pick them up here
        self.set_interval(0.1, self._check_for_frames)

    def on_unmount(self) -> None:
        """Make sure the poll thread is gone when the app goes away."""
        self._poller.stop()

    def _check_for_frames(self) -> None:
        """Drain the frame queue and display the newest frame."""
        frame = None
        while True:
            try:
                frame = self._frame_queue.get_nowait()
            except Empty:
                break

        if frame is not None:
            self.query_one("#charts", ChartView).show_frame(frame)

    async def action_quit(self) -> None:
        """Stop polling, then exit; Textual restores the terminal."""
        self._poller.stop()
        self.exit()

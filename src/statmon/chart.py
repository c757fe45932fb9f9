"""Terminal chart rendering for statmon."""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from rich.console import Console
from rich.control import Control
from rich.text import Text

from statmon.history import MetricSeries, MetricStore

BAR_CELL = "█"
POINT_CELL = "●"
BLANK_CELL = " "
NO_DATA = "no data"
PLACEHOLDER_NAME = "waiting for data"


class ChartStyle(Enum):
    """How a column's level is drawn."""

    BAR = "bar"
    POINT = "point"


def value_range(values: Iterable[float]) -> tuple[float, float]:
    """
    Get the (low, high) scaling bounds for a set of values.

    Only finite values count. With none, or when every value is the same,
    the range falls back to [0, 1]; values outside it clamp to the edges.
    """
    finite = [value for value in values if math.isfinite(value)]
    if not finite:
        return 0.0, 1.0
    low, high = min(finite), max(finite)
    if low == high:
        return 0.0, 1.0
    return low, high


def scale_level(value: float, low: float, high: float, height: int) -> int | None:
    """
    Map a value linearly onto a row level in [0, height - 1].

    Level 0 is the bottom row. Infinities clamp to the nearest edge and NaN
    has no level at all.
    """
    if math.isnan(value):
        return None
    if value == math.inf:
        return height - 1
    if value == -math.inf:
        return 0
    level = math.floor((value - low) / (high - low) * (height - 1) + 0.5)
    return min(max(level, 0), height - 1)


def format_value(value: float | None) -> str:
    """Format a caption value to two decimals."""
    if value is None:
        return "-"
    return f"{value:.2f}"


@dataclass(slots=True, frozen=True)
class ChartFrame:
    """One rendered W x H grid for a single metric."""

    name: str
    width: int
    height: int
    rows: tuple[str, ...]  # Top row first, each exactly `width` cells
    levels: tuple[int | None, ...]  # Per column, None where blank
    low: float
    high: float
    last: float | None = None
    mean: float | None = None
    minimum: float | None = None
    maximum: float | None = None

    @property
    def has_data(self) -> bool:
        """Whether any column carries a sample."""
        return any(level is not None for level in self.levels)

    def caption(self) -> Text:
        """Build the label line shown above the grid."""
        return Text.assemble(
            "[Label: ",
            (self.name, "bold"),
            "] [LAST: ",
            (format_value(self.last), "bright_magenta underline"),
            "] [AVG: ",
            (format_value(self.mean), "bold white"),
            "] [MIN: ",
            (format_value(self.minimum), "bold green"),
            "] [MAX: ",
            (format_value(self.maximum), "bold red"),
            "]",
        )

    def to_text(self) -> Text:
        """Render caption, axis gutter and grid as styled text."""
        top_label = format_value(self.high)
        bottom_label = format_value(self.low)
        gutter = max(len(top_label), len(bottom_label))

        text = self.caption()
        for index, row in enumerate(self.rows):
            if index == 0:
                label, tick = top_label, "┤"
            elif index == self.height - 1:
                label, tick = bottom_label, "┤"
            else:
                label, tick = "", "│"
            text.append("\n")
            text.append(f"{label:>{gutter}} {tick}", style="dim")
            text.append(row, style="green" if self.has_data else "dim")
        return text


class ChartRenderer:
    """
    Turns metric series into fixed-size character grids.

    The newest sample always lands in the rightmost column, and each frame
    rescales linearly between the min and max currently shown.
    """

    def __init__(self, width: int, height: int, style: ChartStyle = ChartStyle.BAR) -> None:
        if width < 1 or height < 1:
            raise ValueError(f"chart must be at least 1x1, got {width}x{height}")
        self.width = width
        self.height = height
        self.style = style

    def render(self, series: MetricSeries) -> ChartFrame:
        """Render one series into a frame."""
        width, height = self.width, self.height
        recent = list(series.values())[-width:]
        low, high = value_range(recent)

        padding: list[int | None] = [None] * (width - len(recent))
        levels = tuple(padding + [scale_level(value, low, high, height) for value in recent])

        grid = [[BLANK_CELL] * width for _ in range(height)]
        for column, level in enumerate(levels):
            if level is None:
                continue
            if self.style is ChartStyle.BAR:
                for filled in range(level + 1):
                    grid[height - 1 - filled][column] = BAR_CELL
            else:
                grid[height - 1 - level][column] = POINT_CELL

        if not recent:
            self._overlay_no_data(grid)

        return ChartFrame(
            name=series.name,
            width=width,
            height=height,
            rows=tuple("".join(row) for row in grid),
            levels=levels,
            low=low,
            high=high,
            last=series.latest(),
            mean=series.mean(),
            minimum=series.min(),
            maximum=series.max(),
        )

    def _overlay_no_data(self, grid: list[list[str]]) -> None:
        label = NO_DATA[: self.width]
        start = (self.width - len(label)) // 2
        row = grid[(self.height - 1) // 2]
        row[start : start + len(label)] = list(label)

    def render_store(self, store: MetricStore) -> list[ChartFrame]:
        """Render every tracked series in first-seen order."""
        frames = [self.render(series) for series in store.all_series()]
        if not frames:
            frames.append(self.render(MetricSeries(PLACEHOLDER_NAME, self.width)))
        return frames

    def compose(self, frames: Sequence[ChartFrame], status: Text | None = None) -> Text:
        """
        Stack frames and a status line into one screen.

        Every line is padded to the widest one so a frame written over the
        previous one leaves no stale characters behind.
        """
        blocks = [frame.to_text() for frame in frames]
        if status is not None:
            blocks.append(status)
        screen = Text("\n").join(blocks)

        lines = screen.split("\n", allow_blank=True)
        width = max((line.cell_len for line in lines), default=0)
        for line in lines:
            line.pad_right(width - line.cell_len)
        return Text("\n").join(lines)

    def render_screen(self, store: MetricStore, status: Text | None = None) -> Text:
        """Render the whole store plus status into one screen."""
        return self.compose(self.render_store(store), status)


class TerminalWriter:
    """
    Writes screens to a terminal, each one overwriting the last in place.

    The cursor is hidden while frames are being drawn and moved back to the
    top-left of the frame after every write.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(highlight=False)
        self._lines = 0
        self._started = False

    @property
    def console(self) -> Console:
        """Get the console frames are written to."""
        return self._console

    def show(self, screen: Text) -> None:
        """Write a screen and reposition the cursor at its first line."""
        console = self._console
        if not self._started:
            console.show_cursor(False)
            self._started = True
        console.print(screen, no_wrap=True, overflow="crop", highlight=False)
        self._lines = len(screen.plain.split("\n"))
        console.control(Control.move_to_column(0, -self._lines))

    def close(self) -> None:
        """Move below the last frame and restore the cursor."""
        if not self._started:
            return
        self._console.control(Control.move(0, self._lines))
        self._console.show_cursor(True)
        self._started = False

"""
Timeline view model.

Single Responsibility: Turn the clip catalog into a pannable, zoomable time
window and answer what is visible in it.

Times are epoch seconds throughout. The visible window always stays inside
the catalog bounds and is never shorter than ``min_zoom_window``.
"""
import bisect
import math
import time
from dataclasses import dataclass
from fractions import Fraction
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .catalog import ClipCatalogEntry
from .errors import EmptyCatalogError
from .stats import BoxWhiskerStats

# Candidate tick spacings in seconds, smallest first
TICK_INTERVALS = (
    1, 2, 5, 10, 15, 30,
    60, 2 * 60, 5 * 60, 10 * 60, 15 * 60, 30 * 60,
    3600, 2 * 3600, 3 * 3600, 6 * 3600, 12 * 3600,
    86400, 2 * 86400, 7 * 86400,
)


@dataclass
class TimelineViewState:
    """Transient per-session view state. Entries are referenced by id only."""
    visible_start: float
    visible_end: float
    hovered_id: Optional[str] = None
    highlighted_id: Optional[str] = None

    @property
    def span(self) -> float:
        return self.visible_end - self.visible_start


class TimelineModel:
    """
    Pannable, zoomable view over a clip catalog.

    The renderer reads ``visible_entries()`` and the view state; user
    gestures come back in through ``zoom``, ``scroll``, ``set_hover`` and
    friends. Playback state drives ``set_highlight``.
    """

    def __init__(
        self,
        min_zoom_window: float,
        default_window: float = 24 * 3600.0,
        clock: Callable[[], float] = time.time
    ):
        if min_zoom_window <= 0:
            raise ValueError("min_zoom_window must be positive")
        if default_window < min_zoom_window:
            raise ValueError("default_window must be at least min_zoom_window")
        self.min_zoom_window = float(min_zoom_window)
        self.default_window = float(default_window)
        self._clock = clock

        self._catalog: List[ClipCatalogEntry] = []
        self._index: Dict[str, ClipCatalogEntry] = {}
        self._starts: List[float] = []
        self._max_duration = 0.0
        self._bounds: Tuple[float, float] = (0.0, 0.0)
        self.state = TimelineViewState(visible_start=0.0, visible_end=0.0)
        self.load([])

    @classmethod
    def from_config(cls, config: dict) -> "TimelineModel":
        timeline = config["timeline"]
        return cls(
            min_zoom_window=timeline["min_zoom_window_sec"],
            default_window=timeline["default_window_sec"],
        )

    # -- catalog -----------------------------------------------------------

    def load(self, catalog: Sequence[ClipCatalogEntry]) -> None:
        """
        Replace the catalog and show all of it.

        An empty catalog gets a default window ending now.
        """
        self._catalog = sorted(catalog, key=lambda e: e.start_time)
        self._index = {e.entry_id: e for e in self._catalog}
        self._starts = [e.start_time for e in self._catalog]
        self._max_duration = max((e.duration for e in self._catalog), default=0.0)
        self._bounds = self._compute_bounds()

        hovered = self.state.hovered_id if self.state.hovered_id in self._index else None
        highlighted = self.state.highlighted_id if self.state.highlighted_id in self._index else None
        self.state = TimelineViewState(
            visible_start=self._bounds[0],
            visible_end=self._bounds[1],
            hovered_id=hovered,
            highlighted_id=highlighted,
        )
        self._window = self._exact_bounds()

    def _compute_bounds(self) -> Tuple[float, float]:
        if not self._catalog:
            now = self._clock()
            return now - self.default_window, now
        lo = self._catalog[0].start_time
        hi = max(e.end_time for e in self._catalog)
        if hi - lo < self.min_zoom_window:
            center = (lo + hi) / 2.0
            half = self.min_zoom_window / 2.0
            lo, hi = center - half, center + half
        return lo, hi

    @property
    def catalog(self) -> List[ClipCatalogEntry]:
        return list(self._catalog)

    def __len__(self) -> int:
        return len(self._catalog)

    def get_entry(self, entry_id: str) -> Optional[ClipCatalogEntry]:
        return self._index.get(entry_id)

    def catalog_span(self) -> Tuple[float, float]:
        """
        First clip start and last clip end.

        Raises:
            EmptyCatalogError: If the catalog has no clips
        """
        if not self._catalog:
            raise EmptyCatalogError("Catalog is empty; no time range to scale an axis to")
        return self._catalog[0].start_time, max(e.end_time for e in self._catalog)

    @property
    def bounds(self) -> Tuple[float, float]:
        """Outer limits the visible window may move within."""
        return self._bounds

    # -- view window -------------------------------------------------------

    @property
    def visible_start(self) -> float:
        return self.state.visible_start

    @property
    def visible_end(self) -> float:
        return self.state.visible_end

    @property
    def zoom_level(self) -> float:
        """How many times narrower the window is than the full bounds."""
        lo, hi = self._bounds
        return (hi - lo) / self.state.span

    def zoom(self, factor: float, anchor_time: float) -> None:
        """
        Scale the window by 1/factor, keeping anchor_time at the same
        screen position. factor > 1 zooms in.

        The window is kept as exact fractions, so zooming by ``f`` and then
        ``1/f`` about the same anchor restores it bit for bit.

        Raises:
            ValueError: If factor is not positive
        """
        if factor <= 0 or not math.isfinite(factor):
            raise ValueError(f"Zoom factor must be a positive number, got {factor}")

        factor = Fraction(factor)
        anchor = Fraction(anchor_time)
        start, end = self._window
        new_start = anchor - (anchor - start) / factor
        new_end = anchor + (end - anchor) / factor

        lo, hi = self._exact_bounds()
        target = min(max(new_end - new_start, Fraction(self.min_zoom_window)), hi - lo)
        if target != new_end - new_start:
            ratio = target / (end - start)
            new_start = anchor - (anchor - start) * ratio
            new_end = new_start + target

        self._set_window(new_start, new_end)

    def scroll(self, delta_time: float) -> None:
        """Shift the window by delta_time seconds, stopping at the bounds."""
        start, end = self._window
        delta = Fraction(delta_time)
        self._set_window(start + delta, end + delta)

    def reset_view(self) -> None:
        """Show the whole catalog."""
        self._set_window(*self._exact_bounds())

    def show_last(self, span: float, end: Optional[float] = None) -> None:
        """
        Show the ``span`` seconds ending at ``end`` (default: end of the bounds).
        """
        end = Fraction(self._bounds[1] if end is None else end)
        self._set_window(end - Fraction(span), end)

    def _exact_bounds(self) -> Tuple[Fraction, Fraction]:
        return Fraction(self._bounds[0]), Fraction(self._bounds[1])

    def _set_window(self, start: Fraction, end: Fraction) -> None:
        lo, hi = self._exact_bounds()
        min_window = Fraction(self.min_zoom_window)
        span = end - start
        if span >= hi - lo:
            start, end = lo, hi
        else:
            if span < min_window:
                center = (start + end) / 2
                span = min_window
                start, end = center - span / 2, center + span / 2
            if start < lo:
                start, end = lo, lo + span
            elif end > hi:
                start, end = hi - span, hi
        self._window = (start, end)
        self.state.visible_start = float(start)
        self.state.visible_end = float(end)

    # -- queries -----------------------------------------------------------

    def visible_entries(self) -> List[ClipCatalogEntry]:
        """
        Entries whose [start, start + duration) intersects the visible window,
        in start order.
        """
        start, end = self.state.visible_start, self.state.visible_end
        first = bisect.bisect_left(self._starts, start - self._max_duration)
        last = bisect.bisect_left(self._starts, end)
        return [e for e in self._catalog[first:last] if e.overlaps(start, end)]

    def box_whisker_stats(self, entry: ClipCatalogEntry) -> BoxWhiskerStats:
        """Five-number loudness summary computed when the catalog was loaded."""
        return entry.stats

    def time_to_x(self, t: float, width: float) -> float:
        """Map a time to a horizontal position in a viewport of ``width``."""
        return (t - self.state.visible_start) / self.state.span * width

    def x_to_time(self, x: float, width: float) -> float:
        """Map a horizontal viewport position back to a time."""
        return self.state.visible_start + x / width * self.state.span

    def tick_times(self, max_ticks: int = 8) -> List[float]:
        """
        Evenly spaced tick times inside the visible window, using the
        smallest readable interval that yields at most ``max_ticks`` ticks.
        """
        if max_ticks < 1:
            raise ValueError("max_ticks must be at least 1")
        start, end = self.state.visible_start, self.state.visible_end
        interval = TICK_INTERVALS[-1]
        for candidate in TICK_INTERVALS:
            if (end - start) / candidate <= max_ticks:
                interval = candidate
                break
        first = math.ceil(start / interval) * interval
        ticks = []
        t = first
        while t <= end:
            ticks.append(float(t))
            t += interval
        return ticks

    # -- hover / highlight -------------------------------------------------

    def set_hover(self, entry_id: Optional[str]) -> None:
        """Hovering a clip's playback control highlights its timeline box."""
        self.state.hovered_id = entry_id

    def set_highlight(self, entry_id: Optional[str]) -> None:
        """Mark the clip currently playing (None when playback stops)."""
        self.state.highlighted_id = entry_id

    def is_hovered(self, entry_id: str) -> bool:
        return entry_id is not None and self.state.hovered_id == entry_id

    def is_highlighted(self, entry_id: str) -> bool:
        return entry_id is not None and self.state.highlighted_id == entry_id

    def hovered_entry(self) -> Optional[ClipCatalogEntry]:
        if self.state.hovered_id is None:
            return None
        return self._index.get(self.state.hovered_id)

    def highlighted_entry(self) -> Optional[ClipCatalogEntry]:
        if self.state.highlighted_id is None:
            return None
        return self._index.get(self.state.highlighted_id)

#!/usr/bin/env python3
"""
Bark viewer: interactive timeline of recorded clips.

Each clip is drawn as a box-and-whisker glyph spanning its time range, with
the box covering the interquartile range of its per-frame loudness. The list
under the timeline shows the clips currently in view; hovering a row
highlights its box, clicking a row (or a box) plays the clip.

Controls:
    mouse wheel      zoom around the cursor
    left / right     scroll
    + / -            zoom around the center
    r                show everything
    h / d / w        last hour / 24 hours / week of the catalog
    space            stop playback

Usage:
    python viewer.py
    python viewer.py --clips-dir barks
    python viewer.py --summary
"""
import argparse
import datetime
import sys
import threading
from fractions import Fraction
from pathlib import Path
from typing import List, Optional

import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from matplotlib.gridspec import GridSpec
from matplotlib.patches import Rectangle

import config_loader
from logger import get_logger, setup_logging_from_config
from core import (
    CatalogLoadCancelled,
    ClipCatalogEntry,
    ClipRepository,
    PlaybackController,
    TimelineModel,
    TransportState,
    catalog_to_dataframe,
    generate_activity_report,
    load_catalog,
)

log = get_logger("viewer")

BOX_COLOR = "#FF8000"
HOVER_COLOR = "#40C4FF"
PLAYING_COLOR = "#69F0AE"
BACKGROUND_COLOR = "#202020"
GRID_COLOR = "#404040"
TEXT_COLOR = "#C8C8C8"

LIST_ROWS = 12
PRESETS = {
    "h": 3600.0,
    "d": 24 * 3600.0,
    "w": 7 * 24 * 3600.0,
}


def format_tick(t: float, span: float) -> str:
    """Tick label; finer resolution when zoomed in."""
    dt = datetime.datetime.fromtimestamp(t)
    if span <= 120:
        return dt.strftime("%H:%M:%S")
    if span <= 2 * 86400:
        return dt.strftime("%I:%M %p")
    return dt.strftime("%m-%d %H:%M")


class TimelineFigure:
    """
    Matplotlib renderer for a TimelineModel.

    Draws whatever the model exposes and forwards gestures back to it; it
    keeps no view state of its own besides the list row layout.
    """

    def __init__(
        self,
        model: TimelineModel,
        playback: PlaybackController,
        scroll_step_fraction: float = 0.1,
        zoom_step: float = 1.25,
        figure: Optional[Figure] = None
    ):
        self.model = model
        self.playback = playback
        self.scroll_step_fraction = scroll_step_fraction
        self.zoom_step = zoom_step
        # Exact, so a wheel step in and back out lands on the same window
        self._zoom_in = Fraction(zoom_step)

        self.fig = figure if figure is not None else plt.figure(figsize=(12, 7))
        self.fig.patch.set_facecolor(BACKGROUND_COLOR)
        gs = GridSpec(2, 1, height_ratios=[3, 2], figure=self.fig)
        self.ax_timeline = self.fig.add_subplot(gs[0])
        self.ax_list = self.fig.add_subplot(gs[1])

        self._row_ids: List[str] = []

        canvas = self.fig.canvas
        canvas.mpl_connect("scroll_event", self.on_scroll)
        canvas.mpl_connect("key_press_event", self.on_key)
        canvas.mpl_connect("motion_notify_event", self.on_motion)
        canvas.mpl_connect("button_press_event", self.on_click)

        self.playback.add_listener(self.on_transport)
        self._timer = canvas.new_timer(interval=250)
        self._timer.add_callback(self.playback.poll)

    @classmethod
    def from_config(cls, model: TimelineModel, playback: PlaybackController, config: dict, **kwargs):
        timeline = config["timeline"]
        return cls(
            model,
            playback,
            scroll_step_fraction=timeline["scroll_step_fraction"],
            zoom_step=timeline["zoom_step"],
            **kwargs
        )

    # -- drawing -----------------------------------------------------------

    def redraw(self) -> None:
        self._draw_timeline()
        self._draw_list()
        self.fig.canvas.draw_idle()

    def _entry_color(self, entry: ClipCatalogEntry) -> str:
        if self.model.is_highlighted(entry.entry_id):
            return PLAYING_COLOR
        if self.model.is_hovered(entry.entry_id):
            return HOVER_COLOR
        return BOX_COLOR

    def _draw_timeline(self) -> None:
        ax = self.ax_timeline
        ax.cla()
        ax.set_facecolor(BACKGROUND_COLOR)
        start, end = self.model.visible_start, self.model.visible_end
        span = end - start
        ax.set_xlim(start, end)
        ax.set_ylim(0.0, 1.05)
        ax.set_ylabel("Peak amplitude", color=TEXT_COLOR)

        # Keep very short clips visible when zoomed out
        min_width = span / 400.0

        entries = self.model.visible_entries()
        for entry in entries:
            stats = self.model.box_whisker_stats(entry)
            color = self._entry_color(entry)
            width = max(entry.duration, min_width)
            center = entry.start_time + width / 2.0
            ax.add_patch(Rectangle(
                (entry.start_time, stats.q1),
                width,
                max(stats.q3 - stats.q1, 0.005),
                facecolor=color,
                edgecolor=color,
                alpha=0.6,
            ))
            ax.hlines(stats.median, entry.start_time, entry.start_time + width, colors="white", linewidth=1.0)
            ax.vlines(center, stats.min, stats.q1, colors=color, linewidth=1.0)
            ax.vlines(center, stats.q3, stats.max, colors=color, linewidth=1.0)

        ticks = self.model.tick_times()
        ax.set_xticks(ticks)
        ax.set_xticklabels([format_tick(t, span) for t in ticks], color=TEXT_COLOR, fontsize=8)
        ax.tick_params(axis="y", colors=TEXT_COLOR)
        ax.grid(True, axis="x", color=GRID_COLOR)

        first = datetime.datetime.fromtimestamp(start).strftime("%Y-%m-%d %H:%M:%S")
        last = datetime.datetime.fromtimestamp(end).strftime("%Y-%m-%d %H:%M:%S")
        ax.set_title(
            f"Bark Timeline: {len(entries)} of {len(self.model)} clips, {first} to {last}",
            color=TEXT_COLOR,
        )

    def _draw_list(self) -> None:
        ax = self.ax_list
        ax.cla()
        ax.set_facecolor(BACKGROUND_COLOR)
        ax.set_xlim(0.0, 1.0)
        ax.set_ylim(LIST_ROWS, 0)
        ax.set_axis_off()

        entries = self.model.visible_entries()[:LIST_ROWS]
        self._row_ids = [e.entry_id for e in entries]
        if not entries:
            ax.text(0.01, 0.5, "No recordings in view", color=TEXT_COLOR, va="center")
            return

        for row, entry in enumerate(entries):
            playing = self.model.is_highlighted(entry.entry_id)
            marker = "■" if playing else "▶"
            label = (
                f"{marker}  {entry.started_at.strftime('%Y-%m-%d %I:%M:%S %p')}   "
                f"{entry.duration:5.1f}s   peak {entry.peak:.3f}"
            )
            ax.text(0.01, row + 0.5, label, color=self._entry_color(entry), va="center", family="monospace")

    # -- gestures ----------------------------------------------------------

    def row_at(self, ydata: Optional[float]) -> Optional[str]:
        """Entry id of the list row at a data y coordinate."""
        if ydata is None:
            return None
        row = int(ydata)
        if 0 <= row < len(self._row_ids):
            return self._row_ids[row]
        return None

    def entry_at(self, xdata: Optional[float]) -> Optional[ClipCatalogEntry]:
        """Visible entry under a timeline x coordinate."""
        if xdata is None:
            return None
        slack = (self.model.visible_end - self.model.visible_start) / 400.0
        for entry in self.model.visible_entries():
            if entry.start_time <= xdata <= entry.start_time + max(entry.duration, slack):
                return entry
        return None

    def on_scroll(self, event) -> None:
        if event.inaxes is not self.ax_timeline or event.xdata is None:
            return
        factor = self._zoom_in if event.button == "up" else 1 / self._zoom_in
        self.model.zoom(factor, event.xdata)
        self.redraw()

    def on_key(self, event) -> None:
        span = self.model.visible_end - self.model.visible_start
        center = (self.model.visible_start + self.model.visible_end) / 2.0
        key = event.key
        if key == "left":
            self.model.scroll(-span * self.scroll_step_fraction)
        elif key == "right":
            self.model.scroll(span * self.scroll_step_fraction)
        elif key in ("+", "="):
            self.model.zoom(self._zoom_in, center)
        elif key == "-":
            self.model.zoom(1 / self._zoom_in, center)
        elif key == "r":
            self.model.reset_view()
        elif key in PRESETS:
            self.model.show_last(PRESETS[key])
        elif key == " ":
            self.playback.stop()
        else:
            return
        self.redraw()

    def on_motion(self, event) -> None:
        hovered = self.row_at(event.ydata) if event.inaxes is self.ax_list else None
        if hovered != self.model.state.hovered_id:
            self.model.set_hover(hovered)
            self.redraw()

    def on_click(self, event) -> None:
        entry = None
        if event.inaxes is self.ax_list:
            entry_id = self.row_at(event.ydata)
            entry = self.model.get_entry(entry_id) if entry_id else None
        elif event.inaxes is self.ax_timeline:
            entry = self.entry_at(event.xdata)
        if entry is not None:
            self.playback.play(entry)

    def on_transport(self, state: TransportState, entry_id: Optional[str]) -> None:
        self.model.set_highlight(entry_id if state is TransportState.PLAYING else None)
        self.redraw()

    def show(self) -> None:
        self.redraw()
        self._timer.start()
        try:
            plt.show()
        finally:
            self._timer.stop()
            self.playback.stop()


def load_catalog_interruptibly(repository: ClipRepository, frame_duration: float) -> List[ClipCatalogEntry]:
    """
    Load the catalog on a worker thread so Ctrl+C can cancel it.

    Raises:
        CatalogLoadCancelled: If interrupted
    """
    cancel = threading.Event()
    result = {}
    last_logged = [0]

    def report(done: int, total: int) -> None:
        percent = int(done * 100 / total)
        if percent >= last_logged[0] + 10 or done == total:
            last_logged[0] = percent
            log.info(f"Loading clips: {done}/{total} ({percent}%)")

    def work() -> None:
        try:
            result["entries"] = load_catalog(repository, frame_duration, progress=report, cancel=cancel)
        except Exception as e:
            result["error"] = e

    worker = threading.Thread(target=work, name="catalog-loader", daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.1)
    except KeyboardInterrupt:
        cancel.set()
        worker.join()
        raise CatalogLoadCancelled("Catalog load interrupted")

    if "error" in result:
        raise result["error"]
    return result["entries"]


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Browse recorded clips on a zoomable timeline")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.json")
    parser.add_argument("--clips-dir", type=Path, default=None, help="Override storage.output_dir")
    parser.add_argument("--summary", action="store_true", help="Print an activity report instead of opening the viewer")
    parser.add_argument("--freq", default="1h", help="Report bucket size (pandas offset alias, default 1h)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    try:
        config = config_loader.load_config(args.config)
    except ValueError as e:
        print(f"[ERROR] Failed to load configuration: {e}", file=sys.stderr)
        return 1

    setup_logging_from_config(config, debug=args.debug)
    repository = ClipRepository(config, output_dir=args.clips_dir)

    try:
        entries = load_catalog_interruptibly(repository, config["audio"]["chunk_duration"])
    except CatalogLoadCancelled as e:
        log.warning(str(e))
        return 130

    if args.summary:
        print(generate_activity_report(catalog_to_dataframe(entries), freq=args.freq))
        return 0

    model = TimelineModel.from_config(config)
    model.load(entries)
    playback = PlaybackController.from_config(config)
    TimelineFigure.from_config(model, playback, config).show()
    return 0


if __name__ == "__main__":
    sys.exit(main())

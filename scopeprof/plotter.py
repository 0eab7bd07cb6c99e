"""Charts of a recorded profiling session and the command that shows them."""

from __future__ import annotations

import argparse
import math
import os
import sys
from collections.abc import Sequence
from pathlib import Path

import matplotlib
from matplotlib.axes import Axes
from matplotlib.container import BarContainer
from matplotlib.figure import Figure
from matplotlib.rcsetup import cycler

from scopeprof.analysis import (
    DEFAULT_MAX_SAMPLES,
    BarMode,
    SessionAnalysis,
    bar_values,
    label_of,
    location_of,
    measures_per_second,
    process_session,
    rows_by_duration,
)
from scopeprof.kvp import KeyValueStore
from scopeprof.session_reader import SessionReadError, read_session

BASE_PATH_KEY = "base path"
DEFAULT_SETTINGS = os.path.join(os.path.expanduser("~"), ".scopeprof_settings")

ROW_HEIGHT = 1.0

# "Nineteen Eighty Four" palette used for the measurement rows.
CHRONOGRAPH_PALETTE = (
    "#31C0F6",
    "#A500A5",
    "#FF7E27",
    "#06C002",
    "#EF0C0C",
    "#D6F900",
)
DRACULA_ACCENT = (0.74, 0.58, 0.98, 1.0)
_WINDOW_BG = (0.1, 0.1, 0.13, 1.0)
_FRAME_BG = (0.13, 0.13, 0.17, 1.0)
_BORDER = (0.44, 0.37, 0.61, 1.0)
_TEXT = (1.0, 1.0, 1.0, 1.0)
_TEXT_DISABLED = (0.5, 0.5, 0.5, 1.0)


def dracula_style() -> dict[str, object]:
    """Return matplotlib settings for the dark "Dracula" look."""
    return {
        "figure.facecolor": _WINDOW_BG,
        "axes.facecolor": _FRAME_BG,
        "axes.edgecolor": _BORDER,
        "axes.labelcolor": _TEXT,
        "axes.titlecolor": _TEXT,
        "axes.prop_cycle": cycler(color=list(CHRONOGRAPH_PALETTE)),
        "axes.xmargin": 0.1,
        "axes.ymargin": 0.1,
        "text.color": _TEXT,
        "xtick.color": _TEXT_DISABLED,
        "ytick.color": _TEXT_DISABLED,
        "xtick.labelcolor": _TEXT,
        "ytick.labelcolor": _TEXT,
        "grid.color": _BORDER,
        "legend.facecolor": _WINDOW_BG,
        "legend.edgecolor": _BORDER,
        "savefig.facecolor": _WINDOW_BG,
    }


def _row_color(index: int) -> str:
    return CHRONOGRAPH_PALETTE[index % len(CHRONOGRAPH_PALETTE)]


def plot_bars(
    analysis: SessionAnalysis,
    mode: BarMode | int,
    sort_by_duration: bool,
    ax: Axes,
) -> BarContainer:
    """Draw one horizontal bar per location on ``ax`` and return the bars."""
    mode = BarMode(mode)
    rows = rows_by_duration(analysis, sort_by_duration)
    values, errors = bar_values(analysis, mode)
    label = "Mean" if mode == BarMode.MEAN else "Cumulative"
    bars = ax.barh(rows, values, height=ROW_HEIGHT / 2.0, label=label)
    if mode == BarMode.MEAN and rows:
        ax.errorbar(
            values,
            rows,
            xerr=errors,
            fmt="none",
            ecolor=DRACULA_ACCENT,
            label="Standard deviation",
        )
    labels = [label_of(m) for m in analysis.measurements.values()]
    ax.set_yticks(rows, labels)
    ax.set_title(mode.name.capitalize())
    return bars


def plot_time_evolution(
    analysis: SessionAnalysis,
    lower_threshold: float,
    sort_by_duration: bool,
    axes: Sequence[Axes],
) -> dict[str, int]:
    """Draw the hit rate and every hit's span; return hits drawn per location.

    ``axes`` holds the rate axes first and the timeline axes second.  Hits
    shorter than ``lower_threshold`` are skipped, and each location draws at
    most the default sample limit, evenly thinned.
    """
    rate_ax, timeline_ax = axes
    end_time = analysis.end_time

    rate = [
        sample
        for sample in measures_per_second(analysis, 0.0, end_time)
        if math.isfinite(sample.value)
    ]
    rate_ax.scatter(
        [s.time for s in rate],
        [s.value for s in rate],
        s=4,
        color=DRACULA_ACCENT,
        label="Measures per second",
    )
    rate_ax.tick_params(labelbottom=False)

    rows = rows_by_duration(analysis, sort_by_duration)
    drawn: dict[str, int] = {}
    for index, (row, meas) in enumerate(zip(rows, analysis.measurements.values())):
        kept = [td for td in meas.time_data if td.duration >= lower_threshold]
        stride = max(math.ceil(len(kept) / DEFAULT_MAX_SAMPLES), 1)
        spans = [(td.time, td.duration) for td in kept[::stride]]
        if spans:
            timeline_ax.broken_barh(
                spans, (row * ROW_HEIGHT, ROW_HEIGHT), facecolors=_row_color(index)
            )
        drawn[location_of(meas)] = len(spans)

    timeline_ax.plot([0.0, end_time], [0.0, 0.0], color=_TEXT_DISABLED, linewidth=0.8)
    timeline_ax.set_xlabel("time [s]")
    timeline_ax.set_yticks([])
    timeline_ax.autoscale_view()
    left = timeline_ax.get_xlim()[0]
    for row, meas in zip(rows, analysis.measurements.values()):
        timeline_ax.text(
            left, (row + 0.5) * ROW_HEIGHT, label_of(meas), va="center", ha="left"
        )
    return drawn


def read_preview_lines(path: str | os.PathLike[str]) -> list[str]:
    """Return the lines of a source file, or an empty list if it cannot be read."""
    try:
        with open(path, encoding="utf-8", errors="replace") as handle:
            return handle.read().splitlines()
    except OSError:
        return []


def summary_lines(analysis: SessionAnalysis) -> list[str]:
    """Return one line per location with its mean duration and deviation."""
    return [
        f"{location_of(m)} => {m.mean_duration:g} {m.standard_deviation:g}"
        for m in analysis.measurements.values()
    ]


def _draw(fig: Figure, analysis: SessionAnalysis, args: argparse.Namespace) -> None:
    grid = fig.add_gridspec(2, 2, height_ratios=[1, 9])
    rate_ax = fig.add_subplot(grid[0, 0])
    timeline_ax = fig.add_subplot(grid[1, 0], sharex=rate_ax)
    bars_ax = fig.add_subplot(grid[:, 1])
    plot_time_evolution(
        analysis, args.threshold, args.sort_by_duration, (rate_ax, timeline_ax)
    )
    plot_bars(analysis, BarMode[args.mode.upper()], args.sort_by_duration, bars_ax)
    fig.suptitle(f"Loaded path: {args.path}")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scopeprof-plot", description="Plot a recorded profiling session."
    )
    parser.add_argument(
        "path", nargs="?", help="session folder (defaults to the last one opened)"
    )
    parser.add_argument(
        "--mode",
        choices=[m.name.lower() for m in BarMode],
        default="mean",
        help="quantity shown by the bar chart",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=0.0,
        help="skip samples with duration less than this many seconds",
    )
    parser.add_argument(
        "--sort-by-duration", action="store_true", help="order rows by total time"
    )
    parser.add_argument("--output", help="save the chart to this file instead of showing it")
    parser.add_argument(
        "--settings", default=DEFAULT_SETTINGS, help="file that remembers settings"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Load a session, print its summary and plot it."""
    args = _parser().parse_args(argv)
    with KeyValueStore(args.settings) as settings:
        if args.path is None:
            args.path = settings.get(BASE_PATH_KEY)
        if not args.path:
            print("error: no session folder given", file=sys.stderr)
            return 2
        settings.set(BASE_PATH_KEY, args.path)

    try:
        rows = read_session(args.path)
    except SessionReadError as error:
        print(f"error: {error}", file=sys.stderr)
        return 1

    analysis = process_session(rows)
    for line in summary_lines(analysis):
        print(line)

    with matplotlib.rc_context(dracula_style()):
        if args.output:
            fig = Figure(figsize=(16, 9))
            _draw(fig, analysis, args)
            fig.savefig(Path(args.output))
        else:
            import matplotlib.pyplot as plt

            fig = plt.figure("Profiler plotter", figsize=(16, 9))
            _draw(fig, analysis, args)
            plt.show()
    return 0


if __name__ == "__main__":
    sys.exit(main())
# scopeprof

A small profiler for timing code scopes. Each measurement goes into a compact
binary session file. The package also has tools to read, analyse and plot
what was recorded.

## Installing

    pip install scopeprof

To run the tests:

    pip install "scopeprof[test]"

## Recording a session

Initialize the global session with an output folder. Enable it, then time
scopes with `MeasureScope` or the `measure` decorator:

```python
from scopeprof.profiler import LocationID, MeasureScope, ProfilingSession, measure

session = ProfilingSession.global_instance()
session.initialize("/tmp/run1")
session.enable()

@measure
def work():
    return sum(range(10_000))

def run():
    location = LocationID.here()
    for _ in range(100):
        with MeasureScope(location):
            work()

run()
session.close()
```

- `initialize(folder)` opens `profiler_session.csv` in that folder and starts
  the clock. Each record in the file holds three fields: the start time in
  seconds since initialization, the location id and the duration in seconds.
- Measurements are recorded only while the session is enabled. A new session
  starts disabled.
- `close()` closes the session file. It also writes `measures_id_map.csv`,
  with one `file;line;function;id` line per location. The global session is
  closed at interpreter exit as well.
- `LocationID.here(depth)` identifies the calling frame, or a frame `depth`
  levels further up. `location_hash(file, line, function)` returns the 64-bit
  id used for a location.
- `ProfilingSession()`, `LocationID(..., session=...)` and
  `MeasureScope(location, session=...)` let you use a session other than the
  global one.

## Reading and analysing a session

```python
from scopeprof.analysis import BarMode, bar_values, process_session
from scopeprof.session_reader import read_session

rows = read_session("/tmp/run1")
analysis = process_session(rows)
values, errors = bar_values(analysis, BarMode.CUMULATIVE)
```

`read_session` returns one `SessionRow` for each record. If the session file
or the location map cannot be opened, it raises `SessionReadError`.

`process_session` groups the rows by location and returns a
`SessionAnalysis`. For each location it holds a `Measurement` with:

- the hits
- the mean duration
- the standard deviation
- the mean frequency
- a rank by cumulative time

The module also provides these helpers:

- `rows_by_duration`
- `measures_per_second`
- `label_of`
- `location_of`
- `extract_function_name`
- `extract_file_and_line`

`KeyValueStore` in `scopeprof.kvp` is a small settings file of
`key@=@value` lines. `load_kvp` and `save_kvp` read and write such files
directly.

## Plotting

    scopeprof-plot /tmp/run1

The command prints one summary line per location: the location, its mean
duration and its deviation. It then shows one figure with two parts:

- **Timeline.** Each hit is a bar on its location's row, with a
  measures-per-second strip above it.
- **Bar chart.** One bar per location.

Options:

- `--mode {mean,cumulative,percentage,counts,frequency}`: the quantity shown
  by the bar chart. The default is `mean`.
- `--threshold SECONDS`: skip hits shorter than this.
- `--sort-by-duration`: order the rows by cumulative time.
- `--output FILE`: save the figure to a file instead of showing it.
- `--settings FILE`: the file that stores the last session folder. The
  default is `~/.scopeprof_settings`. If no path is given, the stored folder
  is used.

The command exits with status 2 when no folder is known, and with status 1
when the session cannot be read.

`plot_bars` and `plot_time_evolution` in `scopeprof.plotter` draw onto
matplotlib axes that you supply, so you can use them in your own figures.
`read_preview_lines` returns the lines of a source file, and
`summary_lines` returns the summary text that the command prints.

## What it does not do

The plots are static matplotlib figures. They have no hover tooltips, no
keyboard panning and no built-in source preview window.
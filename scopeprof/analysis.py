"""Aggregation of recorded session rows into per-location statistics."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Protocol, Sequence

from scopeprof.session_reader import SessionRow

DEFAULT_MAX_SAMPLES = 5000


class _Located(Protocol):
    path: str
    line: int
    function: str


@dataclass
class TimeAndDuration:
    """Start time and duration of one hit, in seconds."""

    time: float = -1.0
    duration: float = 0.0


@dataclass
class TimeValue:
    """A value sampled at a point in time."""

    time: float = 0.0
    value: float = 0.0


@dataclass
class Measurement:
    """Statistics of every hit recorded at one source location."""

    path: str
    line: int
    function: str
    file: str
    time_data: list[TimeAndDuration] = field(default_factory=list)
    first_start: float = -1.0
    last_end: float = 0.0
    mean_duration: float = 0.0
    standard_deviation: float = 0.0
    mean_frequency: float = 0.0
    duration_sorted_index: int = 0

    @property
    def hits(self) -> int:
        return len(self.time_data)

    @property
    def cumulative_duration(self) -> float:
        return self.mean_duration * len(self.time_data)


@dataclass
class SessionAnalysis:
    """Measurements keyed by location, in location order."""

    measurements: dict[str, Measurement] = field(default_factory=dict)
    end_time: float = 0.0
    measurements_per_second: list[TimeValue] = field(default_factory=list)
    keys_by_duration: list[str] = field(default_factory=list)


class BarMode(IntEnum):
    """Quantity shown by the bar chart."""

    MEAN = 0
    CUMULATIVE = 1
    PERCENTAGE = 2
    COUNTS = 3
    FREQUENCY = 4


def _divide(numerator: float, denominator: float) -> float:
    if denominator:
        return numerator / denominator
    if numerator == 0 or math.isnan(numerator):
        return math.nan
    return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)


def extract_function_name(text: str) -> str:
    """Return what follows ``"): "`` in a location string, or ``""``."""
    start = text.rfind(")")
    if start != -1 and start + 2 < len(text):
        return text[start + 2:]
    return ""


def extract_file_and_line(text: str) -> str:
    """Return the file name and line part of a location string, or ``""``."""
    line_start = text.rfind("(")
    line_end = text.rfind(")")
    path_end = text.rfind("/")
    if path_end == -1 or line_start == -1 or line_end == -1:
        return ""
    count = line_end - path_end + 1
    if count < 0:
        return text[path_end + 1:]
    return text[path_end + 1:path_end + 1 + count]


def location_of(item: _Located) -> str:
    """Return the key that identifies the location of a row or measurement."""
    return f"{item.path}({item.line}): {item.function}"


def label_of(measurement: Measurement) -> str:
    """Return the short label shown next to a measurement."""
    return f"{measurement.file} ({measurement.line}): {measurement.function}"


def process_session(rows: Sequence[SessionRow]) -> SessionAnalysis:
    """Group rows by location and compute their statistics."""
    grouped: dict[str, Measurement] = {}
    for row in rows:
        key = location_of(row)
        meas = grouped.get(key)
        if meas is None:
            meas = Measurement(
                path=row.path,
                line=row.line,
                function=row.function,
                file=os.path.basename(row.path),
            )
            grouped[key] = meas
        meas.time_data.append(TimeAndDuration(row.time, row.duration))
        if meas.first_start == -1:
            meas.first_start = row.time
        meas.mean_duration += row.duration
        meas.last_end = row.time + row.duration

    analysis = SessionAnalysis()
    analysis.measurements = {key: grouped[key] for key in sorted(grouped)}

    times = sorted(row.time for row in rows)
    per_second = [TimeValue() for _ in times]
    for i in range(1, len(times) - 1):
        per_second[i].time = times[i]
        per_second[i].value = per_second[i - 1].value + times[i] - times[i - 1]
    analysis.measurements_per_second = per_second

    for meas in analysis.measurements.values():
        hits = len(meas.time_data)
        meas.mean_frequency = _divide(hits, meas.last_end)
        meas.mean_duration /= hits
        analysis.end_time = max(analysis.end_time, meas.time_data[-1].time)
        meas.standard_deviation = math.sqrt(
            sum((td.duration - meas.mean_duration) ** 2 for td in meas.time_data)
        )

    analysis.keys_by_duration = sorted(
        analysis.measurements,
        key=lambda key: analysis.measurements[key].cumulative_duration,
        reverse=True,
    )
    for index, key in enumerate(analysis.keys_by_duration):
        analysis.measurements[key].duration_sorted_index = index
    return analysis


def rows_by_duration(analysis: SessionAnalysis, sort_by_duration: bool) -> list[int]:
    """Return the plot row of each measurement, in location order."""
    if sort_by_duration:
        return [m.duration_sorted_index for m in analysis.measurements.values()]
    return list(range(len(analysis.measurements)))


def bar_values(
    analysis: SessionAnalysis, mode: BarMode | int
) -> tuple[list[float], list[float]]:
    """Return bar lengths and error widths of each measurement for ``mode``."""
    values: list[float] = []
    errors: list[float] = []
    for meas in analysis.measurements.values():
        error = 0.0
        if mode == BarMode.MEAN:
            value = meas.mean_duration
            error = meas.standard_deviation
        elif mode == BarMode.CUMULATIVE:
            value = meas.cumulative_duration
        elif mode == BarMode.PERCENTAGE:
            value = _divide(meas.cumulative_duration, analysis.end_time) * 100.0
        elif mode == BarMode.COUNTS:
            value = float(meas.hits)
        elif mode == BarMode.FREQUENCY:
            value = meas.mean_frequency
        else:
            value = 0.0
        values.append(value)
        errors.append(error)
    return values, errors


def _lower_bound(items: Sequence[TimeValue], value: float) -> int:
    first, count = 0, len(items)
    while count > 0:
        step = count // 2
        probe = first + step
        if items[probe].time < value:
            first = probe + 1
            count -= step + 1
        else:
            count = step
    return first


def measures_per_second(
    analysis: SessionAnalysis,
    lower: float,
    upper: float,
    max_samples: int = DEFAULT_MAX_SAMPLES,
) -> list[TimeValue]:
    """Return the rate of measurements between ``lower`` and ``upper``."""
    samples = analysis.measurements_per_second
    start = _lower_bound(samples, lower)
    end = _lower_bound(samples, upper)
    increment = max((end - start) // (2 * max_samples), 1)
    result = []
    for index in range(start, end, increment):
        if index + 1 >= len(samples):
            break
        current = samples[index]
        half_gap = (samples[index + 1].value - current.value) / 2.0
        result.append(TimeValue(current.time, _divide(1.0, half_gap)))
    return result
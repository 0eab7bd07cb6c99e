"""Reading of recorded profiling sessions."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import NamedTuple

from scopeprof.profiler import ID_MAP_FILENAME, MEASURE_RECORD, SESSION_FILENAME

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_MASK64 = (1 << 64) - 1


class SessionReadError(Exception):
    """Raised when a session's files cannot be opened."""


@dataclass(frozen=True)
class SessionRow:
    """One measurement with its source location resolved."""

    time: float
    duration: float
    path: str
    line: int
    function: str


class _Location(NamedTuple):
    path: str
    line: int
    function: str


_UNKNOWN = _Location("", 0, "")


def _leading_int(text: str) -> int:
    match = _LEADING_INT.match(text)
    if match is None:
        raise ValueError(f"not an integer: {text!r}")
    return int(match.group(1))


def _lines(content: str) -> list[str]:
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def read_location_map(path: str | os.PathLike[str]) -> dict[int, _Location]:
    """Read the location id map stored in the session folder ``path``."""
    map_path = os.path.join(os.fspath(path), ID_MAP_FILENAME)
    try:
        with open(map_path, encoding="utf-8", newline="") as handle:
            content = handle.read()
    except OSError as error:
        raise SessionReadError(f"cannot open location map {map_path}") from error

    locations: dict[int, _Location] = {}
    for line in _lines(content):
        fields = line.split(";", 3)
        fields += [""] * (4 - len(fields))
        file_path, line_text, function, id_text = fields
        try:
            location_id = _leading_int(id_text) & _MASK64
            line_no = _leading_int(line_text)
        except ValueError:
            logger.error("invalid data format in the location map: %r", line)
            continue
        locations[location_id] = _Location(file_path, line_no, function)
    return locations


def read_session(path: str | os.PathLike[str]) -> list[SessionRow]:
    """Read all measurements of the session stored in folder ``path``."""
    locations = read_location_map(path)
    session_path = os.path.join(os.fspath(path), SESSION_FILENAME)
    try:
        with open(session_path, "rb") as handle:
            data = handle.read()
    except OSError as error:
        raise SessionReadError(f"cannot open session file {session_path}") from error

    usable = len(data) - len(data) % MEASURE_RECORD.size
    rows = []
    for start, location_id, duration in MEASURE_RECORD.iter_unpack(data[:usable]):
        location = locations.get(location_id, _UNKNOWN)
        rows.append(
            SessionRow(
                time=start,
                duration=duration,
                path=location.path,
                line=location.line,
                function=location.function,
            )
        )
    return rows
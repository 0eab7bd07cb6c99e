"""Scope-based profiler that records timings into a binary session file."""

from __future__ import annotations

import atexit
import functools
import os
import struct
import sys
import threading
import time
from typing import BinaryIO, Callable, TypeVar

SESSION_FILENAME = "profiler_session.csv"
ID_MAP_FILENAME = "measures_id_map.csv"

# One record per measurement: start time [s], location id, duration [s].
MEASURE_RECORD = struct.Struct("<dQd")

_HASH_SEED = 5381
_MASK64 = (1 << 64) - 1

F = TypeVar("F", bound=Callable[..., object])


def _hash_text(value: int, text: str) -> int:
    for byte in text.encode("utf-8"):
        signed = byte - 256 if byte >= 128 else byte
        value = (value * 33 + signed) & _MASK64
    return value


def location_hash(file_name: str, line: int, function_name: str) -> int:
    """Return the 64-bit identifier of a source location."""
    value = _hash_text(_HASH_SEED, file_name)
    value = (value + line) & _MASK64
    return _hash_text(value, function_name)


class ProfilingSession:
    """Collects measurements and writes them to an output folder."""

    _global: ProfilingSession | None = None
    _global_lock = threading.Lock()

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._enabled = False
        self._out_folder = ""
        self._session: BinaryIO | None = None
        self._start_ns = 0
        self._locations: dict[str, int] = {}

    @classmethod
    def global_instance(cls) -> ProfilingSession:
        """Return the process-wide session, creating it on first use."""
        with cls._global_lock:
            if cls._global is None:
                cls._global = cls()
                atexit.register(cls._global.close)
            return cls._global

    def initialize(self, out_folder: str | os.PathLike[str]) -> None:
        """Open the session file in ``out_folder`` and start the clock."""
        folder = os.fspath(out_folder)
        stream = open(os.path.join(folder, SESSION_FILENAME), "wb")
        with self._lock:
            if self._session is not None:
                self._session.close()
            self._out_folder = folder
            self._session = stream
            self._start_ns = time.perf_counter_ns()

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def enabled(self) -> bool:
        return self._enabled

    def add_location(
        self, file_name: str, line: int, function_name: str, location_id: int
    ) -> None:
        """Register the identifier of a source location."""
        key = f"{file_name};{line};{function_name}"
        with self._lock:
            self._locations[key] = location_id

    def add_measure(self, location: LocationID, start: int, end: int) -> None:
        """Record a measurement spanning ``start`` to ``end`` (nanoseconds)."""
        if not self._enabled or self._session is None:
            return
        record = MEASURE_RECORD.pack(
            (start - self._start_ns) / 1e9,
            location.location_id,
            (end - start) / 1e9,
        )
        with self._lock:
            if self._session is not None:
                self._session.write(record)

    def close(self) -> None:
        """Close the session file and write the location id map."""
        with self._lock:
            stream, self._session = self._session, None
            if stream is None:
                return
            stream.close()
            map_path = os.path.join(self._out_folder, ID_MAP_FILENAME)
            with open(map_path, "w", encoding="utf-8", newline="\n") as out:
                for key, location_id in sorted(self._locations.items()):
                    out.write(f"{key};{location_id}\n")


class LocationID:
    """A source location, registered with a session under its hash."""

    __slots__ = ("file_name", "line", "function_name", "location_id")

    def __init__(
        self,
        file_name: str,
        line: int,
        function_name: str,
        session: ProfilingSession | None = None,
    ) -> None:
        self.file_name = file_name
        self.line = line
        self.function_name = function_name
        self.location_id = location_hash(file_name, line, function_name)
        if session is None:
            session = ProfilingSession.global_instance()
        session.add_location(file_name, line, function_name, self.location_id)

    @classmethod
    def here(cls, depth: int = 0) -> LocationID:
        """Return the location of the caller, ``depth`` frames further up."""
        frame = sys._getframe(depth + 1)
        code = frame.f_code
        return cls(code.co_filename, frame.f_lineno, code.co_name)

    def __repr__(self) -> str:
        return (
            f"LocationID({self.file_name!r}, {self.line}, "
            f"{self.function_name!r}, id={self.location_id})"
        )


class MeasureScope:
    """Context manager that measures the time spent inside its block."""

    def __init__(
        self, location: LocationID, session: ProfilingSession | None = None
    ) -> None:
        self.location = location
        self._session = session
        self._start = 0

    def __enter__(self) -> MeasureScope:
        self._start = time.perf_counter_ns()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        end = time.perf_counter_ns()
        session = self._session
        if session is None:
            session = ProfilingSession.global_instance()
        session.add_measure(self.location, self._start, end)
        return False


def measure(func: F) -> F:
    """Decorate ``func`` so that every call is measured by the global session."""
    code = func.__code__
    location = LocationID(code.co_filename, code.co_firstlineno, func.__qualname__)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with MeasureScope(location):
            return func(*args, **kwargs)

    wrapper.location = location  # type: ignore[attr-defined]
    return wrapper  # type: ignore[return-value]
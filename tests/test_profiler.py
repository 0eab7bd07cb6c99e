import random
import time

import pytest

from scopeprof.profiler import (
    ID_MAP_FILENAME,
    MEASURE_RECORD,
    SESSION_FILENAME,
    LocationID,
    MeasureScope,
    ProfilingSession,
    location_hash,
    measure,
)


def _records(folder):
    data = (folder / SESSION_FILENAME).read_bytes()
    return list(MEASURE_RECORD.iter_unpack(data))


@pytest.fixture
def global_session(tmp_path):
    session = ProfilingSession.global_instance()
    session.initialize(tmp_path)
    session.enable()
    try:
        yield session
    finally:
        session.disable()
        session.close()


def test_hash_of_empty_location_is_seed():
    assert location_hash("", 0, "") == 5381


def test_hash_line_is_additive():
    base = location_hash("file.py", 10, "")
    assert location_hash("file.py", 11, "") == base + 1


def test_hash_stays_in_64_bits():
    value = location_hash("x" * 500, 123, "function_" * 50)
    assert 0 <= value < 2**64


def test_hash_depends_on_function_name():
    assert location_hash("a.py", 1, "f") != location_hash("a.py", 1, "g")


def test_global_instance_is_shared():
    first = ProfilingSession.global_instance()
    second = ProfilingSession.global_instance()
    was_enabled = first.enabled()
    first.enable()
    try:
        assert second.enabled() is True
        first.disable()
        assert second.enabled() is False
    finally:
        if was_enabled:
            first.enable()
        else:
            first.disable()


def test_enable_and_disable():
    session = ProfilingSession()
    assert session.enabled() is False
    session.enable()
    assert session.enabled() is True
    session.disable()
    assert session.enabled() is False


def test_disabled_session_writes_no_records(tmp_path):
    session = ProfilingSession()
    location = LocationID("f.py", 3, "work", session=session)
    session.initialize(tmp_path)
    with MeasureScope(location, session=session):
        pass
    session.close()
    assert _records(tmp_path) == []


def test_measure_scope_overhead_case(tmp_path):
    session = ProfilingSession()
    session.initialize(tmp_path)
    session.enable()
    location = LocationID("test_profiler.cpp", 30, "main", session=session)
    iterations = 200
    inner = []
    overheads = []
    total_start = time.perf_counter_ns()
    dummy = 0
    for _ in range(iterations):
        start = time.perf_counter_ns()
        with MeasureScope(location, session=session):
            t0 = time.perf_counter_ns()
            for _ in range(200):
                dummy += random.randint(0, 10)
            t1 = time.perf_counter_ns()
        inner.append(t1 - t0)
        overheads.append((time.perf_counter_ns() - start) - (t1 - t0))
    total = time.perf_counter_ns() - total_start
    session.close()

    records = _records(tmp_path)
    assert len(records) == iterations
    assert all(rec[1] == location.location_id for rec in records)
    assert all(rec[2] >= work / 1e9 for rec, work in zip(records, inner))
    times = [rec[0] for rec in records]
    assert times == sorted(times)
    assert times[0] >= 0.0
    assert 0 <= sum(overheads) <= total


def test_measure_before_initialize_is_ignored(tmp_path):
    session = ProfilingSession()
    session.enable()
    location = LocationID("f.py", 1, "g", session=session)
    session.add_measure(location, 0, 10)
    session.initialize(tmp_path)
    session.close()
    assert _records(tmp_path) == []


def test_close_writes_sorted_id_map(tmp_path):
    session = ProfilingSession()
    second = LocationID("b.py", 2, "beta", session=session)
    first = LocationID("a.py", 1, "alpha", session=session)
    session.initialize(tmp_path)
    session.close()
    lines = (tmp_path / ID_MAP_FILENAME).read_text().splitlines()
    assert lines == [
        f"a.py;1;alpha;{first.location_id}",
        f"b.py;2;beta;{second.location_id}",
    ]


def test_close_without_initialize_writes_nothing(tmp_path):
    session = ProfilingSession()
    location = LocationID("a.py", 1, "alpha", session=session)
    session.close()
    assert sorted(p.name for p in tmp_path.iterdir()) == []
    session.initialize(tmp_path)
    session.close()
    lines = (tmp_path / ID_MAP_FILENAME).read_text().splitlines()
    assert lines == [f"a.py;1;alpha;{location.location_id}"]


def test_second_close_keeps_map(tmp_path):
    session = ProfilingSession()
    LocationID("a.py", 1, "alpha", session=session)
    session.initialize(tmp_path)
    session.close()
    before = (tmp_path / ID_MAP_FILENAME).read_text()
    LocationID("c.py", 5, "gamma", session=session)
    session.close()
    assert (tmp_path / ID_MAP_FILENAME).read_text() == before


def test_measure_scope_records_on_exception(tmp_path):
    session = ProfilingSession()
    session.initialize(tmp_path)
    session.enable()
    location = LocationID("f.py", 9, "boom", session=session)
    with pytest.raises(RuntimeError):
        with MeasureScope(location, session=session):
            raise RuntimeError("fail")
    session.close()
    records = _records(tmp_path)
    assert len(records) == 1
    assert records[0][1] == location.location_id


def test_location_here_captures_caller():
    def helper():
        return LocationID.here()

    location = helper()
    assert location.function_name == "helper"
    assert location.file_name == __file__
    assert location.location_id == location_hash(
        __file__, location.line, "helper"
    )


def test_location_here_with_depth():
    def inner():
        return LocationID.here(1)

    def outer():
        return inner()

    assert outer().function_name == "outer"


def test_measure_decorator_records_calls(global_session, tmp_path):
    @measure
    def add(a, b):
        return a + b

    assert add(2, 3) == 5
    assert add(4, 5) == 9
    global_session.close()
    records = _records(tmp_path)
    assert [rec[1] for rec in records] == [add.location.location_id] * 2
    id_map = (tmp_path / ID_MAP_FILENAME).read_text()
    assert f";{add.location.location_id}\n" in id_map
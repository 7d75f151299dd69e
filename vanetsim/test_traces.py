"""
Tests for trace discovery and parsing
"""

import tempfile
import warnings
from pathlib import Path

import pytest

from vanetsim.errors import ConfigurationError, ParseWarning, EmptyTraceWarning
from vanetsim.traces.trace_loader import (
    TraceLoader, VehicleTrace, Waypoint, parse_trace, parse_line
)


SAMPLE_TRACE = "0.0 0 0\n5.0 100 0\n#c\nbad\n10.0 200 0\n"


def write_traces(directory: Path, traces: dict):
    for name, text in traces.items():
        (directory / name).write_text(text)


def test_parse_sample_trace():
    with pytest.warns(ParseWarning):
        waypoints = parse_trace(SAMPLE_TRACE)

    assert waypoints == [
        Waypoint(0.0, 0.0, 0.0),
        Waypoint(5.0, 100.0, 0.0),
        Waypoint(10.0, 200.0, 0.0),
    ]


def test_blank_and_comment_lines_are_silent():
    text = "\n# header\n   \n  # indented comment\n1.0 2.0 3.0\n"
    with warnings.catch_warnings():
        warnings.simplefilter('error')
        waypoints = parse_trace(text)
    assert waypoints == [Waypoint(1.0, 2.0, 3.0)]


@pytest.mark.parametrize("line", [
    "1.0 2.0",
    "1.0 2.0 3.0 4.0",
    "a b c",
    "1.0 nan 3.0",
    "1.0 inf 3.0",
    "-1.0 0 0",
])
def test_malformed_lines_rejected(line):
    assert parse_line(line) is None


def test_unordered_timestamps_pass_through():
    with warnings.catch_warnings():
        warnings.simplefilter('error')
        waypoints = parse_trace("10 0 0\n5 1 1\n7 2 2\n")
    assert [wp.time for wp in waypoints] == [10.0, 5.0, 7.0]


def test_vehicle_ids_follow_sorted_names(monkeypatch):
    original_iterdir = Path.iterdir

    def reversed_iterdir(self):
        return iter(sorted(original_iterdir(self), reverse=True))

    # Directory listing comes back in reverse name order
    monkeypatch.setattr(Path, 'iterdir', reversed_iterdir)

    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        write_traces(tmpdir, {
            "veh_c.txt": "0 3 3\n",
            "veh_a.txt": "0 1 1\n",
            "veh_b.txt": "0 2 2\n",
            "notes.csv": "0 9 9\n",
        })
        assert [p.name for p in tmpdir.iterdir()][:3] == ["veh_c.txt", "veh_b.txt", "veh_a.txt"]

        traces = TraceLoader().load(tmpdir)

    assert len(traces) == 3
    assert [t.vehicle_id for t in traces] == [0, 1, 2]
    assert [t.source.name for t in traces] == ["veh_a.txt", "veh_b.txt", "veh_c.txt"]
    assert [t.waypoints[0].x for t in traces] == [1.0, 2.0, 3.0]


def test_threaded_loading_keeps_order():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        write_traces(tmpdir, {f"v{i:03d}.txt": f"0 {i} 0\n1 {i} 1\n" for i in range(20)})

        sequential = TraceLoader().load(tmpdir)
        threaded = TraceLoader(workers=4).load(tmpdir)

    assert [t.waypoints for t in threaded] == [t.waypoints for t in sequential]
    assert [t.vehicle_id for t in threaded] == list(range(20))


def test_empty_trace_is_kept_with_warning():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        write_traces(tmpdir, {
            "a.txt": "0 0 0\n1 1 1\n",
            "b.txt": "# nothing here\ngarbage\n",
        })

        with pytest.warns(EmptyTraceWarning):
            traces = TraceLoader().load(tmpdir)

    assert len(traces) == 2
    assert traces[1].is_empty
    assert traces[1].time_span() == (0.0, 0.0)
    assert not traces[0].is_empty


def test_missing_directory():
    with pytest.raises(ConfigurationError, match="does not exist"):
        TraceLoader().discover(Path("/nonexistent/vehicle_traces"))


def test_directory_without_sources():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "readme.md").write_text("no traces")
        with pytest.raises(ConfigurationError, match="No trace files"):
            TraceLoader().load(Path(tmpdir))


def test_custom_suffix():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        write_traces(tmpdir, {"a.trace": "0 0 0\n", "b.txt": "0 0 0\n"})
        files = TraceLoader(suffix=".trace").discover(tmpdir)
    assert [f.name for f in files] == ["a.trace"]


def test_trace_dataframe():
    with pytest.warns(ParseWarning):
        waypoints = parse_trace(SAMPLE_TRACE)
    df = VehicleTrace(vehicle_id=0, waypoints=waypoints).to_dataframe()
    assert list(df.columns) == ['time', 'x', 'y']
    assert df['x'].tolist() == [0.0, 100.0, 200.0]

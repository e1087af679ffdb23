import pytest

from jobtrace.geometry import Position, haversine_distance
from jobtrace.trace import Trace


def test_trace_creation_and_basic_properties():
    """
    Tests basic Trace creation, coordinate storage, length, indexing, and iteration.
    """
    pos1 = Position(longitude=121.01877, latitude=14.540678)
    pos2 = Position(longitude=121.03, latitude=14.545)
    pos3 = Position(longitude=121.056, latitude=14.55)
    positions = [pos1, pos2, pos3]

    trace = Trace(positions)

    assert trace.coords == positions
    assert len(trace) == 3
    assert trace[0] == pos1
    assert trace[-1] == pos3
    assert list(trace) == positions
    assert trace.polyline() == [
        (121.01877, 14.540678),
        (121.03, 14.545),
        (121.056, 14.55),
    ]


def test_trace_path_length_along_equator():
    positions = [
        Position(longitude=0.0, latitude=0.0),
        Position(longitude=1.0, latitude=0.0),
        Position(longitude=2.0, latitude=0.0),
    ]
    trace = Trace(positions)

    expected = haversine_distance(positions[0], positions[1]) + haversine_distance(
        positions[1], positions[2]
    )
    assert trace.path_length_km() == pytest.approx(expected, rel=5e-3)
    assert trace.straight_line_distance_km() == pytest.approx(expected, rel=1e-9)


def test_trace_path_length_is_at_least_straight_line():
    positions = [
        Position(longitude=121.01877, latitude=14.540678),
        Position(longitude=121.04, latitude=14.56),
        Position(longitude=121.056, latitude=14.55),
    ]
    trace = Trace(positions)
    assert trace.path_length_km() >= trace.straight_line_distance_km() * 0.99


def test_short_traces_have_no_derived_distances():
    assert Trace([]).path_length_km() is None
    assert Trace([]).straight_line_distance_km() is None

    single = Trace([Position(longitude=1.0, latitude=1.0)])
    assert single.path_length_km() is None
    with pytest.raises(ValueError):
        single.linestring


def test_trace_bbox_empty_raises():
    with pytest.raises(ValueError):
        Trace([]).get_bbox()


def test_trace_to_feature():
    trace = Trace(
        [
            Position(longitude=121.01877, latitude=14.540678),
            Position(longitude=121.056, latitude=14.55),
        ]
    )
    feature = trace.to_feature({"deviceId": "device-1"})

    assert feature["type"] == "Feature"
    assert feature["geometry"]["type"] == "LineString"
    assert [list(c) for c in feature["geometry"]["coordinates"]] == [
        [121.01877, 14.540678],
        [121.056, 14.55],
    ]
    assert feature["properties"] == {"deviceId": "device-1"}

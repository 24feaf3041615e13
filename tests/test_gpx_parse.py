import datetime as dt

import pytest

from gpxview.errors import MalformedDocumentError
from gpxview.formats.gpx import (
    GpxParser,
    ParseFailure,
    XmlWalkStrategy,
    parse,
    parse_fallback,
    parse_file,
    parse_gpx_time,
)
from gpxview.model import Track, TrackSegment, Waypoint

UTC = dt.timezone.utc


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2026-01-02T21:14:44Z", dt.datetime(2026, 1, 2, 21, 14, 44, tzinfo=UTC)),
        ("2026-01-02T21:14:44.123Z", dt.datetime(2026, 1, 2, 21, 14, 44, 123000, tzinfo=UTC)),
        ("2026-01-02T23:14:44+02:00", dt.datetime(2026, 1, 2, 21, 14, 44, tzinfo=UTC)),
        ("2026-01-02T21:14:44", dt.datetime(2026, 1, 2, 21, 14, 44, tzinfo=UTC)),
        (" 2026-01-02T21:14:44Z\n", dt.datetime(2026, 1, 2, 21, 14, 44, tzinfo=UTC)),
    ],
)
def test_parse_gpx_time(text, expected):
    assert parse_gpx_time(text) == expected


@pytest.mark.parametrize("text", [
        "",
        "   ",
        "yesterday",
        "2026-13-40T00:00:00Z",
        # Valid text whose UTC instant falls outside the datetime range
        "0001-01-01T00:00:00+01:00",
        "9999-12-31T23:00:00-05:00",
    ])
def test_parse_gpx_time_rejects(text):
    assert parse_gpx_time(text) is None


@pytest.mark.parametrize("use_converter", [True, False])
def test_sample_document(sample_gpx_text, use_converter):
    track = parse(sample_gpx_text, use_converter=use_converter)

    assert track.name == "Lakeside loop"
    assert track.desc == "Short walk with a climb"
    assert track.author == "Test Walker"
    assert [len(s) for s in track.segments] == [4, 2, 3]
    assert len(track.waypoints) == 1

    wpt = track.waypoints[0]
    assert (wpt.lat, wpt.lon, wpt.ele, wpt.name) == (47.6, 8.5, 400.0, "Car park")
    assert wpt.time == dt.datetime(2024, 5, 1, 8, 0, tzinfo=UTC)

    first = track.segments[0].points[0]
    assert first == Waypoint(47.6, 8.5, 400.0, dt.datetime(2024, 5, 1, 8, 0, tzinfo=UTC))
    assert track.segments[2].points[0].time is None


def test_parse_file(sample_gpx_path):
    assert parse_file(sample_gpx_path, use_converter=False).point_count == 9


def test_parse_file_with_bom(tmp_path, sample_gpx_text):
    path = tmp_path / "bom.gpx"
    path.write_bytes(b"\xef\xbb\xbf" + sample_gpx_text.encode("utf-8"))
    assert parse_file(path, use_converter=False).name == "Lakeside loop"


@pytest.mark.parametrize("use_converter", [True, False])
def test_trkpt_missing_lat_is_dropped(make_gpx, use_converter):
    text = make_gpx(
        "<trk><trkseg>"
        '<trkpt lat="1.0" lon="2.0"/>'
        '<trkpt lon="3.0"/>'
        '<trkpt lat="4.0" lon="5.0"/>'
        "</trkseg></trk>"
    )
    track = parse(text, use_converter=use_converter)
    assert len(track.segments) == 1
    assert [(p.lat, p.lon) for p in track.segments[0].points] == [(1.0, 2.0), (4.0, 5.0)]


@pytest.mark.parametrize("lat", ["abc", "", "nan", "inf", "-Infinity"])
def test_non_finite_coordinates_are_dropped(make_gpx, lat):
    text = make_gpx(f'<wpt lat="{lat}" lon="1.0"/><wpt lat="1.0" lon="1.0"/>')
    track = parse_fallback(text)
    assert [(p.lat, p.lon) for p in track.waypoints] == [(1.0, 1.0)]


def test_bad_elevation_and_time_are_omitted(make_gpx):
    text = make_gpx(
        '<trk><trkseg><trkpt lat="1" lon="2"><ele>high</ele><time>noon</time></trkpt>'
        "</trkseg></trk>"
    )
    point = parse_fallback(text).segments[0].points[0]
    assert point.ele is None
    assert point.time is None


@pytest.mark.parametrize("use_converter", [True, False])
def test_not_well_formed_raises(make_gpx, use_converter):
    text = make_gpx('<trk><trkseg><trkpt lat="1" lon="2"></trkseg></trk>')
    with pytest.raises(MalformedDocumentError):
        parse(text, use_converter=use_converter)


@pytest.mark.parametrize("text", ["", "not xml at all", "<gpx>"])
def test_garbage_raises(text):
    with pytest.raises(MalformedDocumentError):
        parse(text)


@pytest.mark.parametrize("use_converter", [True, False])
def test_route_flattens_to_one_segment(make_gpx, use_converter):
    text = make_gpx(
        "<rte><name>r</name>"
        '<rtept lat="1" lon="1"/><rtept lat="2" lon="2"/><rtept lat="3" lon="3"/>'
        "</rte>"
    )
    track = parse(text, use_converter=use_converter)
    assert len(track.segments) == 1
    assert len(track.segments[0]) == 3


def test_only_invalid_points_gives_empty_track(make_gpx):
    text = make_gpx('<trk><trkseg><trkpt lat="x" lon="y"/></trkseg></trk><wpt lon="1"/>')
    track = parse(text)
    assert track.segments == ()
    assert track.waypoints == ()
    assert track.is_empty


def test_fallback_is_namespace_agnostic():
    v10 = (
        '<gpx xmlns="http://www.topografix.com/GPX/1/0" version="1.0">'
        "<name>Old</name><desc>gpx 1.0</desc><author>Someone</author>"
        '<trk><trkseg><trkpt lat="1" lon="2"><ele>3</ele></trkpt></trkseg></trk></gpx>'
    )
    prefixed = (
        '<g:gpx xmlns:g="http://www.topografix.com/GPX/1/1">'
        '<g:trk><g:trkseg><g:trkpt lat="1" lon="2"><g:ele>3</g:ele></g:trkpt></g:trkseg></g:trk>'
        "</g:gpx>"
    )
    bare = '<gpx><trk><trkseg><trkpt lat="1" lon="2"><ele>3</ele></trkpt></trkseg></trk></gpx>'

    old = parse_fallback(v10)
    assert (old.name, old.desc, old.author) == ("Old", "gpx 1.0", "Someone")
    for text in (v10, prefixed, bare):
        assert parse_fallback(text).segments == (TrackSegment((Waypoint(1.0, 2.0, 3.0),)),)


def test_fallback_keeps_document_order(make_gpx):
    text = make_gpx(
        '<rte><rtept lat="1" lon="1"/></rte>'
        '<trk><trkseg><trkpt lat="2" lon="2"/></trkseg><trkseg/>'
        '<trkseg><trkpt lat="3" lon="3"/></trkseg></trk>'
        '<rte><rtept lat="4" lon="4"/></rte>'
    )
    track = parse_fallback(text)
    assert [s.points[0].lat for s in track.segments] == [1.0, 2.0, 3.0, 4.0]


@pytest.mark.parametrize("use_converter", [True, False])
def test_routes_and_tracks_keep_document_order(make_gpx, use_converter):
    text = make_gpx(
        '<rte><rtept lat="1" lon="1"/></rte>'
        '<trk><trkseg><trkpt lat="2" lon="2"/></trkseg></trk>'
        '<rte><rtept lat="3" lon="3"/></rte>'
    )
    track = parse(text, use_converter=use_converter)
    assert [s.points[0].lat for s in track.segments] == [1.0, 2.0, 3.0]


def test_segment_point_names_survive_both_paths(make_gpx):
    text = make_gpx(
        '<trk><trkseg>'
        '<trkpt lat="1" lon="1"><name>km 1</name></trkpt>'
        '<trkpt lat="2" lon="2"/>'
        '</trkseg></trk>'
        '<rte><rtept lat="3" lon="3"><name>Bridge</name></rtept></rte>'
    )
    walked = parse_fallback(text)
    assert [p.name for s in walked.segments for p in s.points] == ["km 1", None, "Bridge"]
    assert parse(text) == walked


def test_track_name_is_not_document_name(make_gpx):
    text = make_gpx('<trk><name>inner</name><trkseg><trkpt lat="1" lon="1"/></trkseg></trk>')
    assert parse_fallback(text).name is None


def test_point_name_is_verbatim(make_gpx):
    text = make_gpx('<wpt lat="1" lon="1"><name>  Summit  </name></wpt>')
    assert parse_fallback(text).waypoints[0].name == "  Summit  "


def test_strategies_tried_in_order():
    calls = []
    track = Track(name="second")

    def failing(text):
        calls.append("first")
        return ParseFailure("first", "nope")

    def succeeding(text):
        calls.append("second")
        return track

    assert GpxParser([failing, succeeding]).parse("<gpx/>") is track
    assert calls == ["first", "second"]


def test_first_success_short_circuits():
    def boom(text):
        raise AssertionError("must not be called")

    track = Track(name="first")
    assert GpxParser([lambda t: track, boom]).parse("x") is track


def test_last_failure_is_reported():
    parser = GpxParser([lambda t: ParseFailure("a", "first reason"), XmlWalkStrategy()])
    with pytest.raises(MalformedDocumentError, match="Error parsing GPX XML"):
        parser.parse("<gpx")


def test_parser_needs_a_strategy():
    with pytest.raises(ValueError):
        GpxParser([])

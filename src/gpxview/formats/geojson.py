# gpxview/formats/geojson.py
"""
GeoJSON conversion strategy for gpxview

The primary parse path hands the document to a converter that produces a
GeoJSON FeatureCollection, then walks the features:

  - LineString        -> one TrackSegment
  - MultiLineString   -> one TrackSegment per line
  - Point             -> one standalone Waypoint (name/time from properties)

Any converter works as long as it exposes `convert(document) -> dict`.
The shipped one is built on gpxpy.

Per-coordinate times travel in `properties["coordTimes"]`, the same
convention other GPX-to-GeoJSON converters use; per-coordinate point names
travel alongside them in `properties["coordNames"]`.

Line features appear in document order, tracks and routes interleaved as
they are in the file.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional, Protocol
from xml.etree import ElementTree as ET

from gpxview.errors import ConversionUnavailableError
from gpxview.formats.gpx import ParseFailure, ParseOutcome, local_name, parse_gpx_time
from gpxview.model import Track, TrackSegment, Waypoint

logger = logging.getLogger(__name__)


class Converter(Protocol):
    def convert(self, document: str) -> dict[str, Any]:
        ...


# ---------------------------------------------------------------------------
# gpxpy-backed converter
# ---------------------------------------------------------------------------
def _coordinate(point) -> list[float]:
    coord = [point.longitude, point.latitude]
    if point.elevation is not None:
        coord.append(point.elevation)
    return coord


def _time_text(point) -> Optional[str]:
    return point.time.isoformat() if point.time is not None else None


def _line_feature(name: Optional[str], lines: list[list]) -> dict[str, Any]:
    coords = [[_coordinate(p) for p in line] for line in lines]
    times = [[_time_text(p) for p in line] for line in lines]
    names = [[p.name for p in line] for line in lines]
    if len(lines) == 1:
        geometry = {"type": "LineString", "coordinates": coords[0]}
        coord_times: list = times[0]
        coord_names: list = names[0]
    else:
        geometry = {"type": "MultiLineString", "coordinates": coords}
        coord_times = times
        coord_names = names
    return {
        "type": "Feature",
        "properties": {"name": name, "coordTimes": coord_times, "coordNames": coord_names},
        "geometry": geometry,
    }


def line_order(document: str) -> list[str]:
    """Local names ("trk" or "rte") of the line elements under <gpx>, in order."""
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise ConversionUnavailableError(f"Cannot read element order: {e}") from e
    return [n for n in (local_name(child.tag) for child in root) if n in ("trk", "rte")]


class GpxpyConverter:
    """Convert GPX text into a GeoJSON FeatureCollection using gpxpy."""

    def convert(self, document: str) -> dict[str, Any]:
        try:
            import gpxpy
        except ImportError as e:
            raise ConversionUnavailableError(f"gpxpy is not available ({e})") from e

        gpx = gpxpy.parse(document)
        features: list[dict[str, Any]] = []

        # gpxpy keeps tracks and routes in separate lists; put them back in
        # the order they appear under <gpx>.
        tracks, routes = iter(gpx.tracks), iter(gpx.routes)
        for kind in line_order(document):
            item = next(tracks if kind == "trk" else routes, None)
            if item is None:
                raise ConversionUnavailableError(f"gpxpy returned fewer <{kind}> than the document has")
            if kind == "trk":
                lines = [seg.points for seg in item.segments if seg.points]
            else:
                lines = [item.points] if item.points else []
            if lines:
                features.append(_line_feature(item.name, lines))
        if next(tracks, None) is not None or next(routes, None) is not None:
            raise ConversionUnavailableError("gpxpy returned more tracks or routes than the document has")

        for wpt in gpx.waypoints:
            features.append({
                "type": "Feature",
                "properties": {"name": wpt.name, "time": _time_text(wpt)},
                "geometry": {"type": "Point", "coordinates": _coordinate(wpt)},
            })

        return {
            "type": "FeatureCollection",
            "name": gpx.name,
            "description": gpx.description,
            "author": gpx.author_name,
            "features": features,
        }


# ---------------------------------------------------------------------------
# FeatureCollection -> Track
# ---------------------------------------------------------------------------
def _number(v: Any) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    v = float(v)
    return v if math.isfinite(v) else None


def _text(v: Any) -> Optional[str]:
    return v if isinstance(v, str) and v else None


def coord_to_waypoint(coord: Any, time_text: Any = None, name: Any = None) -> Optional[Waypoint]:
    """[lon, lat, ele?] -> Waypoint, or None if lon/lat are not finite."""
    if not isinstance(coord, (list, tuple)):
        raise ConversionUnavailableError(f"Unexpected coordinate: {coord!r}")
    if len(coord) < 2:
        return None
    lon, lat = _number(coord[0]), _number(coord[1])
    if lat is None or lon is None:
        logger.debug("Dropping coordinate %r", coord)
        return None
    ele = _number(coord[2]) if len(coord) > 2 else None
    time = parse_gpx_time(time_text) if isinstance(time_text, str) else None
    return Waypoint(lat=lat, lon=lon, ele=ele, time=time, name=_text(name))


def _per_coordinate(values: Any, count: int) -> list:
    # Only used when they line up one-to-one with the coordinates.
    if not isinstance(values, list) or len(values) != count:
        return [None] * count
    return values


def _line_segment(coords: Any, times: Any, names: Any = None) -> Optional[TrackSegment]:
    if not isinstance(coords, list):
        raise ConversionUnavailableError("Line coordinates are not a list")
    times = _per_coordinate(times, len(coords))
    names = _per_coordinate(names, len(coords))
    points = [
        p for p in (coord_to_waypoint(c, t, n) for c, t, n in zip(coords, times, names)) if p
    ]
    return TrackSegment(tuple(points)) if points else None


def features_to_track(collection: Any) -> Track:
    """
    Walk a GeoJSON FeatureCollection into a Track.

    Raises:
      ConversionUnavailableError if the collection does not have the expected shape.
    """
    if not isinstance(collection, dict) or collection.get("type") != "FeatureCollection":
        raise ConversionUnavailableError("Converter did not return a FeatureCollection")
    features = collection.get("features")
    if not isinstance(features, list):
        raise ConversionUnavailableError("FeatureCollection has no feature list")

    segments: list[TrackSegment] = []
    waypoints: list[Waypoint] = []

    for feature in features:
        if not isinstance(feature, dict):
            raise ConversionUnavailableError(f"Unexpected feature: {feature!r}")
        geom = feature.get("geometry")
        if not isinstance(geom, dict):
            continue
        props = feature.get("properties")
        if not isinstance(props, dict):
            props = {}

        gtype = geom.get("type")
        coords = geom.get("coordinates")
        if gtype == "LineString":
            seg = _line_segment(coords, props.get("coordTimes"), props.get("coordNames"))
            if seg:
                segments.append(seg)
        elif gtype == "MultiLineString":
            if not isinstance(coords, list):
                raise ConversionUnavailableError("MultiLineString coordinates are not a list")
            times = _per_coordinate(props.get("coordTimes"), len(coords))
            names = _per_coordinate(props.get("coordNames"), len(coords))
            for line, line_times, line_names in zip(coords, times, names):
                seg = _line_segment(line, line_times, line_names)
                if seg:
                    segments.append(seg)
        elif gtype == "Point":
            wp = coord_to_waypoint(coords, props.get("time"), props.get("name"))
            if wp is not None:
                waypoints.append(wp)

    return Track(
        name=_text(collection.get("name")),
        desc=_text(collection.get("description")),
        author=_text(collection.get("author")),
        segments=tuple(segments),
        waypoints=tuple(waypoints),
    )


class ConversionStrategy:
    """Primary strategy: converter output walked into a Track."""

    name = "geojson"

    def __init__(self, converter: Optional[Converter] = None):
        self.converter = converter if converter is not None else GpxpyConverter()

    def __call__(self, text: str) -> ParseOutcome:
        try:
            return features_to_track(self.converter.convert(text))
        except Exception as e:
            # Converter output is not guaranteed; the XML walk decides the outcome.
            return ParseFailure(self.name, f"{type(e).__name__}: {e}")

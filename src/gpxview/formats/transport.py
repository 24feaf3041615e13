# gpxview/formats/transport.py
"""
Transport codec for crossing the worker-process boundary.

A TransportTrack is a plain dict of str/float/list values:

    {
      "name": ..., "desc": ..., "author": ...,      # only when present
      "tracks": [{"points": [TransportPoint, ...]}, ...],
      "waypoints": [TransportPoint, ...],
    }

    TransportPoint = {"lat": float, "lon": float,
                      "ele": float?, "time": "ISO-8601"?, "name": str?}

Optional fields that are absent are omitted, never written as None, so a
round trip keeps absence and presence exactly.

Also defines the request/response envelopes used by the dispatch pool.
"""

from __future__ import annotations

import datetime as _dt
from typing import Any, Optional

from gpxview.errors import TransportError
from gpxview.model import Track, TrackSegment, Waypoint

TransportTrack = dict[str, Any]

FORMAT_GPX = "gpx"


def format_time(dt: _dt.datetime) -> str:
    """Canonical text for a timestamp; `parse_time` is its exact inverse."""
    return dt.isoformat()


def parse_time(text: str) -> _dt.datetime:
    try:
        return _dt.datetime.fromisoformat(text)
    except (TypeError, ValueError) as e:
        raise TransportError(f"Invalid timestamp in transport payload: {text!r}") from e


# ---------------------------------------------------------------------------
# Track <-> TransportTrack
# ---------------------------------------------------------------------------
def serialize_point(wp: Waypoint) -> dict[str, Any]:
    out: dict[str, Any] = {"lat": wp.lat, "lon": wp.lon}
    if wp.ele is not None:
        out["ele"] = wp.ele
    if wp.time is not None:
        out["time"] = format_time(wp.time)
    if wp.name is not None:
        out["name"] = wp.name
    return out


def deserialize_point(data: Any) -> Waypoint:
    if not isinstance(data, dict):
        raise TransportError(f"Expected a point mapping, got {type(data).__name__}")
    try:
        lat = data["lat"]
        lon = data["lon"]
    except KeyError as e:
        raise TransportError(f"Point is missing {e.args[0]!r}") from e
    time = data.get("time")
    return Waypoint(
        lat=lat,
        lon=lon,
        ele=data.get("ele"),
        time=parse_time(time) if time is not None else None,
        name=data.get("name"),
    )


def serialize(track: Track) -> TransportTrack:
    out: TransportTrack = {}
    for key in ("name", "desc", "author"):
        value = getattr(track, key)
        if value is not None:
            out[key] = value
    out["tracks"] = [
        {"points": [serialize_point(p) for p in seg.points]} for seg in track.segments
    ]
    out["waypoints"] = [serialize_point(p) for p in track.waypoints]
    return out


def _deserialize_segment(data: Any) -> TrackSegment:
    points = data.get("points") if isinstance(data, dict) else None
    if not isinstance(points, list) or not points:
        raise TransportError("Track segment must carry a non-empty point list")
    return TrackSegment(tuple(deserialize_point(p) for p in points))


def deserialize(data: Any) -> Track:
    if not isinstance(data, dict):
        raise TransportError(f"Expected a track mapping, got {type(data).__name__}")
    tracks = data.get("tracks", [])
    waypoints = data.get("waypoints", [])
    if not isinstance(tracks, list) or not isinstance(waypoints, list):
        raise TransportError("'tracks' and 'waypoints' must be lists")
    return Track(
        name=data.get("name"),
        desc=data.get("desc"),
        author=data.get("author"),
        segments=tuple(_deserialize_segment(s) for s in tracks),
        waypoints=tuple(deserialize_point(p) for p in waypoints),
    )


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------
def make_request(request_id: str, text: str, fmt: str = FORMAT_GPX) -> dict[str, str]:
    return {"id": request_id, "text": text, "format": fmt}


def make_result(request_id: str, track: Track) -> dict[str, Any]:
    return {"id": request_id, "result": serialize(track)}


def make_error(request_id: str, message: str) -> dict[str, str]:
    return {"id": request_id, "error": message}


def response_id(response: Any) -> Optional[str]:
    if isinstance(response, dict) and isinstance(response.get("id"), str):
        return response["id"]
    return None

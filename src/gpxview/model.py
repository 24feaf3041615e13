# gpxview/model.py
"""
Normalized track model shared by the parsers, the transport codec and the
statistics engine.

Everything here is immutable: a Track is produced once per document and then
only read.
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Waypoint:
    lat: float
    lon: float
    ele: Optional[float] = None
    time: Optional[_dt.datetime] = None
    name: Optional[str] = None

    @property
    def has_elevation(self) -> bool:
        return self.ele is not None


@dataclass(frozen=True)
class TrackSegment:
    """One continuous run of points (a <trkseg> or a whole <rte>)."""
    points: tuple[Waypoint, ...]

    def __post_init__(self) -> None:
        if not self.points:
            raise ValueError("TrackSegment requires at least one point")

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class Track:
    """
    The normalized result of parsing one GPX document.

    `segments` holds tracks and routes flattened in document order;
    `waypoints` holds the standalone <wpt> points.
    """
    name: Optional[str] = None
    desc: Optional[str] = None
    author: Optional[str] = None
    segments: tuple[TrackSegment, ...] = ()
    waypoints: tuple[Waypoint, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.segments and not self.waypoints

    @property
    def point_count(self) -> int:
        return sum(len(s) for s in self.segments)

# gpxview/analyze/track.py
"""
Track analysis functions for gpxview
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

from gpxview.analyze.geometry import distance
from gpxview.model import Track, TrackSegment, Waypoint

# Profiles longer than this are downsampled to roughly PROFILE_TARGET entries.
PROFILE_THRESHOLD = 5000
PROFILE_TARGET = 2000


@dataclass(frozen=True)
class TrackStats:
    distance: float                 # meters
    elev_gain: float                # meters
    elev_loss: float                # meters
    duration: Optional[float]       # seconds, summed per segment; None if no segment is timed
    avg_speed: Optional[float]      # m/s, None unless duration > 0
    max_ele: Optional[float]
    min_ele: Optional[float]
    points: int = 0
    segments: int = 0


@dataclass(frozen=True)
class ElevationPoint:
    distance: float     # cumulative km from the start of the profile
    elevation: float    # meters
    lat: float
    lon: float


def compute_step_distances(points: Sequence[Waypoint]) -> list[float]:
    """Return the distance (m) between each consecutive pair of points."""
    return [distance(p0, p1) for p0, p1 in zip(points, points[1:])]


def _as_segments(source: Union[Track, TrackSegment, Iterable[TrackSegment]]) -> list[TrackSegment]:
    if isinstance(source, Track):
        return list(source.segments)
    if isinstance(source, TrackSegment):
        return [source]
    return list(source)


def compute_stats(source: Union[Track, TrackSegment, Iterable[TrackSegment]]) -> TrackStats:
    """
    Aggregate statistics over one segment, several segments or a whole Track.

    Distance, elevation change and duration are summed per segment; the gap
    (in space and in time) between the end of one segment and the start of
    the next is not counted. Duration is None only when no segment has both
    a first and a last timestamp.
    """
    segments = _as_segments(source)

    steps: list[float] = []
    climbs: list[float] = []
    descents: list[float] = []
    durations: list[float] = []
    max_ele: Optional[float] = None
    min_ele: Optional[float] = None

    for seg in segments:
        pts = seg.points
        steps.extend(compute_step_distances(pts))

        for p0, p1 in zip(pts, pts[1:]):
            if p0.ele is None or p1.ele is None:
                continue
            diff = p1.ele - p0.ele
            if diff > 0:
                climbs.append(diff)
            else:
                descents.append(-diff)

        for p in pts:
            if p.ele is None:
                continue
            if max_ele is None or p.ele > max_ele:
                max_ele = p.ele
            if min_ele is None or p.ele < min_ele:
                min_ele = p.ele

        first, last = pts[0].time, pts[-1].time
        if first is not None and last is not None:
            durations.append((last - first).total_seconds())

    total = math.fsum(steps)
    duration = math.fsum(durations) if durations else None
    avg_speed = total / duration if duration is not None and duration > 0 else None

    return TrackStats(
        distance=total,
        elev_gain=math.fsum(climbs),
        elev_loss=math.fsum(descents),
        duration=duration,
        avg_speed=avg_speed,
        max_ele=max_ele,
        min_ele=min_ele,
        points=sum(len(s) for s in segments),
        segments=len(segments),
    )


def downsample(profile: list, *, target: int = PROFILE_TARGET) -> list:
    """
    Keep every n-th entry plus the last, with n = ceil(len / target).

    The first and last entries are always kept, and the result never exceeds
    target + 1 entries.
    """
    if len(profile) <= 2:
        return list(profile)
    step = math.ceil(len(profile) / target)
    sampled = profile[:-1:step]
    sampled.append(profile[-1])
    return sampled


def compute_elevation_profile(
        segment: TrackSegment, *,
        threshold: int = PROFILE_THRESHOLD,
        target: int = PROFILE_TARGET,
) -> list[ElevationPoint]:
    """
    Cumulative-distance vs elevation series for one segment.

    Points without elevation still advance the distance but produce no entry.
    Returns [] when no point carries elevation; downsamples when the series has
    more than `threshold` entries.
    """
    pts = segment.points
    if not any(p.has_elevation for p in pts):
        return []

    profile: list[ElevationPoint] = []
    cum_m = 0.0
    for i, p in enumerate(pts):
        if i > 0:
            cum_m += distance(pts[i - 1], p)
        if p.ele is not None:
            profile.append(ElevationPoint(cum_m / 1000.0, p.ele, p.lat, p.lon))

    if len(profile) > threshold:
        profile = downsample(profile, target=target)
    return profile


def compute_track_elevation_profile(
        source: Union[Track, Iterable[TrackSegment]], *,
        threshold: int = PROFILE_THRESHOLD,
        target: int = PROFILE_TARGET,
) -> list[ElevationPoint]:
    """
    One profile for a whole track: each segment's profile in turn, shifted by
    the distance covered by the segments before it.

    Downsampling applies per segment, as in compute_elevation_profile.
    """
    profile: list[ElevationPoint] = []
    offset_m = 0.0
    for seg in _as_segments(source):
        offset_km = offset_m / 1000.0
        for p in compute_elevation_profile(seg, threshold=threshold, target=target):
            profile.append(ElevationPoint(p.distance + offset_km, p.elevation, p.lat, p.lon))
        offset_m += math.fsum(compute_step_distances(seg.points))
    return profile


def analyze_track(track: Track) -> dict:
    """
    Whole-document report: stats over all segments, then one entry per segment.
    """
    return {
        "track": compute_stats(track),
        "segments": [compute_stats(seg) for seg in track.segments],
        "waypoints": len(track.waypoints),
    }

# gpxview/analyze/geometry.py
"""
Great-circle geometry for gpxview.
"""

from haversine import haversine, Unit

from gpxview.model import Waypoint

EARTH_RADIUS_M = 6_371_000.0


def distance(a: Waypoint, b: Waypoint) -> float:
    """Haversine distance in meters between two points."""
    # Unit.RADIANS yields the central angle; scale by our fixed radius.
    angle = haversine((a.lat, a.lon), (b.lat, b.lon), unit=Unit.RADIANS, check=False)
    return angle * EARTH_RADIUS_M

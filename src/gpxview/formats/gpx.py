# gpxview/formats/gpx.py
"""
GPX parsing for gpxview

This module turns GPX document text into the normalized Track model:
- GPX time parsing (ISO-8601, UTC)
- the ElementTree-walking fallback strategy
- the orchestration that tries each strategy in order

Key design principle:
  A parse strategy never raises. It returns either a Track or a ParseFailure
  value, and GpxParser decides what to do next. Only when the last strategy
  has failed does the caller see an exception (MalformedDocumentError).

Matching is by local tag name, so GPX 1.0, GPX 1.1 and un-namespaced
documents are all read the same way.
"""

from __future__ import annotations

import datetime as _dt
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence, Union
from xml.etree import ElementTree as ET

from gpxview.errors import MalformedDocumentError
from gpxview.model import Track, TrackSegment, Waypoint

logger = logging.getLogger(__name__)


def local_name(tag: object) -> str:
    """
    Strip the namespace from an ElementTree tag.

    ElementTree represents namespaced tags internally as
      "{namespace-uri}tag"
    Comments and processing instructions have non-string tags; they map to "".
    """
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def parse_gpx_time(text: str) -> Optional[_dt.datetime]:
    """
    Parse an ISO-8601 timestamp commonly found in GPX <time> nodes.

    Expected examples:
      - "2026-01-02T21:14:44Z"
      - "2026-01-02T21:14:44.123Z"
      - "2026-01-02T21:14:44+00:00"

    Returns a tz-aware UTC datetime, or None if the text is not an instant.
    """
    if not text:
        return None
    s = text.strip()
    if not s:
        return None

    # GPX times commonly use Z for UTC.
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"

    try:
        dt = _dt.datetime.fromisoformat(s)
        # Ensure tz-aware; if naive, assume UTC (conservative for GPX sources)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=_dt.timezone.utc)
        # Instants near year 1 or 9999 may not fit once shifted to UTC.
        return dt.astimezone(_dt.timezone.utc)
    except (ValueError, OverflowError):
        return None


def parse_finite(text: Optional[str]) -> Optional[float]:
    """Parse a decimal number, returning None unless it is finite."""
    if text is None:
        return None
    try:
        value = float(text.strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


# ---------------------------------------------------------------------------
# Strategy results
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ParseFailure:
    """
    Outcome of a strategy that could not produce a Track.

    `malformed` is True when the failure means the XML itself is not
    well-formed, as opposed to a problem with the strategy's machinery.
    """
    strategy: str
    reason: str
    malformed: bool = False


ParseOutcome = Union[Track, ParseFailure]
Strategy = Callable[[str], ParseOutcome]


# ---------------------------------------------------------------------------
# ElementTree fallback strategy
# ---------------------------------------------------------------------------
def _children(elem: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in elem:
        if local_name(child.tag) == name:
            yield child


def _first_child(elem: Optional[ET.Element], name: str) -> Optional[ET.Element]:
    if elem is None:
        return None
    return next(_children(elem, name), None)


def _descendants(elem: ET.Element, name: str) -> Iterator[ET.Element]:
    for node in elem.iter():
        if node is not elem and local_name(node.tag) == name:
            yield node


def _child_text(elem: Optional[ET.Element], name: str) -> Optional[str]:
    child = _first_child(elem, name)
    if child is None or not child.text:
        return None
    return child.text


def read_point(elem: ET.Element) -> Optional[Waypoint]:
    """
    Build a Waypoint from a <trkpt>, <rtept> or <wpt> element.

    Returns None (and logs at debug level) when lat/lon are missing or not
    finite numbers. Elevation and time are kept only when they parse.
    """
    lat = parse_finite(elem.get("lat"))
    lon = parse_finite(elem.get("lon"))
    if lat is None or lon is None:
        logger.debug(
            "Dropping <%s> with lat=%r lon=%r",
            local_name(elem.tag), elem.get("lat"), elem.get("lon"),
        )
        return None

    ele = parse_finite(_child_text(elem, "ele"))
    time_text = _child_text(elem, "time")
    time = parse_gpx_time(time_text) if time_text else None

    return Waypoint(lat=lat, lon=lon, ele=ele, time=time, name=_child_text(elem, "name"))


def _read_points(elems: Iterator[ET.Element]) -> list[Waypoint]:
    points: list[Waypoint] = []
    for elem in elems:
        p = read_point(elem)
        if p is not None:
            points.append(p)
    return points


def _document_text(root: ET.Element, name: str) -> Optional[str]:
    """
    Document-level metadata: a direct child of <gpx> (GPX 1.0) or of
    <gpx><metadata> (GPX 1.1), first match only.
    """
    text = _child_text(root, name)
    if text is None:
        text = _child_text(_first_child(root, "metadata"), name)
    return text


def _document_author(root: ET.Element) -> Optional[str]:
    author = _first_child(_first_child(root, "metadata"), "author")
    if author is not None:
        return _child_text(author, "name")
    # GPX 1.0 has a plain-text <author> on the root
    return _child_text(root, "author")


def walk_gpx(root: ET.Element) -> Track:
    """
    Walk a parsed GPX tree into a Track.

    Tracks and routes are flattened into segments in document order; each
    <trkseg> and each <rte> becomes one segment, and segments left empty
    after dropping invalid points are skipped.
    """
    segments: list[TrackSegment] = []

    for node in root.iter():
        tag = local_name(node.tag)
        if tag == "trk":
            for seg in _descendants(node, "trkseg"):
                points = _read_points(_descendants(seg, "trkpt"))
                if points:
                    segments.append(TrackSegment(tuple(points)))
        elif tag == "rte":
            points = _read_points(_descendants(node, "rtept"))
            if points:
                segments.append(TrackSegment(tuple(points)))

    waypoints = _read_points(_descendants(root, "wpt"))

    return Track(
        name=_document_text(root, "name"),
        desc=_document_text(root, "desc"),
        author=_document_author(root),
        segments=tuple(segments),
        waypoints=tuple(waypoints),
    )


class XmlWalkStrategy:
    """Fallback strategy: read the XML directly with ElementTree."""

    name = "xml"

    def __call__(self, text: str) -> ParseOutcome:
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            return ParseFailure(self.name, f"Error parsing GPX XML: {e}", malformed=True)
        return walk_gpx(root)


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------
class GpxParser:
    """
    Try each strategy in order; the first Track wins.

    The default order is the GeoJSON conversion strategy followed by the
    ElementTree walk. The walk is the correctness backstop: only when it also
    fails is the document reported as malformed.
    """

    def __init__(self, strategies: Optional[Sequence[Strategy]] = None):
        if strategies is None:
            strategies = default_strategies()
        if not strategies:
            raise ValueError("GpxParser requires at least one strategy")
        self.strategies = list(strategies)

    def parse(self, text: str) -> Track:
        failures: list[ParseFailure] = []
        for strategy in self.strategies:
            outcome = strategy(text)
            if isinstance(outcome, Track):
                return outcome
            logger.debug("GPX strategy %s failed: %s", outcome.strategy, outcome.reason)
            failures.append(outcome)

        raise MalformedDocumentError(failures[-1].reason)


def default_strategies(*, use_converter: bool = True) -> list[Strategy]:
    strategies: list[Strategy] = []
    if use_converter:
        # Imported here so the fallback path never needs gpxpy.
        from gpxview.formats.geojson import ConversionStrategy
        strategies.append(ConversionStrategy())
    strategies.append(XmlWalkStrategy())
    return strategies


def parse(text: str, *, use_converter: bool = True) -> Track:
    """
    Parse GPX document text into a Track.

    Raises:
      MalformedDocumentError if the document is not well-formed XML.
    """
    return GpxParser(default_strategies(use_converter=use_converter)).parse(text)


def parse_fallback(text: str) -> Track:
    """Parse with the ElementTree walk only (what the worker processes run)."""
    return GpxParser([XmlWalkStrategy()]).parse(text)


def read_gpx_text(path: Path) -> str:
    """
    Read a GPX file as text.

    Raises:
      OSError, UnicodeDecodeError
    """
    # utf-8-sig drops a leading BOM, which ElementTree rejects in str input.
    return Path(path).read_text(encoding="utf-8-sig")


def parse_file(path: Path, *, use_converter: bool = True) -> Track:
    return parse(read_gpx_text(path), use_converter=use_converter)

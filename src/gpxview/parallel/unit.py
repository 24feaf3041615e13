# gpxview/parallel/unit.py
"""
Worker-process side of the dispatch pool.

Each unit reads request envelopes from its own queue, runs the ElementTree
fallback parser, and writes response envelopes to the shared response queue.
A None request tells the unit to exit.

The GeoJSON conversion strategy is never used here.
"""

from __future__ import annotations

import logging
from typing import Any

from gpxview.errors import GpxViewError
from gpxview.formats.gpx import parse_fallback
from gpxview.formats.transport import FORMAT_GPX, make_error, make_result

logger = logging.getLogger(__name__)


def handle_request(request: dict[str, Any]) -> dict[str, Any]:
    """Turn one request envelope into one response envelope."""
    request_id = request.get("id")
    fmt = request.get("format", FORMAT_GPX)
    if fmt != FORMAT_GPX:
        return make_error(request_id, f"Unsupported format: {fmt!r}")

    text = request.get("text")
    if not isinstance(text, str):
        return make_error(request_id, "Request carries no document text")

    try:
        return make_result(request_id, parse_fallback(text))
    except GpxViewError as e:
        return make_error(request_id, str(e))
    except Exception as e:
        # Untrusted input: report anything else as a per-request error.
        logger.exception("Unexpected failure parsing request %s", request_id)
        return make_error(request_id, f"Parse failed: {type(e).__name__}: {e}")


def serve(requests, responses) -> None:
    """Unit main loop."""
    while True:
        request = requests.get()
        if request is None:
            break
        responses.put(handle_request(request))

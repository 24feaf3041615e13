# gpxview/analyze/batch.py
"""
Batch loading of GPX documents.

Every file succeeds or fails on its own: a batch of N files always yields N
results, and the successful ones are usable whatever happened to the rest.

When a DispatchPool is given, documents are parsed in worker processes. If
the pool cannot be created, a unit dies, a result cannot be decoded, or the
pool goes away while a request is outstanding, that document is parsed
in-process instead.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from gpxview.errors import (
    GpxViewError,
    ParseFailedError,
    PoolTerminatedError,
    TransportError,
    UnitFailureError,
)
from gpxview.formats.gpx import parse, read_gpx_text
from gpxview.model import Track
from gpxview.parallel.pool import DispatchPool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadResult:
    name: str
    track: Optional[Track] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.track is not None


def open_pool(size: Optional[int] = None, *, start_method: Optional[str] = None) -> Optional[DispatchPool]:
    """
    Start a DispatchPool, or return None if worker processes are unavailable
    on this host (callers then parse in-process).
    """
    try:
        return DispatchPool(size, start_method=start_method)
    except (OSError, ImportError, ValueError) as e:
        logger.warning("Worker processes unavailable (%s); parsing in-process", e)
        return None


def _parse_local(name: str, text: str, use_converter: bool) -> LoadResult:
    try:
        return LoadResult(name, track=parse(text, use_converter=use_converter))
    except GpxViewError as e:
        return LoadResult(name, error=str(e))


def _await(name: str, text: str, future: Future, use_converter: bool) -> LoadResult:
    try:
        return LoadResult(name, track=future.result())
    except ParseFailedError as e:
        return LoadResult(name, error=str(e))
    except (UnitFailureError, PoolTerminatedError, TransportError) as e:
        logger.warning("%s: pool request failed (%s); parsing in-process", name, e)
        return _parse_local(name, text, use_converter)


def load_documents(
        documents: Sequence[tuple[str, str]], *,
        pool: Optional[DispatchPool] = None,
        use_converter: bool = True,
) -> list[LoadResult]:
    """
    Parse (name, text) pairs; results come back in input order.
    """
    if pool is None:
        return [_parse_local(name, text, use_converter) for name, text in documents]

    futures = [pool.submit(text) for _, text in documents]
    return [
        _await(name, text, future, use_converter)
        for (name, text), future in zip(documents, futures)
    ]


def load_files(
        paths: Sequence[Path], *,
        pool: Optional[DispatchPool] = None,
        use_converter: bool = True,
) -> list[LoadResult]:
    """Read and parse GPX files; unreadable files become failed results."""
    results: dict[int, LoadResult] = {}
    documents: list[tuple[str, str]] = []
    slots: list[int] = []

    for i, path in enumerate(paths):
        path = Path(path)
        try:
            text = read_gpx_text(path)
        except (OSError, UnicodeDecodeError) as e:
            results[i] = LoadResult(path.name, error=f"Could not read file: {e}")
            continue
        documents.append((path.name, text))
        slots.append(i)

    for i, result in zip(slots, load_documents(documents, pool=pool, use_converter=use_converter)):
        results[i] = result

    return [results[i] for i in range(len(paths))]

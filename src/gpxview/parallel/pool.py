# gpxview/parallel/pool.py
"""
Parallel dispatch pool for gpxview

A fixed set of worker processes ("units"), each running the fallback GPX
parser. Work is assigned round-robin and results come back through the
transport codec.

Request lifecycle
-----------------
  submit()   -> new id, entry added to the pending table, request sent
  collector  -> response matched by id only, entry removed, future resolved
  shutdown() -> every remaining entry removed, future rejected

Responses arrive in any order. A response whose id has no pending entry
(already resolved, or dropped by shutdown) is discarded.

If a unit dies, everything pending on it is rejected with UnitFailureError.
The pool never retries; falling back to in-process parsing is up to the
caller (see gpxview.analyze.batch).
"""

from __future__ import annotations

import itertools
import logging
import multiprocessing
import os
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Optional

from gpxview.errors import (
    ParseFailedError,
    PoolTerminatedError,
    TransportError,
    UnitFailureError,
)
from gpxview.formats.transport import FORMAT_GPX, deserialize, make_request, response_id
from gpxview.model import Track
from gpxview.parallel.unit import serve

logger = logging.getLogger(__name__)

# How often the collector wakes up to check on unit health (seconds).
POLL_INTERVAL = 0.1


def default_pool_size() -> int:
    return os.cpu_count() or 4


@dataclass
class _Pending:
    future: Future
    unit: int


class _Unit:
    """One worker process plus its private request queue."""

    def __init__(self, ctx, index: int, target: Callable, responses):
        self.index = index
        self.requests = ctx.Queue()
        self.process = ctx.Process(
            target=target,
            args=(self.requests, responses),
            name=f"gpxview-unit-{index}",
            daemon=True,
        )
        self.process.start()

    def is_alive(self) -> bool:
        return self.process.is_alive()

    def stop(self, timeout: float) -> None:
        if self.process.is_alive():
            try:
                self.requests.put(None)
            except (OSError, ValueError):
                pass
            self.process.join(timeout)
        if self.process.is_alive():
            self.process.terminate()
            self.process.join(timeout)
        self.requests.cancel_join_thread()
        self.requests.close()


class DispatchPool:
    """
    Parse GPX documents in `size` worker processes.

    Use as a context manager, or call shutdown() explicitly when done.
    """

    def __init__(
            self,
            size: Optional[int] = None, *,
            start_method: Optional[str] = None,
            unit_target: Callable = serve,
            join_timeout: float = 2.0,
    ):
        if size is None:
            size = default_pool_size()
        if size < 1:
            raise ValueError(f"pool size must be at least 1, got {size}")

        ctx = multiprocessing.get_context(start_method)
        self.size = size
        self._join_timeout = join_timeout
        self._ids = itertools.count(1)
        self._request_count = 0
        self._pending: dict[str, _Pending] = {}
        self._lock = threading.Lock()
        self._closed = threading.Event()

        self._responses = ctx.Queue()
        self._units: list[_Unit] = []
        try:
            for i in range(size):
                self._units.append(_Unit(ctx, i, unit_target, self._responses))
        except BaseException:
            for unit in self._units:
                unit.stop(join_timeout)
            raise

        self._collector = threading.Thread(
            target=self._collect, name="gpxview-pool-collector", daemon=True
        )
        self._collector.start()
        logger.debug("Started dispatch pool with %d units", size)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def submit(self, text: str, fmt: str = FORMAT_GPX) -> Future:
        """
        Queue a document for parsing; the returned Future resolves to a Track.

        The Future fails with ParseFailedError (document rejected by the unit),
        UnitFailureError (unit died) or PoolTerminatedError (pool shut down).
        """
        future: Future = Future()
        future.set_running_or_notify_cancel()

        with self._lock:
            if self._closed.is_set():
                future.set_exception(PoolTerminatedError("Pool terminated"))
                return future
            request_id = str(next(self._ids))
            index = self._request_count % self.size
            self._request_count += 1
            unit = self._units[index]
            if not unit.is_alive():
                future.set_exception(
                    UnitFailureError(f"Unit {index} is not running (exit code {unit.process.exitcode})")
                )
                return future
            self._pending[request_id] = _Pending(future, index)

        try:
            unit.requests.put(make_request(request_id, text, fmt))
        except (OSError, ValueError) as e:
            self._reject(request_id, UnitFailureError(f"Could not send to unit {index}: {e}"))
        return future

    def parse(self, text: str) -> Track:
        """Submit and wait."""
        return self.submit(text).result()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def _take(self, request_id: str) -> Optional[_Pending]:
        with self._lock:
            return self._pending.pop(request_id, None)

    def _reject(self, request_id: str, exc: Exception) -> None:
        entry = self._take(request_id)
        if entry is not None:
            entry.future.set_exception(exc)

    def _resolve(self, response: Any) -> None:
        request_id = response_id(response)
        entry = self._take(request_id) if request_id is not None else None
        if entry is None:
            logger.debug("Discarding response with no pending request: %r", request_id)
            return

        if "error" in response:
            entry.future.set_exception(ParseFailedError(str(response["error"])))
            return
        try:
            track = deserialize(response.get("result"))
        except TransportError as e:
            entry.future.set_exception(e)
            return
        entry.future.set_result(track)

    def _check_units(self) -> None:
        dead = {u.index for u in self._units if not u.is_alive()}
        if not dead:
            return
        with self._lock:
            lost = [rid for rid, p in self._pending.items() if p.unit in dead]
        for rid in lost:
            logger.warning("Worker unit died; rejecting request %s", rid)
            self._reject(rid, UnitFailureError("Worker unit exited before responding"))

    def _collect(self) -> None:
        while not self._closed.is_set():
            try:
                response = self._responses.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                self._check_units()
                continue
            except (EOFError, OSError, ValueError):
                # Response queue closed underneath us during shutdown.
                break
            self._resolve(response)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def shutdown(self) -> None:
        """
        Stop every unit and reject every outstanding request.

        Safe to call more than once.
        """
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            pending = list(self._pending.values())
            self._pending.clear()

        for entry in pending:
            entry.future.set_exception(PoolTerminatedError("Pool terminated"))

        self._collector.join(self._join_timeout)
        for unit in self._units:
            unit.stop(self._join_timeout)
        self._responses.cancel_join_thread()
        self._responses.close()
        logger.debug("Dispatch pool shut down (%d requests rejected)", len(pending))

    def __enter__(self) -> "DispatchPool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

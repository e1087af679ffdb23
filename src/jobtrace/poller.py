#!/usr/bin/env python3
"""
Repeated and user-driven pipeline runs.

Results carry a monotonic sequence number; a result is applied only if
nothing newer has been applied, so a slow response never overwrites a
fresher one.
"""

from typing import Callable, Generic, Optional, Tuple, TypeVar
import itertools
import logging
import threading

from .history import HistoryQuery
from .pipeline import RouteResult, TracePipeline

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LatestResult(Generic[T]):
    """Holds the most recent result by request sequence number."""

    def __init__(self):
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._applied_seq = 0
        self._value: Optional[T] = None

    def begin(self) -> int:
        """Issue the sequence number for a new request."""
        with self._lock:
            return next(self._counter)

    def offer(self, seq: int, value: T) -> bool:
        """
        Apply a result unless a newer one was applied already.

        Returns:
            True if the result was applied, False if it was stale
        """
        with self._lock:
            if seq <= self._applied_seq:
                logger.debug(
                    f"Discarding stale result {seq} (applied {self._applied_seq})"
                )
                return False
            self._applied_seq = seq
            self._value = value
            return True

    @property
    def value(self) -> Optional[T]:
        with self._lock:
            return self._value

    @property
    def applied_seq(self) -> int:
        with self._lock:
            return self._applied_seq


class TraceSession:
    """Runs user-confirmed queries; the latest submitted query wins."""

    def __init__(
        self,
        pipeline: TracePipeline,
        on_result: Optional[Callable[[RouteResult], None]] = None,
    ):
        self.pipeline = pipeline
        self.on_result = on_result
        self.latest: LatestResult[RouteResult] = LatestResult()

    def submit(self, query: HistoryQuery) -> Tuple[RouteResult, bool]:
        """
        Run the pipeline for a query.

        Returns:
            The result and whether it was applied (False if a newer
            submission finished first)
        """
        seq = self.latest.begin()
        result = self.pipeline.run(query)
        applied = self.latest.offer(seq, result)
        if applied and self.on_result is not None:
            self.on_result(result)
        return result, applied

    @property
    def current(self) -> Optional[RouteResult]:
        return self.latest.value


class LivePoller:
    """Re-runs the pipeline for one query on an interval, single-flight."""

    def __init__(
        self,
        pipeline: TracePipeline,
        query: HistoryQuery,
        on_result: Callable[[RouteResult], None],
        interval: float = 2.0,
    ):
        self.session = TraceSession(pipeline, on_result)
        self.query = query
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll_once(self) -> RouteResult:
        """Run one iteration synchronously."""
        result, _ = self.session.submit(self.query)
        return result

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception as e:
                # A failing callback must not end the polling loop
                logger.exception(f"Poll iteration failed: {e}")
            # The next run starts only after this one settled
            self._stop.wait(self.interval)

    def start(self) -> None:
        """Start polling in a daemon thread; a no-op while already polling.

        Raises:
            RuntimeError: If a stopped loop is still finishing its last run
        """
        if self._thread is not None and self._thread.is_alive():
            if self._stop.is_set():
                raise RuntimeError("Previous polling loop has not finished yet")
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="jobtrace-poller", daemon=True
        )
        self._thread.start()
        logger.debug(f"Polling {self.query} every {self.interval}s")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Polling loop still running after stop timeout")
            else:
                self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

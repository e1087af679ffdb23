#!/usr/bin/env python3
"""
History-to-distance pipeline: fetch, filter, measure.
"""

from typing import List, Optional
from dataclasses import dataclass, field
from enum import Enum
import logging

from .backend import TrackingBackend, TrackingBackendError
from .config import JobTraceConfig
from .geofence import Geofence
from .geometry import Position, straight_line_distance_km
from .history import (
    FetchStats,
    HistoryQuery,
    HistoryUnavailableError,
    fetch_history,
)
from .routing import ValhallaClient, road_distance_km
from .trace import Trace

logger = logging.getLogger(__name__)


class TraceStatus(Enum):
    """Outcome of one pipeline run."""

    OK = "ok"
    NO_DATA = "no_data"
    HISTORY_UNAVAILABLE = "history_unavailable"

    def __str__(self) -> str:
        return self.value


@dataclass
class RouteResult:
    """Positions and distances derived for one history query."""

    query: HistoryQuery
    status: TraceStatus
    ordered_positions: List[Position] = field(default_factory=list)
    straight_line_distance_km: Optional[float] = None
    road_distance_km: Optional[float] = None
    stats: FetchStats = field(default_factory=FetchStats)

    @property
    def trace(self) -> Trace:
        return Trace(self.ordered_positions)

    def is_ok(self) -> bool:
        return self.status == TraceStatus.OK


class TracePipeline:
    """Runs the fetch, filter and distance stages for a query."""

    def __init__(
        self,
        backend: TrackingBackend,
        router: ValhallaClient,
        config: Optional[JobTraceConfig] = None,
    ):
        self.backend = backend
        self.router = router
        self.config = config or JobTraceConfig()

    def run(self, query: HistoryQuery) -> RouteResult:
        """
        Derive the route result for a query.

        Never raises for backend or routing failures: a failed fetch yields
        HISTORY_UNAVAILABLE, a failed routing call leaves road_distance_km
        unset while keeping the positions.

        Raises:
            ValueError: If the query has an empty identifier
        """
        try:
            fetched = fetch_history(
                self.backend,
                query,
                correlation_key=self.config.correlation_key,
                order_by_time=self.config.order_by_time,
            )
        except HistoryUnavailableError as e:
            logger.error(f"No data for {query.device_id}/{query.correlation_id}: {e}")
            return RouteResult(query=query, status=TraceStatus.HISTORY_UNAVAILABLE)

        positions = fetched.positions
        if not positions:
            logger.warning(
                f"No history found for device {query.device_id} and {query.correlation_id}"
            )
            return RouteResult(
                query=query, status=TraceStatus.NO_DATA, stats=fetched.stats
            )

        straight_km = straight_line_distance_km(positions)
        road_km = road_distance_km(self.router, positions)

        logger.info(
            f"Trace {query.correlation_id}: {len(positions)} points, "
            f"straight line {_format_km(straight_km)}, road {_format_km(road_km)}"
        )
        return RouteResult(
            query=query,
            status=TraceStatus.OK,
            ordered_positions=positions,
            straight_line_distance_km=straight_km,
            road_distance_km=road_km,
            stats=fetched.stats,
        )

    def list_geofences(self) -> List[Geofence]:
        """Geofences of the configured collection, or [] if unavailable."""
        try:
            return self.backend.list_geofences()
        except TrackingBackendError as e:
            logger.error(f"Geofences unavailable: {e}")
            return []


def _format_km(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.2f} km"

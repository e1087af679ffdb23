"""
Module for collecting and logging metrics of a pipeline run.
"""

import logging
from typing import NamedTuple, Optional

from .config import JobTraceConfig
from .pipeline import RouteResult

logger = logging.getLogger(__name__)


class TraceMetrics(NamedTuple):
    """Container for trace metrics data."""

    status: str
    pages: int
    records_seen: int
    records_matched: int
    points: int
    straight_line_km: Optional[float]
    road_km: Optional[float]
    path_km: Optional[float]


def collect_metrics(result: RouteResult) -> TraceMetrics:
    """
    Collect metrics from a route result.

    Args:
        result: RouteResult of one pipeline run

    Returns:
        TraceMetrics containing all collected metrics
    """
    return TraceMetrics(
        status=str(result.status),
        pages=result.stats.pages,
        records_seen=result.stats.records_seen,
        records_matched=result.stats.records_matched,
        points=len(result.ordered_positions),
        straight_line_km=result.straight_line_distance_km,
        road_km=result.road_distance_km,
        path_km=result.trace.path_length_km(),
    )


def _format_optional(value: Optional[float]) -> str:
    return "none" if value is None else f"{value:.3f}"


def log_metrics(metrics: TraceMetrics, config: JobTraceConfig) -> None:
    """
    Log detailed metrics after a pipeline run.

    Args:
        metrics: TraceMetrics of the run
        config: JobTraceConfig containing the metrics flag
    """
    if not config.metrics:
        return

    logger.debug("=== JOBTRACE_METRICS ===")
    logger.debug(f"status={metrics.status}")
    logger.debug(f"history_pages={metrics.pages}")
    logger.debug(f"records_seen={metrics.records_seen}")
    logger.debug(f"records_matched={metrics.records_matched}")
    logger.debug(f"trace_points={metrics.points}")
    logger.debug(f"straight_line_km={_format_optional(metrics.straight_line_km)}")
    logger.debug(f"road_km={_format_optional(metrics.road_km)}")
    logger.debug(f"path_km={_format_optional(metrics.path_km)}")
    logger.debug("=== END_JOBTRACE_METRICS ===")

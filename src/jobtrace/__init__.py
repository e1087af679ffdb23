#!/usr/bin/env python3
"""
Jobtrace - position history and distance tool for tracked job orders.

This package fetches the positions a device reported for one job order
from a location-tracking service, measures straight-line and road-network
distance, and follows live position and geofence events.
"""
import importlib.metadata

__version__ = importlib.metadata.version("jobtrace")

# Import main classes for public API
from .geometry import Position, haversine_distance
from .history import HistoryQuery, HistoryUnavailableError, fetch_history
from .pipeline import RouteResult, TracePipeline, TraceStatus
from .routing import RoutingError, ValhallaClient
from .trace import Trace

__all__ = [
    "Position",
    "haversine_distance",
    "HistoryQuery",
    "HistoryUnavailableError",
    "fetch_history",
    "RouteResult",
    "TracePipeline",
    "TraceStatus",
    "RoutingError",
    "ValhallaClient",
    "Trace",
]

#!/usr/bin/env python3
"""
Export of traces as GPX tracks and GeoJSON feature collections.
"""

from typing import Any, Dict, Iterable, Optional, TextIO
import json
import logging
import gpxpy
import gpxpy.gpx

from .geofence import Geofence
from .pipeline import RouteResult

logger = logging.getLogger(__name__)


def trace_to_gpx(result: RouteResult) -> gpxpy.gpx.GPX:
    """
    Convert the ordered positions of a result into a single-track GPX document.

    Args:
        result: RouteResult whose positions become track points

    Returns:
        gpxpy GPX object with one track and one segment
    """
    gpx_data = gpxpy.gpx.GPX()
    track = gpxpy.gpx.GPXTrack(
        name=f"{result.query.device_id} {result.query.correlation_id}"
    )
    gpx_data.tracks.append(track)

    segment = gpxpy.gpx.GPXTrackSegment()
    track.segments.append(segment)
    for pos in result.ordered_positions:
        segment.points.append(
            gpxpy.gpx.GPXTrackPoint(latitude=pos.latitude, longitude=pos.longitude)
        )

    return gpx_data


def write_gpx(result: RouteResult, file_output: TextIO) -> None:
    """Write a result as GPX XML to a file-like object."""
    file_output.write(trace_to_gpx(result).to_xml())
    logger.debug(f"Wrote GPX track with {len(result.ordered_positions)} points")


def feature_collection(
    result: Optional[RouteResult], geofences: Iterable[Geofence] = ()
) -> Dict[str, Any]:
    """
    Build a GeoJSON FeatureCollection of the trace and the geofences.

    The trace LineString is included only when it has at least two points.
    """
    features = []
    if result is not None and len(result.ordered_positions) >= 2:
        features.append(
            result.trace.to_feature(
                {
                    "deviceId": result.query.device_id,
                    "correlationId": result.query.correlation_id,
                    "straightLineDistanceKm": result.straight_line_distance_km,
                    "roadDistanceKm": result.road_distance_km,
                }
            )
        )
    features.extend(geofence.to_feature() for geofence in geofences)
    return {"type": "FeatureCollection", "features": features}


def write_geojson(
    result: Optional[RouteResult],
    file_output: TextIO,
    geofences: Iterable[Geofence] = (),
) -> None:
    """Write the trace and geofences as a GeoJSON FeatureCollection."""
    collection = feature_collection(result, geofences)
    json.dump(collection, file_output, indent=2)
    logger.debug(f"Wrote GeoJSON with {len(collection['features'])} features")

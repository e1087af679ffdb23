"""
Geometry and distance helpers for job traces.

This module provides the Position type, the haversine great-circle
distance, custom Transverse Mercator projections and conversion of
coordinate lists to Shapely LineString objects.
"""

from typing import List, Optional, Tuple, NamedTuple, Sequence
import math
from shapely.geometry import LineString
import pyproj

# Mean Earth radius in meters
EARTH_RADIUS_M = 6371000.0


class Position(NamedTuple):
    """Represents a geographic position with longitude and latitude."""

    longitude: float
    latitude: float


def haversine_distance(coord1: Position, coord2: Position) -> float:
    """
    Calculate Haversine distance between two coordinates.

    Uses Haversine formula for great circle distance along the Earth's surface.

    Args:
        coord1: First coordinate position
        coord2: Second coordinate position

    Returns:
        Distance in kilometers
    """
    lat1, lon1 = math.radians(coord1.latitude), math.radians(coord1.longitude)
    lat2, lon2 = math.radians(coord2.latitude), math.radians(coord2.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    )
    # Rounding can push a just past 1 for near-antipodal points
    a = min(a, 1.0)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c / 1000


def straight_line_distance_km(positions: Sequence[Position]) -> Optional[float]:
    """Distance from the first to the last position, or None below two points."""
    if len(positions) < 2:
        return None
    return haversine_distance(positions[0], positions[-1])


def calculate_bbox(
    positions: Sequence[Position],
) -> Tuple[float, float, float, float]:
    """
    Calculate the bounding box of a list of positions.

    Returns:
        Tuple of (south, west, north, east) in decimal degrees

    Raises:
        ValueError: If positions is empty
    """
    if not positions:
        raise ValueError("Cannot calculate a bounding box without positions")

    latitudes = [pos.latitude for pos in positions]
    longitudes = [pos.longitude for pos in positions]
    return (min(latitudes), min(longitudes), max(latitudes), max(longitudes))


def create_transverse_mercator_projection(
    bbox: Tuple[float, float, float, float],
) -> pyproj.Proj:
    """
    Create a custom transverse mercator projection centered on the given bounding box.

    Args:
        bbox: Tuple of (south, west, north, east) in decimal degrees

    Returns:
        pyproj.Proj object for the custom projection
    """
    south, west, north, east = bbox

    center_lat = (south + north) / 2.0
    center_lon = (west + east) / 2.0

    proj_string = f"+proj=tmerc +lat_0={center_lat} +lon_0={center_lon} +k=1 +x_0=0 +y_0=0 +datum=WGS84 +units=m +no_defs"
    return pyproj.Proj(proj_string)


def coords_to_polyline(
    coord_tuples: List[Tuple[float, float]], projection: Optional[pyproj.Proj] = None
) -> LineString:
    """
    Convert a list of coordinate tuples to a Shapely LineString.

    Args:
        coord_tuples: List of (longitude, latitude) tuples
        projection: Optional pyproj.Proj object for coordinate transformation.
                   If None, uses lon/lat coordinates directly.

    Returns:
        LineString object in projected coordinates if projection is provided,
        otherwise in geographic coordinates

    Raises:
        ValueError: If coord_tuples is empty or has less than 2 points
    """
    if not coord_tuples or len(coord_tuples) < 2:
        raise ValueError("At least two positions are required to create a LineString.")

    if projection is not None:
        lons = [pos[0] for pos in coord_tuples]
        lats = [pos[1] for pos in coord_tuples]
        x_coords, y_coords = projection(lons, lats)
        return LineString(list(zip(x_coords, y_coords)))

    return LineString(coord_tuples)

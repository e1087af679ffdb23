#!/usr/bin/env python3
"""
Trace data model: the ordered positions a device reported for one job.
"""

from typing import Any, Dict, List, Optional, Tuple
import logging
from shapely.geometry import LineString, mapping

from .geometry import (
    Position,
    calculate_bbox,
    coords_to_polyline,
    create_transverse_mercator_projection,
    straight_line_distance_km,
)

logger = logging.getLogger(__name__)


class Trace:
    """Represents an ordered position trace with derived geometry."""

    def __init__(self, coords: List[Position]):
        """Initializes a Trace object.

        Args:
            coords: Positions in the order the tracking backend returned them.
                May be empty; geometry is only derived from two points up.
        """
        self.coords = coords
        self._linestring: Optional[LineString] = None

    def __len__(self) -> int:
        """Return number of positions in the trace."""
        return len(self.coords)

    def __getitem__(self, index):
        """Allow indexing into positions."""
        return self.coords[index]

    def __iter__(self):
        """Allow iteration over positions."""
        return iter(self.coords)

    def get_bbox(self) -> Tuple[float, float, float, float]:
        """
        Get bounding box for this trace.

        Returns:
            Tuple of (south, west, north, east) in decimal degrees

        Raises:
            ValueError: If the trace is empty
        """
        return calculate_bbox(self.coords)

    def polyline(self) -> List[Tuple[float, float]]:
        """Return the trace as a list of (longitude, latitude) pairs."""
        return [(pos.longitude, pos.latitude) for pos in self.coords]

    @property
    def linestring(self) -> LineString:
        """
        The trace as a LineString in a local Transverse Mercator projection (meters).

        Raises:
            ValueError: If the trace has fewer than two positions
        """
        if self._linestring is None:
            projection = create_transverse_mercator_projection(self.get_bbox())
            self._linestring = coords_to_polyline(self.polyline(), projection)
            logger.debug(
                f"Projected trace of {len(self.coords)} points, length {self._linestring.length:.1f} m"
            )
        return self._linestring

    def path_length_km(self) -> Optional[float]:
        """Length along the polyline in kilometers, or None below two points."""
        if len(self.coords) < 2:
            return None
        return self.linestring.length / 1000

    def straight_line_distance_km(self) -> Optional[float]:
        """Great-circle distance from first to last position in kilometers."""
        return straight_line_distance_km(self.coords)

    def to_feature(self, properties: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Convert the trace to a GeoJSON LineString Feature in lon/lat.

        Raises:
            ValueError: If the trace has fewer than two positions
        """
        geometry = coords_to_polyline(self.polyline())
        return {
            "type": "Feature",
            "geometry": mapping(geometry),
            "properties": dict(properties or {}),
        }

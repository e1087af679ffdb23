#!/usr/bin/env python3
"""Geofence polygons sourced from the tracking backend."""

from typing import Any, Dict, Iterable, List, Optional
from enum import Enum
import logging
from shapely.geometry import Point, Polygon, mapping

from .geometry import Position

logger = logging.getLogger(__name__)


class GeofenceStatus(Enum):
    """Whether the tracked device is currently inside a geofence."""

    UNKNOWN = "unknown"
    INSIDE = "inside"
    EXITED = "exited"

    def __str__(self) -> str:
        return self.value


class Geofence:
    """A polygon geofence with an id and a display status."""

    def __init__(
        self,
        geofence_id: str,
        polygon: Polygon,
        status: GeofenceStatus = GeofenceStatus.UNKNOWN,
    ):
        self.geofence_id = geofence_id
        self.polygon = polygon
        self.status = status

    @classmethod
    def from_rings(
        cls, geofence_id: str, rings: List[List[List[float]]]
    ) -> "Geofence":
        """
        Build a geofence from GeoJSON-style linear rings.

        Args:
            geofence_id: Identifier of the geofence
            rings: Exterior ring followed by optional interior rings,
                each a list of [longitude, latitude] vertices

        Raises:
            ValueError: If no exterior ring is given
        """
        if not rings or not rings[0]:
            raise ValueError(f"Geofence {geofence_id} has no exterior ring")
        exterior = [tuple(vertex[:2]) for vertex in rings[0]]
        holes = [[tuple(vertex[:2]) for vertex in ring] for ring in rings[1:]]
        return cls(geofence_id, Polygon(exterior, holes))

    def contains(self, position: Position) -> bool:
        """Check whether a position lies inside the geofence polygon."""
        return self.polygon.contains(Point(position.longitude, position.latitude))

    def to_feature(self) -> Dict[str, Any]:
        """Convert the geofence to a GeoJSON Polygon Feature."""
        return {
            "type": "Feature",
            "geometry": mapping(self.polygon),
            "properties": {"id": self.geofence_id, "status": str(self.status)},
        }

    def __repr__(self) -> str:
        return f"Geofence({self.geofence_id!r}, status={self.status})"


class GeofenceBoard:
    """Geofences keyed by id, with their live enter/exit status."""

    def __init__(self, geofences: Optional[Iterable[Geofence]] = None):
        self.geofences: Dict[str, Geofence] = {}
        for geofence in geofences or []:
            self.geofences[geofence.geofence_id] = geofence

    def __len__(self) -> int:
        return len(self.geofences)

    def __iter__(self):
        return iter(self.geofences.values())

    def get(self, geofence_id: str) -> Optional[Geofence]:
        return self.geofences.get(geofence_id)

    def apply_transition(self, geofence_id: Optional[str], entered: bool) -> bool:
        """
        Record an enter or exit transition for a geofence.

        Returns:
            True if the geofence is known and its status was updated
        """
        geofence = self.geofences.get(geofence_id) if geofence_id else None
        if geofence is None:
            logger.debug(f"Transition for unknown geofence {geofence_id}")
            return False
        geofence.status = GeofenceStatus.INSIDE if entered else GeofenceStatus.EXITED
        logger.info(f"Geofence {geofence_id}: {geofence.status}")
        return True

    def to_features(self) -> List[Dict[str, Any]]:
        return [geofence.to_feature() for geofence in self.geofences.values()]

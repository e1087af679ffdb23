#!/usr/bin/env python3
"""
Tracking backend adapters.

The pipeline talks to a TrackingBackend. LocationServiceBackend adapts an
Amazon Location Service client (boto3 "location") to that interface; tests
substitute their own backend.
"""

from typing import Any, Dict, List, NamedTuple, Optional, TYPE_CHECKING
from datetime import datetime
import logging
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .geofence import Geofence
from .geometry import Position

if TYPE_CHECKING:
    from .config import JobTraceConfig

logger = logging.getLogger(__name__)


class TrackingBackendError(Exception):
    """Raised when the tracking backend cannot serve a request."""

    pass


class PositionRecord(NamedTuple):
    """A reported position with the backend's metadata."""

    position: Position
    metadata: Dict[str, Any]
    sample_time: Optional[datetime] = None


class HistoryPage(NamedTuple):
    """One page of position history."""

    records: List[PositionRecord]
    next_token: Optional[str] = None


class TrackingBackend:
    """Interface of the location-tracking service."""

    def get_position_history(
        self, device_id: str, next_token: Optional[str] = None
    ) -> HistoryPage:
        """
        Fetch one page of a device's position history.

        Raises:
            TrackingBackendError: On transport or service errors
        """
        raise NotImplementedError

    def list_geofences(self) -> List[Geofence]:
        """
        List all geofences of the configured collection.

        Raises:
            TrackingBackendError: On transport or service errors
        """
        raise NotImplementedError


def _parse_position_record(device_position: Dict[str, Any]) -> PositionRecord:
    """Convert a DevicePositions entry into a PositionRecord."""
    longitude, latitude = device_position["Position"][:2]
    return PositionRecord(
        position=Position(longitude=float(longitude), latitude=float(latitude)),
        metadata=dict(device_position.get("PositionProperties") or {}),
        sample_time=device_position.get("SampleTime"),
    )


class LocationServiceBackend(TrackingBackend):
    """Tracking backend backed by an Amazon Location Service client."""

    def __init__(self, client: Any, tracker_name: str, geofence_collection: str):
        """
        Args:
            client: A boto3 "location" client (or any object with the same methods)
            tracker_name: Tracker holding the device positions
            geofence_collection: Collection holding the geofences
        """
        self.client = client
        self.tracker_name = tracker_name
        self.geofence_collection = geofence_collection

    def get_position_history(
        self, device_id: str, next_token: Optional[str] = None
    ) -> HistoryPage:
        params: Dict[str, Any] = {
            "TrackerName": self.tracker_name,
            "DeviceId": device_id,
        }
        if next_token:
            params["NextToken"] = next_token

        try:
            response = self.client.get_device_position_history(**params)
        except (ClientError, BotoCoreError) as e:
            raise TrackingBackendError(
                f"Position history request for {device_id} failed: {e}"
            ) from e

        records = []
        for device_position in response.get("DevicePositions") or []:
            try:
                records.append(_parse_position_record(device_position))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable position for {device_id}: {e}")

        return HistoryPage(records=records, next_token=response.get("NextToken"))

    def list_geofences(self) -> List[Geofence]:
        geofences = []
        next_token = None

        while True:
            params: Dict[str, Any] = {"CollectionName": self.geofence_collection}
            if next_token:
                params["NextToken"] = next_token
            try:
                response = self.client.list_geofences(**params)
            except (ClientError, BotoCoreError) as e:
                raise TrackingBackendError(
                    f"Listing geofences of {self.geofence_collection} failed: {e}"
                ) from e

            for entry in response.get("Entries") or []:
                geofence_id = entry.get("GeofenceId")
                rings = (entry.get("Geometry") or {}).get("Polygon")
                if not geofence_id or not rings:
                    # Circle geofences have no polygon to draw
                    logger.debug(f"Skipping geofence {geofence_id} without polygon")
                    continue
                try:
                    geofences.append(Geofence.from_rings(geofence_id, rings))
                except ValueError as e:
                    logger.warning(f"Skipping geofence {geofence_id}: {e}")

            next_token = response.get("NextToken")
            if not next_token:
                break

        logger.debug(
            f"Loaded {len(geofences)} geofences from {self.geofence_collection}"
        )
        return geofences


def create_location_client(config: "JobTraceConfig") -> Any:
    """
    Create a boto3 Amazon Location Service client from configuration.

    Credentials come from the environment's default credential chain.
    """
    return boto3.client("location", region_name=config.region)

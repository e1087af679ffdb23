from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from jobtrace.backend import (
    LocationServiceBackend,
    TrackingBackendError,
    create_location_client,
)
from jobtrace.config import JobTraceConfig
from jobtrace.geometry import Position

SAMPLE_TIME = datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)

SQUARE = [[[121.0, 14.5], [121.1, 14.5], [121.1, 14.6], [121.0, 14.6], [121.0, 14.5]]]


def client_error(operation):
    return ClientError(
        {"Error": {"Code": "ResourceNotFoundException", "Message": "not found"}},
        operation,
    )


class TestPositionHistory:

    def test_maps_device_positions(self):
        client = MagicMock()
        client.get_device_position_history.return_value = {
            "DevicePositions": [
                {
                    "DeviceId": "device-1",
                    "Position": [121.01877, 14.540678],
                    "PositionProperties": {"jobOrderId": "JobOrder-1"},
                    "SampleTime": SAMPLE_TIME,
                },
                {"DeviceId": "device-1", "Position": [121.056, 14.55]},
            ],
            "NextToken": "token-2",
        }
        backend = LocationServiceBackend(client, "Tracker", "Fences")

        page = backend.get_position_history("device-1")

        client.get_device_position_history.assert_called_once_with(
            TrackerName="Tracker", DeviceId="device-1"
        )
        assert page.next_token == "token-2"
        assert page.records[0].position == Position(longitude=121.01877, latitude=14.540678)
        assert page.records[0].metadata == {"jobOrderId": "JobOrder-1"}
        assert page.records[0].sample_time == SAMPLE_TIME
        assert page.records[1].metadata == {}
        assert page.records[1].sample_time is None

    def test_passes_continuation_token(self):
        client = MagicMock()
        client.get_device_position_history.return_value = {"DevicePositions": []}
        backend = LocationServiceBackend(client, "Tracker", "Fences")

        page = backend.get_position_history("device-1", "token-2")

        client.get_device_position_history.assert_called_once_with(
            TrackerName="Tracker", DeviceId="device-1", NextToken="token-2"
        )
        assert page.records == []
        assert page.next_token is None

    def test_skips_unreadable_positions(self):
        client = MagicMock()
        client.get_device_position_history.return_value = {
            "DevicePositions": [{"DeviceId": "device-1"}, {"Position": [1.0, 2.0]}]
        }
        backend = LocationServiceBackend(client, "Tracker", "Fences")

        page = backend.get_position_history("device-1")

        assert [r.position for r in page.records] == [Position(longitude=1.0, latitude=2.0)]

    @pytest.mark.parametrize(
        "error",
        [
            client_error("GetDevicePositionHistory"),
            EndpointConnectionError(endpoint_url="https://geo.example"),
        ],
    )
    def test_wraps_client_errors(self, error):
        client = MagicMock()
        client.get_device_position_history.side_effect = error
        backend = LocationServiceBackend(client, "Tracker", "Fences")

        with pytest.raises(TrackingBackendError):
            backend.get_position_history("device-1")


class TestListGeofences:

    def test_follows_pages_and_skips_circles(self):
        client = MagicMock()
        client.list_geofences.side_effect = [
            {
                "Entries": [
                    {"GeofenceId": "warehouse", "Geometry": {"Polygon": SQUARE}, "Status": "ACTIVE"},
                    {"GeofenceId": "circle", "Geometry": {"Circle": {"Center": [1, 1], "Radius": 5}}},
                ],
                "NextToken": "next",
            },
            {"Entries": [{"GeofenceId": "store", "Geometry": {"Polygon": SQUARE}}]},
        ]
        backend = LocationServiceBackend(client, "Tracker", "Fences")

        geofences = backend.list_geofences()

        assert [g.geofence_id for g in geofences] == ["warehouse", "store"]
        assert client.list_geofences.call_args_list[0][1] == {"CollectionName": "Fences"}
        assert client.list_geofences.call_args_list[1][1] == {
            "CollectionName": "Fences",
            "NextToken": "next",
        }

    def test_wraps_client_errors(self):
        client = MagicMock()
        client.list_geofences.side_effect = client_error("ListGeofences")
        backend = LocationServiceBackend(client, "Tracker", "Fences")

        with pytest.raises(TrackingBackendError):
            backend.list_geofences()


@patch("jobtrace.backend.boto3.client")
def test_create_location_client_uses_region(mock_client):
    config = JobTraceConfig(region="ap-southeast-1")

    create_location_client(config)

    mock_client.assert_called_once_with("location", region_name="ap-southeast-1")

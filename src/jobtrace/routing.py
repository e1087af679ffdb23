from typing import Any, Dict, List, Optional, Sequence
import logging
import requests

from .geometry import Position

DEFAULT_API_TIMEOUT = 30
DEFAULT_COSTING = "auto"
VALHALLA_UNITS = "kilometers"

logger = logging.getLogger(__name__)


class RoutingError(Exception):
    """Raised when the routing engine cannot produce a route."""

    pass


def _extract_length(data: Any) -> float:
    """Return trip.summary.length from a Valhalla response, or 0.0 if absent.

    Raises:
        RoutingError: If the length is present but not a number
    """
    if not isinstance(data, dict):
        return 0.0
    trip = data.get("trip")
    summary = trip.get("summary") if isinstance(trip, dict) else None
    length = summary.get("length") if isinstance(summary, dict) else None
    if not length:
        return 0.0
    try:
        return float(length)
    except (TypeError, ValueError) as e:
        raise RoutingError(f"Routing engine returned an invalid length: {length!r}") from e


class ValhallaClient:
    """
    Client for a Valhalla routing engine.

    Converts positions to Valhalla {lat, lon} locations, posts the request
    and returns the route length in kilometers.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_API_TIMEOUT,
        costing: str = DEFAULT_COSTING,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ValueError("Routing engine URL is not set")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.costing = costing
        self.session = session or requests.Session()

    @staticmethod
    def format_locations(positions: Sequence[Position]) -> List[Dict[str, float]]:
        """Convert positions to Valhalla's [{"lat": ..., "lon": ...}] shape."""
        return [{"lat": pos.latitude, "lon": pos.longitude} for pos in positions]

    def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        url = f"{self.base_url}/{endpoint}"
        logger.debug(f"POST {url}")
        try:
            response = self.session.post(url, json=body, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            raise RoutingError(
                f"Routing engine returned {status_code or 'an error'} for {endpoint}: {e}"
            ) from e
        except requests.exceptions.RequestException as e:
            raise RoutingError(f"Routing engine request to {endpoint} failed: {e}") from e
        except ValueError as e:
            raise RoutingError(f"Routing engine returned invalid JSON: {e}") from e

    def trace_route(self, positions: Sequence[Position]) -> float:
        """Map-match an ordered trace onto the road network.

        Calls the trace_route endpoint with map_snap shape matching and
        kilometers as unit.

        Args:
            positions: Ordered positions of the trace

        Returns:
            Length of the matched route in kilometers; 0.0 when the
            response carries no trip.summary.length

        Raises:
            ValueError: If fewer than two positions are given
            RoutingError: On transport, HTTP or decoding errors
        """
        if len(positions) < 2:
            raise ValueError("At least two positions are required to trace a route.")

        body = {
            "shape": self.format_locations(positions),
            "costing": self.costing,
            "shape_match": "map_snap",
            "directions_options": {"units": VALHALLA_UNITS},
        }
        length = _extract_length(self._post("trace_route", body))
        logger.debug(f"Matched route length: {length:.3f} km")
        return length

    def route(self, positions: Sequence[Position]) -> float:
        """Route through the given positions as waypoints.

        Returns:
            Length of the route in kilometers; 0.0 when absent

        Raises:
            ValueError: If fewer than two positions are given
            RoutingError: On transport, HTTP or decoding errors
        """
        if len(positions) < 2:
            raise ValueError("At least two positions are required to compute a route.")

        body = {
            "locations": self.format_locations(positions),
            "costing": self.costing,
            "directions_options": {"units": VALHALLA_UNITS},
        }
        return _extract_length(self._post("route", body))


def road_distance_km(
    router: ValhallaClient, positions: Sequence[Position]
) -> Optional[float]:
    """
    Road-network distance of a trace, or None when it cannot be determined.

    No request is made for fewer than two positions.
    """
    if len(positions) < 2:
        logger.debug("Fewer than two positions, skipping road distance")
        return None
    try:
        return router.trace_route(positions)
    except RoutingError as e:
        logger.warning(f"Road distance unavailable: {e}")
        return None

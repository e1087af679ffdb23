from dataclasses import dataclass
from typing import Mapping, Optional
import os
from dotenv import load_dotenv

ENV_PREFIX = "JOBTRACE_"


@dataclass
class JobTraceConfig:
    """Configuration for the jobtrace pipeline and CLI."""

    region: Optional[str] = None
    tracker_name: str = "MetromartDemoTracker"
    geofence_collection: str = "MetromartDemoGeofenceCollection"
    routing_url: str = "http://localhost:8002"
    socket_url: str = "ws://localhost:4000"
    timeout: float = 30.0
    costing: str = "auto"
    correlation_key: str = "jobOrderId"
    poll_interval: float = 2.0
    order_by_time: bool = False
    log_level: str = "WARNING"
    metrics: bool = False

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True
    ) -> "JobTraceConfig":
        """
        Build a configuration from JOBTRACE_* environment variables.

        Loads a .env file first unless dotenv is False or an explicit
        environ mapping is given. AWS_REGION is used when JOBTRACE_REGION
        is not set.
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        config = cls()

        def get(name: str) -> Optional[str]:
            value = environ.get(ENV_PREFIX + name)
            return value if value else None

        config.region = get("REGION") or environ.get("AWS_REGION") or config.region
        config.tracker_name = get("TRACKER_NAME") or config.tracker_name
        config.geofence_collection = (
            get("GEOFENCE_COLLECTION") or config.geofence_collection
        )
        config.routing_url = get("ROUTING_URL") or config.routing_url
        config.socket_url = get("SOCKET_URL") or config.socket_url
        config.costing = get("COSTING") or config.costing
        config.correlation_key = get("CORRELATION_KEY") or config.correlation_key
        config.log_level = (get("LOG_LEVEL") or config.log_level).upper()

        def get_float(name: str, default: float) -> float:
            value = get(name)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError:
                raise ValueError(
                    f"{ENV_PREFIX}{name} must be a number, got {value!r}"
                ) from None

        config.timeout = get_float("TIMEOUT", config.timeout)
        config.poll_interval = get_float("POLL_INTERVAL", config.poll_interval)
        order_by_time = get("ORDER_BY_TIME")
        if order_by_time is not None:
            config.order_by_time = order_by_time.lower() in ("1", "true", "yes", "on")

        return config

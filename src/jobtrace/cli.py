#!/usr/bin/env python3
"""
Job trace tool.
This script fetches the position history a device reported for one job
order, measures the straight-line and road-network distance of the trace,
and optionally exports it or follows live updates.
"""

from typing import List, Optional
import argparse
import logging
import sys
import threading
from botocore.exceptions import BotoCoreError

from . import __version__
from .backend import LocationServiceBackend, create_location_client
from .config import JobTraceConfig
from .export import write_geojson, write_gpx
from .file_utils import generate_output_filename
from .geofence import Geofence, GeofenceBoard
from .history import HistoryQuery
from .live import LiveStream, LiveView
from .metrics import collect_metrics, log_metrics
from .pipeline import RouteResult, TracePipeline, TraceStatus
from .poller import LivePoller
from .routing import ValhallaClient

# Configure logging
logger = logging.getLogger("jobtrace")

AUTO_FILENAME = ""


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command-line argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Job order trace and distance tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("device_id", type=str, nargs="?", help="Tracked device id")
    parser.add_argument("job_order_id", type=str, nargs="?", help="Job order id")
    parser.add_argument(
        "--routing-url",
        type=str,
        default=None,
        help="Base URL of the Valhalla routing engine (default: from environment or http://localhost:8002)",
    )
    parser.add_argument(
        "--region", type=str, default=None, help="AWS region of the tracker"
    )
    parser.add_argument(
        "--tracker-name", type=str, default=None, help="Name of the position tracker"
    )
    parser.add_argument(
        "--geofence-collection",
        type=str,
        default=None,
        help="Name of the geofence collection",
    )
    parser.add_argument(
        "--correlation-key",
        type=str,
        default=None,
        help="Position metadata key holding the job order id (default: jobOrderId)",
    )
    parser.add_argument(
        "--costing",
        type=str,
        default=None,
        help="Valhalla travel mode, e.g. auto, bicycle, pedestrian (default: auto)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Routing request timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--order-by-time",
        action="store_true",
        help="Sort positions by sample time instead of keeping backend order",
    )
    parser.add_argument(
        "--gpx",
        type=str,
        nargs="?",
        const=AUTO_FILENAME,
        default=None,
        help="Write the trace as GPX (default name: '<device> <job>.gpx')",
    )
    parser.add_argument(
        "--geojson",
        type=str,
        nargs="?",
        const=AUTO_FILENAME,
        default=None,
        help="Write the trace and geofences as GeoJSON (default name: '<device> <job>.geojson')",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Re-run the trace every poll interval until interrupted",
    )
    parser.add_argument(
        "--live",
        action="store_true",
        help="Follow live position and geofence events over the WebSocket",
    )
    parser.add_argument(
        "--socket-url", type=str, default=None, help="WebSocket URL for live events"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set logging level (default: WARNING)",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Output structured metrics after processing",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"jobtrace {__version__}",
    )
    return parser


def build_config(args: argparse.Namespace) -> JobTraceConfig:
    """Environment configuration with command-line overrides applied."""
    config = JobTraceConfig.from_env()

    overrides = {
        "routing_url": args.routing_url,
        "region": args.region,
        "tracker_name": args.tracker_name,
        "geofence_collection": args.geofence_collection,
        "correlation_key": args.correlation_key,
        "costing": args.costing,
        "timeout": args.timeout,
        "socket_url": args.socket_url,
        "log_level": args.log_level,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)
    if args.order_by_time:
        config.order_by_time = True
    if args.metrics:
        config.metrics = True
    return config


def setup_logging(level_name: str) -> None:
    """Setup logging configuration."""
    level = getattr(logging, level_name.upper(), logging.WARNING)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    # Configure the root logger so all modules inherit the configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # Suppress overly verbose third-party logging
    for name in ("urllib3", "requests", "botocore", "boto3", "websocket"):
        logging.getLogger(name).setLevel(logging.WARNING)


def format_km(value: Optional[float]) -> str:
    return "unavailable" if value is None else f"{value:.2f} km"


def print_result(result: RouteResult) -> None:
    """Print the distances of a result the way the dashboard overlay shows them."""
    if result.status == TraceStatus.HISTORY_UNAVAILABLE:
        print(f"History unavailable for device {result.query.device_id}")
        return
    if result.status == TraceStatus.NO_DATA:
        print("No history found for device given IDs.")
        return

    print(f"Trace points: {len(result.ordered_positions)}")
    print(f"Route distance: {format_km(result.road_distance_km)}")
    print(f"Straight-line distance: {format_km(result.straight_line_distance_km)}")


def resolve_output(
    filename: Optional[str], query: HistoryQuery, extension: str
) -> Optional[str]:
    """
    Determine the output filename to use.

    Raises:
        RuntimeError: If auto-generation fails
        ValueError: If the file cannot be created
    """
    if filename is None:
        return None
    if filename != AUTO_FILENAME:
        return filename
    return generate_output_filename(query.device_id, query.correlation_id, extension)


def export_result(
    args: argparse.Namespace, result: RouteResult, geofences: List[Geofence]
) -> None:
    """
    Write the requested GPX and GeoJSON files.

    Raises:
        RuntimeError, ValueError, OSError: If an output file cannot be written
    """
    gpx_filename = resolve_output(args.gpx, result.query, "gpx")
    if gpx_filename is not None:
        with open(gpx_filename, "w", encoding="utf-8") as f:
            write_gpx(result, f)
        print(f"GPX written to {gpx_filename}")

    geojson_filename = resolve_output(args.geojson, result.query, "geojson")
    if geojson_filename is not None:
        with open(geojson_filename, "w", encoding="utf-8") as f:
            write_geojson(result, f, geofences)
        print(f"GeoJSON written to {geojson_filename}")


def follow_live(config: JobTraceConfig, view: LiveView) -> None:
    """Process live events until the connection closes or the user interrupts."""
    stream = LiveStream(config.socket_url, view.dispatcher())
    try:
        stream.run()
    except KeyboardInterrupt:
        pass
    finally:
        stream.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parses command-line arguments, runs the trace pipeline,
    prints the distances and performs the requested exports.
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.device_id or not args.job_order_id:
        parser.print_help()
        return 1

    try:
        config = build_config(args)
    except ValueError as e:
        setup_logging(args.log_level or JobTraceConfig.log_level)
        logger.error(f"Invalid configuration: {e}")
        return 1
    setup_logging(config.log_level)

    query = HistoryQuery(device_id=args.device_id, correlation_id=args.job_order_id)

    try:
        backend = LocationServiceBackend(
            create_location_client(config),
            config.tracker_name,
            config.geofence_collection,
        )
        router = ValhallaClient(
            config.routing_url, timeout=config.timeout, costing=config.costing
        )
    except (BotoCoreError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    pipeline = TracePipeline(backend, router, config)

    result = pipeline.run(query)
    print_result(result)

    geofences: List[Geofence] = []
    if args.geojson is not None or args.live:
        geofences = pipeline.list_geofences()
        logger.info(f"Loaded {len(geofences)} geofences")

    try:
        export_result(args, result, geofences)
    except (RuntimeError, ValueError, OSError) as e:
        logger.error(f"Failed to write output: {e}")
        return 1

    if config.metrics:
        log_metrics(collect_metrics(result), config)

    poller = None
    if args.watch:
        poller = LivePoller(pipeline, query, print_result, config.poll_interval)
        poller.start()

    try:
        if args.live:
            follow_live(config, LiveView(query.device_id, GeofenceBoard(geofences)))
        elif poller is not None:
            threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        if poller is not None:
            poller.stop()

    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Live position and geofence events received over a WebSocket.

Each text frame is a JSON object whose EventType field selects the event
kind. Frames that cannot be decoded are logged and dropped.
"""

from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass, field
from enum import Enum
import json
import logging
import threading
import websocket

from .geofence import GeofenceBoard
from .geometry import Position

logger = logging.getLogger(__name__)


class MalformedEventError(ValueError):
    """Raised when a frame is not a decodable event."""

    pass


class EventKind(Enum):
    """Discriminant of a live event."""

    UPDATE = "UPDATE"
    ENTER = "ENTER"
    EXIT = "EXIT"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "EventKind":
        if isinstance(value, str):
            try:
                kind = cls(value.upper())
            except ValueError:
                return cls.UNKNOWN
            return kind
        return cls.UNKNOWN

    def is_geofence_transition(self) -> bool:
        return self in (EventKind.ENTER, EventKind.EXIT)


@dataclass(frozen=True)
class LiveEvent:
    """A decoded live event."""

    kind: EventKind
    device_id: Optional[str] = None
    position: Optional[Position] = None
    geofence_id: Optional[str] = None
    sample_time: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


def _parse_position(value: Any) -> Optional[Position]:
    if value is None:
        return None
    try:
        longitude, latitude = value[0], value[1]
        return Position(longitude=float(longitude), latitude=float(latitude))
    except (TypeError, ValueError, IndexError, KeyError) as e:
        raise MalformedEventError(f"Invalid Position {value!r}") from e


def decode_event(text: str) -> LiveEvent:
    """
    Decode a JSON text frame into a LiveEvent.

    EventBridge envelopes ({"detail": {...}}) are unwrapped. Frames with a
    missing or unrecognised EventType decode as EventKind.UNKNOWN.

    Raises:
        MalformedEventError: If the frame is not a JSON object, or an UPDATE
            carries no valid position
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedEventError(f"Frame is not JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedEventError(f"Frame is not a JSON object: {type(payload).__name__}")

    if isinstance(payload.get("detail"), dict) and "EventType" not in payload:
        payload = payload["detail"]

    kind = EventKind.parse(payload.get("EventType"))
    position = _parse_position(payload.get("Position"))
    if kind == EventKind.UPDATE and position is None:
        raise MalformedEventError("UPDATE event without Position")

    return LiveEvent(
        kind=kind,
        device_id=payload.get("DeviceId"),
        position=position,
        geofence_id=payload.get("GeofenceId"),
        sample_time=payload.get("SampleTime"),
        raw=payload,
    )


EventHandler = Callable[[LiveEvent], None]


def _log_unknown_event(event: LiveEvent) -> None:
    logger.debug(f"Ignoring event of unknown kind: {event.raw.get('EventType')!r}")


class EventDispatcher:
    """Routes each event kind to exactly one handler."""

    def __init__(
        self,
        on_location_update: EventHandler,
        on_geofence_transition: EventHandler,
        on_unknown: EventHandler = _log_unknown_event,
    ):
        self.handlers: Dict[EventKind, EventHandler] = {
            EventKind.UPDATE: on_location_update,
            EventKind.ENTER: on_geofence_transition,
            EventKind.EXIT: on_geofence_transition,
            EventKind.UNKNOWN: on_unknown,
        }
        missing = set(EventKind) - set(self.handlers)
        if missing:
            raise ValueError(f"No handler for event kinds: {missing}")

    def dispatch(self, event: LiveEvent) -> None:
        self.handlers[event.kind](event)


class LiveView:
    """Latest position of one device and the status of known geofences."""

    def __init__(
        self, device_id: Optional[str] = None, board: Optional[GeofenceBoard] = None
    ):
        self.device_id = device_id
        self.board = board or GeofenceBoard()
        self.latest_position: Optional[Position] = None

    def on_location_update(self, event: LiveEvent) -> None:
        if self.device_id is not None and event.device_id != self.device_id:
            return
        self.latest_position = event.position
        logger.info(f"Device {event.device_id} at {event.position}")

    def on_geofence_transition(self, event: LiveEvent) -> None:
        if self.device_id is not None and event.device_id not in (None, self.device_id):
            return
        self.board.apply_transition(event.geofence_id, event.kind == EventKind.ENTER)

    def dispatcher(self) -> EventDispatcher:
        return EventDispatcher(
            on_location_update=self.on_location_update,
            on_geofence_transition=self.on_geofence_transition,
        )


class LiveStream:
    """A single WebSocket connection delivering live events.

    There is no reconnect: when the connection drops the stream ends.
    Closing does not drain or replay pending frames.
    """

    def __init__(
        self,
        url: str,
        dispatcher: EventDispatcher,
        app_factory: Callable[..., Any] = websocket.WebSocketApp,
    ):
        self.url = url
        self.dispatcher = dispatcher
        self.app_factory = app_factory
        self._app: Optional[Any] = None
        self._thread: Optional[threading.Thread] = None

    def handle_message(self, text: str) -> bool:
        """
        Decode and dispatch one frame.

        Returns:
            True if the frame was dispatched, False if it was dropped
        """
        try:
            event = decode_event(text)
        except MalformedEventError as e:
            logger.warning(f"Dropping malformed frame: {e}")
            return False
        logger.debug(f"Received {event.kind.value} event")
        self.dispatcher.dispatch(event)
        return True

    def _on_open(self, ws) -> None:
        logger.info(f"WebSocket connected: {self.url}")

    def _on_message(self, ws, message) -> None:
        self.handle_message(message)

    def _on_error(self, ws, error) -> None:
        logger.error(f"WebSocket error: {error}")

    def _on_close(self, ws, close_status_code, close_msg) -> None:
        logger.info(f"WebSocket closed ({close_status_code}): {close_msg or ''}")

    def _create_app(self) -> Any:
        if self._app is not None:
            raise RuntimeError("Live stream is already connected")
        self._app = self.app_factory(
            self.url,
            on_open=self._on_open,
            on_message=self._on_message,
            on_error=self._on_error,
            on_close=self._on_close,
        )
        return self._app

    def run(self) -> None:
        """Connect and process frames until the connection closes."""
        app = self._create_app()
        try:
            app.run_forever()
        finally:
            self._app = None

    def start(self) -> None:
        """Connect and process frames on a background thread."""
        app = self._create_app()
        self._thread = threading.Thread(
            target=app.run_forever, name="jobtrace-live", daemon=True
        )
        self._thread.start()

    def close(self) -> None:
        if self._app is not None:
            logger.debug("Closing WebSocket")
            self._app.close()
            self._app = None
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def is_open(self) -> bool:
        return self._app is not None

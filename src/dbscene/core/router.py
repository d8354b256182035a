"""Inbound message routing for the DS100 and QLab endpoints."""

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..common.exceptions import DecodeError, NotFoundError, OutOfRangeError
from ..net.osc import OscArgument, decode_message, format_message
from .cache import PositionCache
from .protocol import parse_coordinate_address, split_coordinates

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Events published by the router"""

    SCENE_CONTROL = "scene_control"
    POSITION = "position"
    REPLY = "reply"


@dataclass
class OscMessage:
    """A decoded OSC message with derived forms used for routing and logging"""

    address: str
    args: List[OscArgument] = field(default_factory=list)

    @property
    def path(self) -> List[str]:
        return self.address.split("/")[1:]

    @property
    def values(self) -> List[Any]:
        return [arg.value for arg in self.args]

    @property
    def text(self) -> str:
        return format_message(self.address, self.values)

    @classmethod
    def from_packet(cls, data: bytes) -> "OscMessage":
        address, args = decode_message(data)
        return cls(address=address, args=args)


@dataclass
class ReplyEvent:
    """A reply observed from either endpoint, keyed by the echoed address"""

    address: str
    status: str = "ok"
    data: Any = None
    workspace_id: Optional[str] = None
    source: str = "console"

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass
class PositionReport:
    """Coordinates reported by the DS100 for one object"""

    mapping: int
    number: int
    x: Optional[float] = None
    y: Optional[float] = None


@dataclass
class SceneCommand:
    """A /dbscene/... control message"""

    action: str
    args: List[Any] = field(default_factory=list)


EventHandler = Callable[[Any], None]


def decode_reply_envelope(message: OscMessage) -> ReplyEvent:
    """Unpack the JSON envelope QLab sends as the first reply argument"""
    if not message.values or not isinstance(message.values[0], str):
        raise DecodeError(f"Reply without JSON envelope: {message.text}")
    try:
        envelope = json.loads(message.values[0])
    except json.JSONDecodeError as e:
        raise DecodeError(f"Reply envelope is not valid JSON: {e}")
    if not isinstance(envelope, dict) or not isinstance(envelope.get("address"), str):
        raise DecodeError(f"Reply envelope has no address: {message.values[0]}")
    return ReplyEvent(
        address=envelope["address"],
        status=str(envelope.get("status", "ok")),
        data=envelope.get("data"),
        workspace_id=envelope.get("workspace_id"),
        source="console",
    )


class MessageRouter:
    """Decodes packets, classifies them and publishes typed events"""

    def __init__(self, cache: Optional[PositionCache] = None):
        self.cache = cache
        self._handlers: Dict[EventType, List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        try:
            self._handlers[event_type].remove(handler)
        except ValueError:
            pass

    def publish(self, event_type: EventType, event: Any) -> None:
        for handler in list(self._handlers[event_type]):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"{event_type.value} handler failed: {e}")

    def _decode(
        self, data: bytes, addr: Tuple[str, int], endpoint: str
    ) -> Optional[OscMessage]:
        try:
            message = OscMessage.from_packet(data)
        except DecodeError as e:
            logger.error(
                f"dbscene: {endpoint} could not interpret incoming message "
                f"from {addr[0]}:{addr[1]}: {e}"
            )
            return None
        logger.debug(f'dbscene: received: "{message.text}" from {addr[0]}:{addr[1]}')
        return message

    # Device endpoint --------------------------------------------------

    def handle_device_packet(self, data: bytes, addr: Tuple[str, int]) -> None:
        """Entry point for datagrams received on the DS100 reply port"""
        message = self._decode(data, addr, "device")
        if message is not None:
            self.route_device_message(message)

    def route_device_message(self, message: OscMessage) -> None:
        root = message.path[0] if message.path else ""
        if root == "dbscene":
            self._route_scene_control(message)
        elif root == "dbaudio1":
            self._route_device_reply(message)
        else:
            logger.error(f"dbscene: device endpoint received an unusable message: {message.text}")

    def _route_scene_control(self, message: OscMessage) -> None:
        action = message.path[1] if len(message.path) > 1 else ""
        if len(message.path) != 2 or action not in ("create", "update"):
            logger.error(f"dbscene: received an unusable scene message: {message.text}")
            return
        self.publish(EventType.SCENE_CONTROL, SceneCommand(action, message.values))

    def _route_device_reply(self, message: OscMessage) -> None:
        coords = parse_coordinate_address(message.address)
        if coords is not None and message.args:
            x, y = split_coordinates(coords, message.values)
            report = PositionReport(coords.mapping, coords.number, x, y)
            self._apply_position(report)
            self.publish(EventType.POSITION, report)

        # Published after the cache write
        self.publish(
            EventType.REPLY,
            ReplyEvent(address=message.address, data=message.values, source="device"),
        )

    def _apply_position(self, report: PositionReport) -> None:
        if self.cache is None:
            return
        try:
            self.cache.apply_position(report.number, report.x, report.y)
        except (NotFoundError, OutOfRangeError) as e:
            logger.debug(f"Ignoring position report: {e}")

    # Console endpoint -------------------------------------------------

    def handle_console_packet(self, data: bytes, addr: Tuple[str, int]) -> None:
        """Entry point for datagrams received on the QLab reply port"""
        message = self._decode(data, addr, "console")
        if message is not None:
            self.route_console_message(message)

    def route_console_message(self, message: OscMessage) -> None:
        if not message.path or message.path[0] != "reply":
            logger.debug(f"Ignoring console message: {message.text}")
            return
        try:
            reply = decode_reply_envelope(message)
        except DecodeError as e:
            logger.error(f"dbscene: console reply could not be decoded: {e}")
            return
        if not reply.ok:
            logger.warning(f"QLab replied {reply.status} to {reply.address}")
        self.publish(EventType.REPLY, reply)

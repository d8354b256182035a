"""UDP endpoints toward the DS100 and QLab."""

import asyncio
import logging
from typing import Any, Callable, Optional, Sequence, Tuple

from ..common.exceptions import TransportError, ValidationError
from .osc import encode_message, format_message

logger = logging.getLogger(__name__)

PacketHandler = Callable[[bytes, Tuple[str, int]], None]


class OscEndpointProtocol(asyncio.DatagramProtocol):
    """Protocol forwarding received datagrams to its endpoint"""

    def __init__(self, endpoint: "OscEndpoint"):
        self.endpoint = endpoint
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport: asyncio.DatagramTransport):
        """Called when the socket is bound"""
        self.transport = transport

    def datagram_received(self, data: bytes, addr):
        """Called when a UDP packet is received"""
        if self.endpoint.on_packet is None:
            return
        try:
            self.endpoint.on_packet(data, addr)
        except Exception as e:
            logger.error(f"{self.endpoint.name}: packet handler failed: {e}")

    def error_received(self, exc: Exception):
        logger.error(f"{self.endpoint.name}: socket error: {exc}")

    def connection_lost(self, exc: Optional[Exception]):
        if exc is not None:
            logger.error(f"{self.endpoint.name}: socket closed due to error: {exc}")
        self.endpoint._on_closed()


class OscEndpoint:
    """One bound UDP socket that receives on a fixed port and sends to one peer"""

    def __init__(
        self,
        name: str,
        remote_host: str,
        remote_port: int,
        listen_port: int,
        on_packet: Optional[PacketHandler] = None,
        listen_host: str = "0.0.0.0",
    ):
        self.name = name
        self.remote_host = remote_host
        self.remote_port = remote_port
        self.listen_host = listen_host
        self.listen_port = listen_port
        self.on_packet = on_packet
        self.transport: Optional[asyncio.DatagramTransport] = None

    @property
    def is_open(self) -> bool:
        return self.transport is not None

    async def start(self) -> None:
        """Bind the receive port"""
        if self.transport is not None:
            return
        loop = asyncio.get_running_loop()
        try:
            self.transport, _ = await loop.create_datagram_endpoint(
                lambda: OscEndpointProtocol(self),
                local_addr=(self.listen_host, self.listen_port),
            )
        except OSError as e:
            logger.error(
                f"{self.name}: failed to bind {self.listen_host}:{self.listen_port}: {e}"
            )
            raise TransportError(f"{self.name}: cannot bind port {self.listen_port}: {e}")
        logger.info(f"{self.name}: listening on {self.listen_host}:{self.listen_port}")

    def stop(self) -> None:
        """Close the socket"""
        if self.transport:
            self.transport.close()
            self.transport = None

    def _on_closed(self) -> None:
        self.transport = None

    def send(self, address: str, args: Sequence[Any] = ()) -> None:
        """Encode and send one OSC message to the peer"""
        if self.transport is None:
            raise TransportError(f"{self.name}: endpoint is not open")
        try:
            packet = encode_message(address, args)
        except ValidationError as e:
            raise TransportError(f"{self.name}: cannot encode {address}: {e}")
        try:
            self.transport.sendto(packet, (self.remote_host, self.remote_port))
        except OSError as e:
            logger.error(f"{self.name}: could not send OSC message: {e}")
            raise TransportError(f"{self.name}: send failed: {e}")
        logger.debug(
            f'dbscene: sent: "{format_message(address, args)}" '
            f"to {self.remote_host}:{self.remote_port}"
        )

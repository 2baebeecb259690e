"""
UDP probe strategy.

Sends a small datagram from an ordinary UDP socket to a destination port that
increases by one with every probe. Routers quote that port back in Time
Exceeded messages; the destination answers with Port Unreachable, which is
the terminal signal of a UDP traceroute.
"""

import socket
import time
from typing import Callable, Optional

from .icmp_codec import EmbeddedHeader, Transport
from .probe_base import ProbeMode, ProbeStrategy, ProbeTransportError
from .raw_socket import create_udp_socket

UDP_BASE_PORT = 33435
DEFAULT_PAYLOAD_SIZE = 32


class UdpProbe(ProbeStrategy):
    """Traceroute with UDP datagrams to unused high ports."""

    mode = ProbeMode.UDP
    transport = Transport.UDP

    def __init__(
        self,
        target: str,
        base_port: int = UDP_BASE_PORT,
        payload_size: int = DEFAULT_PAYLOAD_SIZE,
        send_sock: Optional[socket.socket] = None,
        recv_sock: Optional[socket.socket] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        super().__init__(target, recv_sock, clock)
        self.base_port = base_port
        self._next_port = base_port
        self._payload = b'\x40' * payload_size
        try:
            self._send_sock = send_sock if send_sock is not None else create_udp_socket()
        except Exception:
            self.close()
            raise

    def send(self) -> int:
        port = self._next_port
        self._next_port = port + 1 if port < 0xFFFF else self.base_port
        self._mark_sent()
        try:
            self._send_sock.sendto(self._payload, (self.target, port))
        except OSError as e:
            raise ProbeTransportError(f"UDP probe to {self.target}:{port} failed: {e}") from e
        return port

    def token_matches(self, embedded: EmbeddedHeader, token: int) -> bool:
        return embedded.destination_port == token

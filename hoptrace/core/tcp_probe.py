"""
TCP probe strategy.

Each probe is a fresh non-blocking connect() from a new socket, so the kernel
emits a SYN carrying the probe TTL. Two event sources race for one deadline:

    CONNECTING --connect done / refused--------------> DESTINATION_REACHED
    CONNECTING --ICMP error quoting our local port---> TTL_EXPIRED / *_UNREACHABLE
    CONNECTING --deadline----------------------------> TIMEOUT

A refused connection still proves the destination is alive at the IP layer.
Routers quote the first 8 bytes of the SYN, so errors are correlated on the
TCP source port, i.e. the local port the probe socket is bound to.
"""

import errno
import logging
import os
import select
import socket
import time
from typing import Callable, List, Optional, Tuple

from .classifier import Outcome
from .icmp_codec import EmbeddedHeader, Transport
from .probe_base import ProbeMode, ProbeReply, ProbeStrategy, ProbeTransportError
from .raw_socket import create_tcp_socket

logger = logging.getLogger(__name__)

TCP_BASE_PORT = 80

CONNECT_DONE = frozenset({0, errno.EISCONN, errno.ECONNREFUSED})
CONNECT_PENDING = frozenset({errno.EINPROGRESS, errno.EALREADY, errno.EWOULDBLOCK, errno.EAGAIN})
# The kernel gave up on the SYN; only the raw ICMP socket can say why.
CONNECT_FAILED = frozenset({
    errno.EHOSTUNREACH,
    errno.ENETUNREACH,
    errno.EHOSTDOWN,
    errno.ENETDOWN,
    errno.ETIMEDOUT,
})

_REACHED = "reached"
_PENDING = "pending"
_FAILED = "failed"

SelectFn = Callable[[List, List, List, float], Tuple[List, List, List]]


class TcpProbe(ProbeStrategy):
    """Traceroute with TCP SYNs issued through the kernel's connect()."""

    mode = ProbeMode.TCP
    transport = Transport.TCP

    def __init__(
        self,
        target: str,
        base_port: int = TCP_BASE_PORT,
        increment_port: bool = True,
        recv_sock: Optional[socket.socket] = None,
        socket_factory: Callable[[], socket.socket] = create_tcp_socket,
        select_fn: SelectFn = select.select,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            target: Destination IPv4 address
            base_port: First destination port
            increment_port: Use base_port, base_port + 1, ... instead of a fixed port
            recv_sock: Raw ICMP socket (created when None)
            socket_factory: Returns a non-blocking, bound TCP socket
            select_fn: Readiness wait with select.select's signature
            clock: Monotonic time source in seconds
        """
        super().__init__(target, recv_sock, clock)
        self.base_port = base_port
        self.increment_port = increment_port
        self.destination_port: Optional[int] = None
        self._port = base_port
        self._socket_factory = socket_factory
        self._select = select_fn
        self._connect_errno: Optional[int] = None

    def prepare(self, ttl: int, deadline: float) -> None:
        """Replace the connecting socket; a TCP socket connects only once."""
        if self._send_sock is not None:
            self._send_sock.close()
            self._send_sock = None
        self._send_sock = self._socket_factory()
        super().prepare(ttl, deadline)

    def _next_port(self) -> int:
        port = self._port
        if self.increment_port:
            self._port = port + 1 if port < 0xFFFF else self.base_port
        return port

    def send(self) -> int:
        self.destination_port = self._next_port()
        self._mark_sent()
        self._connect_errno = self._send_sock.connect_ex((self.target, self.destination_port))
        return self._send_sock.getsockname()[1]

    def token_matches(self, embedded: EmbeddedHeader, token: int) -> bool:
        return embedded.source_port == token

    def _connect_state(self, err: int) -> str:
        if err in CONNECT_DONE:
            return _REACHED
        if err in CONNECT_PENDING:
            return _PENDING
        if err in CONNECT_FAILED:
            logger.debug(f"connect to {self.target}:{self.destination_port}: {os.strerror(err)}")
            return _FAILED
        raise ProbeTransportError(
            f"connect to {self.target}:{self.destination_port} failed: {os.strerror(err)}"
        )

    def await_reply(self, token: int, deadline: float) -> ProbeReply:
        expires = self._sent_at + deadline
        state = self._connect_state(self._connect_errno)

        while state != _REACHED:
            remaining = expires - self._clock()
            if remaining <= 0:
                return ProbeReply.timeout()

            # A failed connect stays writable forever; stop watching it.
            watched = [self._send_sock] if state == _PENDING else []
            try:
                readable, writable, errored = self._select(
                    [self._recv_sock], watched, watched, remaining
                )
            except (OSError, ValueError) as e:
                raise ProbeTransportError(f"Waiting for probe replies failed: {e}") from e

            if writable or errored:
                state = self._connect_state(
                    self._send_sock.connect_ex((self.target, self.destination_port))
                )
                if state == _REACHED:
                    break

            if self._recv_sock in readable:
                reply = self._read_reply(token)
                if reply is not None:
                    return reply

        return ProbeReply(Outcome.DESTINATION_REACHED, self.target, self.elapsed())

"""
Probe Strategy base - the contract shared by the ICMP, UDP and TCP probes.

A strategy owns one send-side socket (protocol specific) and one raw ICMP
receive socket that lives as long as the strategy does. One probe is driven as:

    strategy.prepare(ttl, deadline)
    token = strategy.send()
    reply = strategy.await_reply(token, deadline)

The raw ICMP socket sees every ICMP message addressed to the host, so
await_reply() keeps reading until a message is positively correlated with
``token`` or the deadline passes. Anything else is dropped.
"""

import logging
import socket
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from .classifier import Outcome, classify, is_error_type
from .icmp_codec import (
    IP_HEADER_LEN,
    EmbeddedHeader,
    IcmpHeader,
    ShortBufferError,
    Transport,
    decode_embedded_header,
    decode_icmp_header,
)
from .raw_socket import create_icmp_socket, set_ttl

logger = logging.getLogger(__name__)

RECV_BUFFER_SIZE = 1500


class ProbeMode(Enum):
    """Probe protocol selected once per run."""
    ICMP = "icmp"
    TCP = "tcp"
    UDP = "udp"


class ProbeTransportError(Exception):
    """Raised on a transport error that makes further probing pointless."""
    pass


@dataclass(frozen=True)
class ProbeReply:
    """
    Result of one probe.

    Attributes:
        outcome: Classification of the probe
        address: Responding IPv4 address (None on timeout)
        rtt: Round-trip time in seconds (None on timeout)
    """
    outcome: Outcome
    address: Optional[str] = None
    rtt: Optional[float] = None

    @classmethod
    def timeout(cls) -> 'ProbeReply':
        return cls(Outcome.TIMEOUT)


class ProbeStrategy(ABC):
    """
    Abstract probe strategy.

    Subclasses set ``mode`` and ``transport`` and implement prepare(), send()
    and token_matches(). The default await_reply() blocks on the raw ICMP
    socket; TCP overrides it to race the connect against ICMP errors.
    """

    mode: ProbeMode
    transport: Transport

    def __init__(
        self,
        target: str,
        recv_sock: Optional[socket.socket] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            target: Destination IPv4 address (already resolved)
            recv_sock: Raw ICMP socket to listen on (created when None)
            clock: Monotonic time source in seconds
        """
        self.target = target
        self._recv_sock = recv_sock if recv_sock is not None else create_icmp_socket()
        self._send_sock: Optional[socket.socket] = None
        self._clock = clock
        self._sent_at: Optional[float] = None
        self.ttl: Optional[int] = None

    # -- contract ---------------------------------------------------------

    def prepare(self, ttl: int, deadline: float) -> None:
        """Apply ``ttl`` to the send socket and ``deadline`` to the receive socket."""
        self.ttl = ttl
        set_ttl(self._send_sock, ttl)
        self._recv_sock.settimeout(deadline)

    @abstractmethod
    def send(self) -> Any:
        """Emit one probe and return its correlation token."""
        raise NotImplementedError

    @abstractmethod
    def token_matches(self, embedded: EmbeddedHeader, token: Any) -> bool:
        """True if the quoted original datagram is the probe behind ``token``."""
        raise NotImplementedError

    def await_reply(self, token: Any, deadline: float) -> ProbeReply:
        """
        Wait up to ``deadline`` seconds after send() for a correlated reply.

        The remaining budget shrinks as unrelated datagrams are discarded; it
        is never reset.
        """
        expires = self._sent_at + deadline
        while True:
            remaining = expires - self._clock()
            if remaining <= 0:
                return ProbeReply.timeout()
            self._recv_sock.settimeout(remaining)
            try:
                reply = self._read_reply(token)
            except socket.timeout:
                return ProbeReply.timeout()
            if reply is not None:
                return reply

    # -- correlation ------------------------------------------------------

    def match_reply(self, packet: bytes, token: Any) -> Optional[Outcome]:
        """
        Classify ``packet`` (as read from the raw socket) against ``token``.

        Returns:
            Outcome for a datagram caused by this probe, otherwise None
        """
        try:
            header = decode_icmp_header(packet, IP_HEADER_LEN)
            if not is_error_type(header.icmp_type):
                return self.match_direct(header, token)
            embedded = decode_embedded_header(packet, self.transport)
        except ShortBufferError as e:
            logger.debug(f"Ignoring truncated ICMP datagram: {e}")
            return None

        if embedded.protocol != self.transport or embedded.destination != self.target:
            logger.debug(
                f"Ignoring ICMP {header.icmp_type}/{header.code} for "
                f"{embedded.destination} proto {embedded.protocol}"
            )
            return None
        if not self.token_matches(embedded, token):
            logger.debug(f"Ignoring stale ICMP {header.icmp_type}/{header.code} (token {token})")
            return None

        outcome = classify(header.icmp_type, header.code)
        if outcome is None:
            logger.debug(f"Unhandled ICMP {header.icmp_type}/{header.code}")
        return outcome

    def match_direct(self, header: IcmpHeader, token: Any) -> Optional[Outcome]:
        """Classify a non-error ICMP message. Only echo probes expect one."""
        return None

    def _read_reply(self, token: Any) -> Optional[ProbeReply]:
        try:
            packet, address = self._recv_sock.recvfrom(RECV_BUFFER_SIZE)
        except socket.timeout:
            raise
        except OSError as e:
            raise ProbeTransportError(f"Receiving ICMP replies failed: {e}") from e
        outcome = self.match_reply(packet, token)
        if outcome is None:
            return None
        return ProbeReply(outcome, address[0], self.elapsed())

    def elapsed(self) -> float:
        """Seconds since the last send()."""
        return self._clock() - self._sent_at

    def _mark_sent(self) -> None:
        self._sent_at = self._clock()

    # -- lifecycle --------------------------------------------------------

    def close(self) -> None:
        """Close both sockets. A receive blocked on them fails with ProbeTransportError."""
        if self._send_sock is not None and self._send_sock is not self._recv_sock:
            self._send_sock.close()
        self._send_sock = None
        if self._recv_sock is not None:
            self._recv_sock.close()
            self._recv_sock = None

    def __enter__(self) -> 'ProbeStrategy':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

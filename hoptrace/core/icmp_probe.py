"""
ICMP Echo probe strategy.

Sends an 8-byte Echo Request on a raw ICMP socket. The identifier and sequence
stay fixed for the life of the strategy: Echo Replies are matched on the pair
directly, Time Exceeded / Destination Unreachable on the pair quoted in the
embedded original header.
"""

import os
import socket
import time
from typing import Callable, Optional, Tuple

from .classifier import Outcome, classify
from .icmp_codec import (
    ICMP_ECHO_REPLY,
    EmbeddedHeader,
    IcmpHeader,
    Transport,
    encode_echo_request,
)
from .probe_base import ProbeMode, ProbeStrategy, ProbeTransportError

DEFAULT_IDENTIFIER = os.getpid() & 0xFFFF
DEFAULT_SEQUENCE = 1


class IcmpProbe(ProbeStrategy):
    """Traceroute with ICMP Echo Requests (requires a raw socket)."""

    mode = ProbeMode.ICMP
    transport = Transport.ICMP

    def __init__(
        self,
        target: str,
        identifier: Optional[int] = None,
        sequence: int = DEFAULT_SEQUENCE,
        send_sock: Optional[socket.socket] = None,
        recv_sock: Optional[socket.socket] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.identifier = DEFAULT_IDENTIFIER if identifier is None else identifier
        self.sequence = sequence
        self._packet = encode_echo_request(self.identifier, self.sequence)
        super().__init__(target, recv_sock, clock)
        # Echo requests go out on the raw socket replies are read from.
        self._send_sock = send_sock if send_sock is not None else self._recv_sock

    def send(self) -> Tuple[int, int]:
        self._mark_sent()
        try:
            self._send_sock.sendto(self._packet, (self.target, 0))
        except OSError as e:
            raise ProbeTransportError(f"Echo request to {self.target} failed: {e}") from e
        return self.identifier, self.sequence

    def token_matches(self, embedded: EmbeddedHeader, token: Tuple[int, int]) -> bool:
        return (embedded.identifier, embedded.sequence) == token

    def match_direct(self, header: IcmpHeader, token: Tuple[int, int]) -> Optional[Outcome]:
        if header.icmp_type != ICMP_ECHO_REPLY:
            return None
        if (header.identifier, header.sequence) != token:
            return None
        return classify(header.icmp_type, header.code)

"""
Reply Classifier - maps ICMP (type, code) pairs to per-probe outcomes.
"""

from enum import Enum
from typing import Dict, Optional, Tuple

from .icmp_codec import (
    ICMP_DEST_UNREACHABLE,
    ICMP_ECHO_REPLY,
    ICMP_HOST_UNREACHABLE,
    ICMP_NET_UNREACHABLE,
    ICMP_PORT_UNREACHABLE,
    ICMP_PROTO_UNREACHABLE,
    ICMP_TIME_EXCEEDED,
    ICMP_TTL_EXCEEDED_REASSEMBLY,
    ICMP_TTL_EXCEEDED_TRANSIT,
)


class Outcome(Enum):
    """Result of exactly one probe."""
    DESTINATION_REACHED = "destination_reached"
    TIMEOUT = "timeout"
    TTL_EXPIRED = "ttl_expired"
    HOST_UNREACHABLE = "host_unreachable"
    NETWORK_UNREACHABLE = "network_unreachable"
    PROTOCOL_UNREACHABLE = "protocol_unreachable"


_OUTCOMES: Dict[Tuple[int, int], Outcome] = {
    (ICMP_ECHO_REPLY, 0): Outcome.DESTINATION_REACHED,
    (ICMP_TIME_EXCEEDED, ICMP_TTL_EXCEEDED_TRANSIT): Outcome.TTL_EXPIRED,
    (ICMP_TIME_EXCEEDED, ICMP_TTL_EXCEEDED_REASSEMBLY): Outcome.TTL_EXPIRED,
    (ICMP_DEST_UNREACHABLE, ICMP_NET_UNREACHABLE): Outcome.NETWORK_UNREACHABLE,
    (ICMP_DEST_UNREACHABLE, ICMP_HOST_UNREACHABLE): Outcome.HOST_UNREACHABLE,
    (ICMP_DEST_UNREACHABLE, ICMP_PROTO_UNREACHABLE): Outcome.PROTOCOL_UNREACHABLE,
    # The probed port refused the datagram: the destination itself answered.
    (ICMP_DEST_UNREACHABLE, ICMP_PORT_UNREACHABLE): Outcome.DESTINATION_REACHED,
}

_MARKERS = {
    Outcome.TIMEOUT: "*",
    Outcome.HOST_UNREACHABLE: "!H",
    Outcome.NETWORK_UNREACHABLE: "!N",
    Outcome.PROTOCOL_UNREACHABLE: "!P",
}


def classify(icmp_type: int, code: int) -> Optional[Outcome]:
    """
    Classify an ICMP message.

    Returns:
        The matching Outcome, or None for messages that say nothing about a
        probe (echo requests, redirects, unlisted unreachable codes, ...).
        Callers keep waiting on None.
    """
    return _OUTCOMES.get((icmp_type, code))


def is_error_type(icmp_type: int) -> bool:
    """True for ICMP messages that quote the datagram that caused them."""
    return icmp_type in (ICMP_TIME_EXCEEDED, ICMP_DEST_UNREACHABLE)


def outcome_marker(outcome: Outcome) -> str:
    """Symbolic marker shown next to a probe result ('' when none)."""
    return _MARKERS.get(outcome, "")

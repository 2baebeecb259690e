"""
ICMP Header Codec - echo request encoding and ICMP error decoding.

Wire layouts handled here (all fields network byte order):

ICMP Echo Request/Reply::

    +-----------+-----------+-----------------------+
    | Type (8)  | Code (8)  |     Checksum (16)     |
    +-----------+-----------+-----------------------+
    |  Identifier (16)      |  Sequence Number (16) |
    +-----------------------+-----------------------+

ICMP Time Exceeded / Destination Unreachable carry, after their own 8-byte
header, the original IPv4 header followed by the first 8 bytes of the
original transport header. Decoding assumes unoptioned 20-byte IPv4 headers
both outside and inside the error message; no IP options are parsed.

Every decoder works on an explicit byte offset and checks the buffer length
before unpacking. A short buffer raises ShortBufferError, which receive loops
treat as "not ours, keep waiting".
"""

import socket
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .checksum import OptimizedChecksum


# ICMPv4 Type codes
ICMP_ECHO_REPLY = 0
ICMP_DEST_UNREACHABLE = 3
ICMP_ECHO_REQUEST = 8
ICMP_TIME_EXCEEDED = 11

# ICMPv4 Destination Unreachable codes
ICMP_NET_UNREACHABLE = 0
ICMP_HOST_UNREACHABLE = 1
ICMP_PROTO_UNREACHABLE = 2
ICMP_PORT_UNREACHABLE = 3

# ICMPv4 Time Exceeded codes
ICMP_TTL_EXCEEDED_TRANSIT = 0
ICMP_TTL_EXCEEDED_REASSEMBLY = 1

# Header sizes
IP_HEADER_LEN = 20
ICMP_HEADER_LEN = 8
TRANSPORT_HEADER_LEN = 8  # bytes of the original datagram quoted by routers

_ICMP_FORMAT = '!BBHHH'
_PORTS_FORMAT = '!HH'


class Transport(IntEnum):
    """Transport protocols a probe can be carried by (IPv4 protocol numbers)."""
    ICMP = socket.IPPROTO_ICMP
    TCP = socket.IPPROTO_TCP
    UDP = socket.IPPROTO_UDP


class IcmpCodecError(Exception):
    """Raised when an ICMP header cannot be built or parsed."""
    pass


class ShortBufferError(IcmpCodecError):
    """Raised when a received buffer is too short for the requested header."""

    def __init__(self, needed: int, got: int):
        super().__init__(f"Buffer too short: need {needed} bytes, got {got}")
        self.needed = needed
        self.got = got


@dataclass(frozen=True)
class IcmpHeader:
    """Decoded ICMP header; identifier/sequence are host-order integers."""
    icmp_type: int
    code: int
    checksum: int
    identifier: int
    sequence: int


@dataclass(frozen=True)
class EmbeddedHeader:
    """
    Fields of the original datagram quoted inside an ICMP error.

    Attributes:
        protocol: IPv4 protocol number of the original datagram
        destination: Destination address of the original datagram
        source_port: TCP/UDP source port (None for ICMP)
        destination_port: TCP/UDP destination port (None for ICMP)
        identifier: ICMP echo identifier (None for TCP/UDP)
        sequence: ICMP echo sequence (None for TCP/UDP)
    """
    protocol: int
    destination: str
    source_port: Optional[int] = None
    destination_port: Optional[int] = None
    identifier: Optional[int] = None
    sequence: Optional[int] = None


def _require(data: bytes, needed: int) -> None:
    if len(data) < needed:
        raise ShortBufferError(needed, len(data))


def encode_echo_request(identifier: int, sequence: int) -> bytes:
    """
    Build an 8-byte ICMP Echo Request with no payload.

    Args:
        identifier: ICMP identifier (0-65535)
        sequence: ICMP sequence number (0-65535)

    Returns:
        Echo Request header ready for sendto() on a raw ICMP socket

    Raises:
        IcmpCodecError: If identifier or sequence is out of range
    """
    if not 0 <= identifier <= 0xFFFF:
        raise IcmpCodecError(f"Identifier out of range: {identifier}")
    if not 0 <= sequence <= 0xFFFF:
        raise IcmpCodecError(f"Sequence number out of range: {sequence}")

    header = struct.pack(_ICMP_FORMAT, ICMP_ECHO_REQUEST, 0, 0, identifier, sequence)
    checksum = OptimizedChecksum.icmp_checksum(header)
    return struct.pack(_ICMP_FORMAT, ICMP_ECHO_REQUEST, 0, checksum, identifier, sequence)


def decode_icmp_header(data: bytes, offset: int = 0) -> IcmpHeader:
    """
    Decode the ICMP header starting at ``offset``.

    For datagrams read from a raw ICMP socket pass ``offset=IP_HEADER_LEN``
    to skip the outer IPv4 header.

    Raises:
        ShortBufferError: If fewer than offset + 8 bytes are available
    """
    _require(data, offset + ICMP_HEADER_LEN)
    icmp_type, code, checksum, identifier, sequence = struct.unpack_from(
        _ICMP_FORMAT, data, offset
    )
    return IcmpHeader(icmp_type, code, checksum, identifier, sequence)


def decode_embedded_header(
    data: bytes,
    transport: Transport,
    offset: int = IP_HEADER_LEN
) -> EmbeddedHeader:
    """
    Decode the original datagram quoted inside an ICMP error message.

    Args:
        data: Received datagram
        transport: Transport the original probe used
        offset: Position of the outer ICMP header within ``data``

    Returns:
        EmbeddedHeader with the correlation fields for ``transport``

    Raises:
        ShortBufferError: If the quoted headers were truncated
    """
    ip_start = offset + ICMP_HEADER_LEN
    transport_start = ip_start + IP_HEADER_LEN
    _require(data, transport_start + TRANSPORT_HEADER_LEN)

    protocol = data[ip_start + 9]
    destination = socket.inet_ntoa(bytes(data[ip_start + 16:ip_start + 20]))

    if transport == Transport.ICMP:
        _, _, _, identifier, sequence = struct.unpack_from(
            _ICMP_FORMAT, data, transport_start
        )
        return EmbeddedHeader(protocol, destination,
                              identifier=identifier, sequence=sequence)

    source_port, destination_port = struct.unpack_from(
        _PORTS_FORMAT, data, transport_start
    )
    return EmbeddedHeader(protocol, destination,
                          source_port=source_port, destination_port=destination_port)

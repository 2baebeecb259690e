"""
Core module initialization for hoptrace.
"""

from .checksum import (
    OptimizedChecksum,
    ChecksumError,
    icmp_checksum,
)
from .classifier import Outcome, classify, outcome_marker
from .icmp_codec import (
    EmbeddedHeader,
    IcmpHeader,
    ShortBufferError,
    Transport,
    decode_embedded_header,
    decode_icmp_header,
    encode_echo_request,
)
from .probe_base import ProbeMode, ProbeReply, ProbeStrategy, ProbeTransportError
from .raw_socket import ProbeSocketError

__all__ = [
    'OptimizedChecksum',
    'ChecksumError',
    'icmp_checksum',
    'Outcome',
    'classify',
    'outcome_marker',
    'EmbeddedHeader',
    'IcmpHeader',
    'ShortBufferError',
    'Transport',
    'decode_embedded_header',
    'decode_icmp_header',
    'encode_echo_request',
    'ProbeMode',
    'ProbeReply',
    'ProbeStrategy',
    'ProbeTransportError',
    'ProbeSocketError',
]

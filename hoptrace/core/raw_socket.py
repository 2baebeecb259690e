"""
Raw Socket Module - socket creation and per-probe options for hoptrace.

Features:
- Raw ICMP socket creation (shared receive side of every probe strategy)
- Datagram and stream sockets for UDP/TCP probes
- TTL option handling
- Root privilege detection
"""

import os
import socket
import logging
from typing import Callable, TypeVar

# Setup logging
security_logger = logging.getLogger('security')

T = TypeVar('T')


class ProbeSocketError(Exception):
    """Raised when a probe socket cannot be created or configured."""
    pass


def _guarded(action: str, fn: Callable[[], T]) -> T:
    try:
        return fn()
    except PermissionError as e:
        security_logger.error(f"{action} denied: {e}")
        raise ProbeSocketError(
            f"{action} requires raw socket privileges (run as root or grant CAP_NET_RAW)"
        ) from e
    except OSError as e:
        raise ProbeSocketError(f"{action} failed: {e}") from e


def create_icmp_socket() -> socket.socket:
    """
    Create a raw ICMP socket.

    Datagrams read from it include the outer IPv4 header.

    Raises:
        ProbeSocketError: If not permitted or the platform refuses
    """
    return _guarded(
        "Raw ICMP socket creation",
        lambda: socket.socket(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_ICMP),
    )


def create_udp_socket() -> socket.socket:
    """Create an unprivileged UDP socket for sending probes."""
    return _guarded(
        "UDP socket creation",
        lambda: socket.socket(socket.AF_INET, socket.SOCK_DGRAM),
    )


def create_tcp_socket() -> socket.socket:
    """Create a non-blocking TCP socket bound to an ephemeral local port."""
    def build() -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setblocking(False)
            sock.bind(("", 0))
        except OSError:
            sock.close()
            raise
        return sock

    return _guarded("TCP socket creation", build)


def set_ttl(sock: socket.socket, ttl: int) -> None:
    """
    Apply the outbound IP TTL to ``sock``.

    Raises:
        ProbeSocketError: If the option cannot be set
    """
    _guarded(
        f"Setting TTL {ttl}",
        lambda: sock.setsockopt(socket.IPPROTO_IP, socket.IP_TTL, ttl),
    )


def is_root() -> bool:
    """
    Check if running as root.

    Returns:
        bool: True if running with root privileges
    """
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0

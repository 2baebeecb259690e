"""
Network Utilities Module
========================

Name resolution helpers used around the probing core.
"""

import logging
import socket
from functools import lru_cache
from typing import List

logger = logging.getLogger(__name__)


class ResolutionError(Exception):
    """Raised when a destination host cannot be resolved."""
    pass


def is_valid_ip(ip: str) -> bool:
    """Check whether ``ip`` is a dotted-quad IPv4 address."""
    try:
        socket.inet_pton(socket.AF_INET, ip)
        return True
    except (OSError, ValueError):
        return False


def resolve_host(hostname: str) -> str:
    """
    Resolve a hostname to a single IPv4 address.

    Only the first address is probed; additional addresses are reported
    with a warning.

    Raises:
        ResolutionError: If the host has no IPv4 address
    """
    if is_valid_ip(hostname):
        return hostname

    try:
        infos = socket.getaddrinfo(hostname, None, socket.AF_INET, socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as e:
        raise ResolutionError(f"unknown host {hostname}") from e

    addresses: List[str] = []
    for info in infos:
        address = info[4][0]
        if address not in addresses:
            addresses.append(address)

    if not addresses:
        raise ResolutionError(f"unknown host {hostname}")
    if len(addresses) > 1:
        logger.warning(
            f"{hostname} has {len(addresses)} addresses; using {addresses[0]}"
        )
    return addresses[0]


@lru_cache(maxsize=256)
def reverse_lookup(address: str) -> str:
    """Return the PTR name of ``address``, or the address itself."""
    try:
        return socket.gethostbyaddr(address)[0]
    except (socket.herror, socket.gaierror, OSError):
        return address

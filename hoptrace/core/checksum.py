"""
Checksum Module - RFC 1071 ones-complement checksum for ICMP probes.

Provides the Internet checksum used by:
- ICMP Echo Request construction (RFC 792)
- Validation of received ICMP headers

Implementation follows RFC 1071 "Computing the Internet Checksum" exactly.
Words are read in network byte order, which yields the same 16-bit result as
summing the host-order field values and byte-swapping afterwards.
"""

from typing import Union


class ChecksumError(Exception):
    """Raised when checksum calculation fails."""
    pass


def icmp_checksum(icmp_data: bytes) -> int:
    """
    Calculate ICMP checksum.

    Args:
        icmp_data: ICMP message bytes with a zeroed checksum field

    Returns:
        16-bit checksum value
    """
    return OptimizedChecksum.icmp_checksum(icmp_data)


class OptimizedChecksum:
    """
    RFC 1071 compliant ones-complement checksum calculator.

    1. Sum all 16-bit words with a wide accumulator
    2. Fold the sum to 16 bits (propagate carry)
    3. Return ones-complement (bitwise NOT)

    Example:
        >>> OptimizedChecksum.in_cksum(b'\\x08\\x00\\x00\\x00\\x12\\x34\\x00\\x01')
        58826
    """

    @staticmethod
    def _fold_32_to_16(sum32: int) -> int:
        """
        Fold a wide sum to 16 bits with end-around carry.

        An 8-byte ICMP header only ever needs one fold, longer buffers may
        need several.
        """
        while sum32 >> 16:
            sum32 = (sum32 & 0xFFFF) + (sum32 >> 16)
        return sum32 & 0xFFFF

    @staticmethod
    def _ones_complement_16(value: int) -> int:
        """Return the ones-complement of a 16-bit value."""
        return (~value) & 0xFFFF

    @staticmethod
    def in_cksum(data: Union[bytes, bytearray, memoryview], start: int = 0) -> int:
        """
        Compute Internet checksum per RFC 1071.

        Args:
            data: Bytes to checksum
            start: Initial value to add to checksum (default 0)

        Returns:
            16-bit ones-complement checksum. A buffer that already carries a
            correct checksum sums to 0.

        Raises:
            ChecksumError: If data is not a bytes-like object
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise ChecksumError("Data must be bytes")

        data = bytes(data)
        if len(data) % 2:
            # Pad to even length with zero byte
            data += b'\x00'

        total = start
        for i in range(0, len(data), 2):
            total += (data[i] << 8) | data[i + 1]

        total = OptimizedChecksum._fold_32_to_16(total)
        return OptimizedChecksum._ones_complement_16(total)

    @classmethod
    def icmp_checksum(cls, icmp_data: bytes) -> int:
        """
        Calculate ICMP checksum per RFC 792.

        The checksum field in the ICMP header should be zero before
        calculation.
        """
        return cls.in_cksum(icmp_data)

    @classmethod
    def verify(cls, data: bytes) -> bool:
        """Return True if ``data`` (checksum field included) sums to zero."""
        return cls.in_cksum(data) == 0

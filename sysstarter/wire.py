"""Conversion of integers and doubles between host byte order and wire order.

The wire format is big-endian. A value converted with :func:`host2wire` is an
integer whose in-memory (host order) representation equals the big-endian
representation of the original value. On a big-endian host both directions
are the identity.
"""

from __future__ import annotations

import struct
import sys

_SWAPPED_SIZES = frozenset({2, 4, 8})


def _swap(value: int, size: int) -> int:
    if size not in _SWAPPED_SIZES:
        # One-byte values and unusual widths pass through unchanged.
        return value
    limit = 1 << (8 * size)
    if not 0 <= value < limit:
        raise ValueError(f"{value} does not fit in {size} unsigned bytes")
    return int.from_bytes(value.to_bytes(size, "big"), sys.byteorder)


def host2wire(value: int, size: int) -> int:
    """Convert an unsigned integer of ``size`` bytes from host to wire order."""
    return _swap(value, size)


def wire2host(value: int, size: int) -> int:
    """Convert an unsigned integer of ``size`` bytes from wire to host order."""
    return _swap(value, size)


def _swap_double(value: float) -> float:
    (bits,) = struct.unpack("=Q", struct.pack("=d", value))
    (result,) = struct.unpack("=d", struct.pack("=Q", _swap(bits, 8)))
    return result


def host2wire_f(value: float) -> float:
    """Reinterpret a double so that its host-order bytes are big-endian."""
    return _swap_double(value)


def wire2host_f(value: float) -> float:
    """Reverse :func:`host2wire_f`."""
    return _swap_double(value)
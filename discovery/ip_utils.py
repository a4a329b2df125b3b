"""IPv4 address parsing and ordering helpers.

Every function here is total over string input: invalid text yields
``None`` instead of raising, so callers can validate user input as it is
typed without wrapping each call in try/except.

Example:
    >>> from discovery.ip_utils import parse_address, to_ordinal
    >>> addr = parse_address("192.168.1.10")
    >>> to_ordinal(addr)
    3232235786
    >>> parse_address("192.168.1") is None
    True
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Tuple

_OCTET_RE = re.compile(r"[0-9]{1,3}")

MAX_ORDINAL = 0xFFFFFFFF


@dataclass(frozen=True, order=True)
class IPv4Address:
    """An IPv4 address as its 32-bit ordinal plus canonical octets.

    Instances compare and sort by ordinal. ``str()`` renders the canonical
    dotted quad (no leading zeros).
    """

    ordinal: int
    octets: Tuple[int, int, int, int] = field(compare=False)

    def __str__(self) -> str:
        return ".".join(str(o) for o in self.octets)


def parse_octet(text: object) -> Optional[int]:
    """Parse a single octet.

    Accepts only 1-3 ASCII digits with a value of 0-255.

    Examples:
        >>> parse_octet("255")
        255
        >>> parse_octet("256") is None
        True
        >>> parse_octet("") is None
        True
        >>> parse_octet(" 1") is None
        True
    """
    if not isinstance(text, str) or not _OCTET_RE.fullmatch(text):
        return None
    value = int(text)
    if value > 255:
        return None
    return value


def parse_address(text: object) -> Optional[IPv4Address]:
    """Parse a dotted-quad string into an IPv4Address, or None if invalid."""
    if not isinstance(text, str):
        return None
    parts = text.split(".")
    if len(parts) != 4:
        return None

    octets = []
    for part in parts:
        value = parse_octet(part)
        if value is None:
            return None
        octets.append(value)

    o0, o1, o2, o3 = octets
    return IPv4Address(ordinal=(o0 << 24) | (o1 << 16) | (o2 << 8) | o3,
                       octets=(o0, o1, o2, o3))


def to_ordinal(addr: IPv4Address) -> int:
    """Return the 32-bit unsigned ordinal used for host ordering."""
    o0, o1, o2, o3 = addr.octets
    return (o0 << 24) | (o1 << 16) | (o2 << 8) | o3


def from_ordinal(value: int) -> IPv4Address:
    """Build an address from its ordinal.

    Raises:
        ValueError: If value is outside 0..2**32-1.
    """
    if not 0 <= value <= MAX_ORDINAL:
        raise ValueError(f"IPv4 ordinal out of range: {value}")
    octets = ((value >> 24) & 0xFF, (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)
    return IPv4Address(ordinal=value, octets=octets)


__all__ = [
    "IPv4Address",
    "MAX_ORDINAL",
    "from_ordinal",
    "parse_address",
    "parse_octet",
    "to_ordinal",
]

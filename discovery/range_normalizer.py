"""IP range normalization for scan requests.

Turns the raw start/end text of the range input (possibly partial while
the user is still typing) into a validated ``IPRange``. The fill policy
decides the default scan scope:

- missing octets are padded to four positions
- empty octets become ``0``
- an empty last octet of the *end* address becomes ``255``, so an
  unspecified end defaults to the broadcast address of its /24

The companion ``suggest_end_address`` reproduces the interactive
auto-completion of the end address from the start address.
"""
from dataclasses import dataclass
from typing import List, Optional

from config import SCAN, get_logger
from config.exceptions import RangeFailure, RangeSide, RangeValidationError
from discovery.ip_utils import IPv4Address, parse_address, parse_octet

logger = get_logger(__name__)

OCTET_COUNT = 4


@dataclass(frozen=True)
class IPRange:
    """A validated, inclusive IPv4 range with ``start <= end``.

    Build instances with ``normalize_range``; the constructor itself does
    not re-check ordering.
    """
    start: IPv4Address
    end: IPv4Address

    @property
    def size(self) -> int:
        """Number of addresses in the range (inclusive)."""
        return self.end.ordinal - self.start.ordinal + 1

    def contains(self, addr: IPv4Address) -> bool:
        return self.start.ordinal <= addr.ordinal <= self.end.ordinal

    def to_dict(self) -> dict:
        return {"startIp": str(self.start), "endIp": str(self.end)}

    def __str__(self) -> str:
        return f"{self.start} - {self.end}"


def split_octets(raw: Optional[str]) -> List[str]:
    """Split raw address text into exactly four (possibly empty) fragments."""
    parts = (raw or "").split(".")
    while len(parts) < OCTET_COUNT:
        parts.append("")
    return parts[:OCTET_COUNT]


def fill_octets(raw: Optional[str], is_end: bool = False) -> str:
    """Apply the empty-octet fill policy and return dotted-quad text.

    Examples:
        >>> fill_octets("192.168.1")
        '192.168.1.0'
        >>> fill_octets("192.168.1", is_end=True)
        '192.168.1.255'
        >>> fill_octets("10..3.4")
        '10.0.3.4'
    """
    filled = []
    for index, part in enumerate(split_octets(raw)):
        part = part.strip()
        if part == "":
            if is_end and index == OCTET_COUNT - 1:
                part = SCAN.EMPTY_LAST_END_OCTET_FILL
            else:
                part = SCAN.EMPTY_OCTET_FILL
        filled.append(part)
    return ".".join(filled)


def normalize_range(start_raw: Optional[str], end_raw: Optional[str]) -> IPRange:
    """Fill, validate and order-check a raw start/end pair.

    The start address is checked before the end address, and both before
    the ordering check, so an inverted range is only reported for two
    individually valid addresses.

    Raises:
        RangeValidationError: With ``side`` naming the failing address and
            ``reason`` INVALID_ADDRESS, or ``reason`` INVERTED_RANGE.
    """
    start_text = fill_octets(start_raw)
    end_text = fill_octets(end_raw, is_end=True)

    start = parse_address(start_text)
    if start is None:
        raise RangeValidationError(
            "Start IP address is not valid. Empty octets were treated as '0'.",
            reason=RangeFailure.INVALID_ADDRESS,
            side=RangeSide.START,
            start=start_text,
            end=end_text,
        )

    end = parse_address(end_text)
    if end is None:
        raise RangeValidationError(
            "End IP address is not valid. Empty octets were treated as '0' "
            "(or '255' for the last octet).",
            reason=RangeFailure.INVALID_ADDRESS,
            side=RangeSide.END,
            start=start_text,
            end=end_text,
        )

    if start.ordinal > end.ordinal:
        raise RangeValidationError(
            "Start IP cannot be greater than End IP.",
            reason=RangeFailure.INVERTED_RANGE,
            start=start_text,
            end=end_text,
        )

    return IPRange(start=start, end=end)


def suggest_end_address(start_raw: Optional[str], end_raw: Optional[str]) -> str:
    """Auto-complete the end address from the start address.

    Mirrors the start's first three octets into the end address wherever
    they differ (an invalid, non-empty start octet is left alone). When the
    start's first three octets are all valid, the end's last octet is set
    to 255 if it was empty or already 255; a user-entered last octet is
    never overwritten. Returns ``end_raw`` unchanged when the start's
    first octet is still empty or nothing needs to change.

    Examples:
        >>> suggest_end_address("192.168.1", "")
        '192.168.1.255'
        >>> suggest_end_address("10.0.0.5", "10.0.0.20")
        '10.0.0.20'
        >>> suggest_end_address("10.1.2", "10.0.0.20")
        '10.1.2.20'
    """
    start_octets = split_octets(start_raw)
    if start_octets[0].strip() == "":
        return end_raw or ""

    current_end = split_octets(end_raw)
    suggested = list(current_end)
    changed = False

    for i in range(OCTET_COUNT - 1):
        if start_octets[i] != suggested[i]:
            if start_octets[i] == "" or parse_octet(start_octets[i]) is not None:
                suggested[i] = start_octets[i]
                changed = True

    prefix_valid = all(parse_octet(o) is not None for o in start_octets[:OCTET_COUNT - 1])
    if prefix_valid and current_end[3] in ("", SCAN.EMPTY_LAST_END_OCTET_FILL):
        if suggested[3] != SCAN.EMPTY_LAST_END_OCTET_FILL:
            suggested[3] = SCAN.EMPTY_LAST_END_OCTET_FILL
            changed = True

    if not changed:
        return end_raw or ""

    return ".".join(suggested)


def resolve_range(start_raw: Optional[str], end_raw: Optional[str]) -> IPRange:
    """Apply the end-address suggestion, then normalize.

    This is the path an interactive scan request takes: the range input
    shows the suggested end address, and that is what gets scanned.
    """
    suggested_end = suggest_end_address(start_raw, end_raw)
    if suggested_end != (end_raw or ""):
        logger.debug(f"End address auto-completed: {end_raw!r} -> {suggested_end!r}")
    return normalize_range(start_raw, suggested_end)


__all__ = [
    "IPRange",
    "fill_octets",
    "normalize_range",
    "resolve_range",
    "split_octets",
    "suggest_end_address",
]

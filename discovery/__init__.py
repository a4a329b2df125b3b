"""Host discovery components.

This package provides the pieces of the scan core that do not depend on
the application layer: IP address handling, range normalization, the
host store, and the contract with the discovery backend.

Modules:
    ip_utils: Octet/address parsing and ordinals
    range_normalizer: Range validation and end-address auto-suggest
    hosts: Host records and the ordered host store
    backend: Backend commands, event names and scan parameters
    simulated: In-process reference backend
    local_network: Default range from the local interfaces

Example:
    >>> from discovery import resolve_range
    >>> str(resolve_range("192.168.1", ""))
    '192.168.1.0 - 192.168.1.255'
"""
from .backend import DiscoveryBackend, ScanHistoryEntry, ScanParameters
from .hosts import DeviceType, HostRecord, HostStore, LivenessStatus, classify_device
from .ip_utils import IPv4Address, parse_address, parse_octet, to_ordinal
from .local_network import suggest_local_range
from .range_normalizer import (
    IPRange,
    fill_octets,
    normalize_range,
    resolve_range,
    suggest_end_address,
)
from .simulated import SimulatedBackend

__all__ = [
    # Addresses and ranges
    "IPv4Address",
    "IPRange",
    "fill_octets",
    "normalize_range",
    "parse_address",
    "parse_octet",
    "resolve_range",
    "suggest_end_address",
    "suggest_local_range",
    "to_ordinal",
    # Hosts
    "DeviceType",
    "HostRecord",
    "HostStore",
    "LivenessStatus",
    "classify_device",
    # Backend
    "DiscoveryBackend",
    "ScanHistoryEntry",
    "ScanParameters",
    "SimulatedBackend",
]

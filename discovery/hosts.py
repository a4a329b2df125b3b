"""Host records and the host reconciliation store.

The store is the single authoritative view of the hosts discovered by the
current scan session. Discovery events insert or replace records, liveness
events update only the status field, and readers always get the records
back in ascending IP order regardless of the order events arrived in.
"""
import copy
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from config import SCAN, get_logger
from discovery.ip_utils import IPv4Address, parse_address

logger = get_logger(__name__)


class LivenessStatus(Enum):
    """Reachability of a host as reported by monitoring."""
    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


class DeviceType(Enum):
    """Device classification tags reported by the discovery backend."""
    PRINTER = "printer"
    ROUTER_FIREWALL = "router_firewall"
    WINDOWS_PC = "windows_pc"
    MACOS_PC = "macos_pc"
    LINUX_SERVER = "linux_server"
    LINUX_PC = "linux_pc"
    ANDROID_MOBILE = "android_mobile"
    IOS_MOBILE = "ios_mobile"
    GENERIC_DEVICE = "generic_device"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> Optional['DeviceType']:
        """Map a wire tag to a DeviceType; unknown or empty tags map to None."""
        if not tag:
            return None
        try:
            return cls(tag)
        except ValueError:
            logger.debug(f"Unrecognized device type tag: {tag!r}")
            return None


@dataclass
class HostRecord:
    """A discovered host.

    Identity is ``ip_address``; every other field is replaceable.
    """
    ip_address: IPv4Address
    hostname: Optional[str] = None
    mac_address: Optional[str] = None
    os: Optional[str] = None
    open_ports: List[int] = field(default_factory=list)
    device_type: Optional[DeviceType] = None
    status: LivenessStatus = LivenessStatus.UNKNOWN

    @property
    def display_name(self) -> str:
        """Best display name: hostname, else the IP address."""
        return self.hostname or str(self.ip_address)

    def to_dict(self) -> dict:
        """Serialize in the backend's camelCase wire format.

        ``status`` is local to this process and is not sent to the backend.
        """
        data = {"ipAddress": str(self.ip_address)}
        if self.hostname:
            data["hostname"] = self.hostname
        if self.mac_address:
            data["macAddress"] = self.mac_address
        if self.os:
            data["os"] = self.os
        if self.open_ports:
            data["openPorts"] = list(self.open_ports)
        if self.device_type is not None:
            data["deviceType"] = self.device_type.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'HostRecord':
        """Build a record from a ``hostFound`` payload.

        Raises:
            ValueError: If ``ipAddress`` is missing or not a valid IPv4 address.
        """
        address = parse_address(data.get("ipAddress"))
        if address is None:
            raise ValueError(f"Invalid host IP address: {data.get('ipAddress')!r}")
        return cls(
            ip_address=address,
            hostname=data.get("hostname") or None,
            mac_address=data.get("macAddress") or None,
            os=data.get("os") or None,
            open_ports=[int(p) for p in data.get("openPorts") or []],
            device_type=DeviceType.from_tag(data.get("deviceType")),
        )


def classify_device(ip_address: str, hostname: Optional[str],
                    open_ports: Iterable[int]) -> DeviceType:
    """Heuristic device classification from hostname and open ports."""
    name = (hostname or "").lower()
    ports = set(open_ports)

    if "printer" in name or ports & {631, 9100, 515}:
        return DeviceType.PRINTER
    if any(word in name for word in ("router", "gateway", "firewall", "switch")) \
            or ip_address in SCAN.COMMON_GATEWAYS:
        return DeviceType.ROUTER_FIREWALL
    if ports & {135, 137, 138, 139, 445, 3389}:
        return DeviceType.WINDOWS_PC
    if any(word in name for word in ("macbook", "imac", "apple")) \
            or (ports & {22, 548, 445} and "linux" not in name):
        return DeviceType.MACOS_PC
    if 22 in ports:
        if any(word in name for word in ("server", "nas", "centos", "debian")) \
                or ports & {5000, 5001, 8080, 8000, 3000}:
            return DeviceType.LINUX_SERVER
        return DeviceType.LINUX_PC
    if "android" in name:
        return DeviceType.ANDROID_MOBILE
    if "iphone" in name or "ipad" in name:
        return DeviceType.IOS_MOBILE
    return DeviceType.GENERIC_DEVICE


class HostStore:
    """Ordered, de-duplicated set of discovered hosts keyed by IP ordinal.

    All mutation goes through the session controller's event handlers.
    Readers receive copies, never references into the store.
    """

    def __init__(self):
        self._hosts: Dict[int, HostRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._hosts)

    def __contains__(self, ip_address: object) -> bool:
        ordinal = self._ordinal_of(ip_address)
        if ordinal is None:
            return False
        with self._lock:
            return ordinal in self._hosts

    @staticmethod
    def _ordinal_of(ip_address: object) -> Optional[int]:
        if isinstance(ip_address, IPv4Address):
            return ip_address.ordinal
        addr = parse_address(ip_address)
        return addr.ordinal if addr else None

    def reset(self) -> None:
        """Remove every record. Called once per scan start."""
        with self._lock:
            count = len(self._hosts)
            self._hosts.clear()
        logger.debug(f"Host store reset ({count} records dropped)")

    def apply_discovered(self, record: HostRecord,
                         default_status: LivenessStatus = LivenessStatus.UNKNOWN) -> bool:
        """Insert a new host or replace an existing one.

        A replacement takes every field from ``record`` except the liveness
        status, which is kept. Two events for the same IP are last-write-wins.

        Args:
            record: The discovered host.
            default_status: Status given to a newly inserted host.

        Returns:
            True if the host was new, False if an existing record was replaced.
        """
        incoming = copy.deepcopy(record)
        key = incoming.ip_address.ordinal

        with self._lock:
            existing = self._hosts.get(key)
            if existing is None:
                incoming.status = default_status
                self._hosts[key] = incoming
                return True

            incoming.status = existing.status
            self._hosts[key] = incoming

        logger.debug(f"Replaced host record for {incoming.ip_address}")
        return False

    def apply_liveness(self, ip_address: str, is_online: bool) -> bool:
        """Update the liveness status of a known host.

        Returns:
            False if the IP is not in the store (a backend/frontend desync);
            no record is created in that case.
        """
        ordinal = self._ordinal_of(ip_address)
        with self._lock:
            record = self._hosts.get(ordinal) if ordinal is not None else None
            if record is None:
                logger.warning(f"Received status update for IP not in current list: {ip_address}")
                return False
            record.status = LivenessStatus.ONLINE if is_online else LivenessStatus.OFFLINE
        return True

    def mark_all(self, status: LivenessStatus) -> None:
        """Set every host's liveness status."""
        with self._lock:
            for record in self._hosts.values():
                record.status = status

    def get(self, ip_address: object) -> Optional[HostRecord]:
        ordinal = self._ordinal_of(ip_address)
        with self._lock:
            record = self._hosts.get(ordinal) if ordinal is not None else None
            return copy.deepcopy(record) if record else None

    def hosts(self) -> List[HostRecord]:
        """All hosts in ascending IP order."""
        with self._lock:
            return [copy.deepcopy(self._hosts[k]) for k in sorted(self._hosts)]

    def filter(self, term: str) -> List[HostRecord]:
        """Case-insensitive substring match over IP, hostname and MAC address.

        The result keeps ascending IP order. An empty term matches everything.
        """
        needle = (term or "").lower()
        if not needle:
            return self.hosts()

        return [
            host for host in self.hosts()
            if needle in str(host.ip_address)
            or needle in (host.hostname or "").lower()
            or needle in (host.mac_address or "").lower()
        ]

    def status_counts(self) -> Dict[LivenessStatus, int]:
        """Count hosts per liveness status."""
        counts = {status: 0 for status in LivenessStatus}
        with self._lock:
            for record in self._hosts.values():
                counts[record.status] += 1
        return counts


__all__ = [
    "DeviceType",
    "HostRecord",
    "HostStore",
    "LivenessStatus",
    "classify_device",
]

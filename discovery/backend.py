"""Contract between the scan core and the discovery/monitoring backend.

The backend does the actual probing. The core talks to it through five
commands (``DiscoveryBackend``) and listens to four pushed events, which
the backend reports through an ``emit(name, payload)`` callable supplied
by the application (see ``app.events.EventBus.backend_emitter``):

==================  =====================================================
Event name          Payload
==================  =====================================================
``hostFound``       host dict in wire format (``HostRecord.to_dict``)
``scanComplete``    bool ``success``; exactly one per scan, always last
``scanError``       str message; optional, before ``scanComplete``
``hostStatusUpdate`` ``{"ipAddress": str, "isOnline": bool}``
==================  =====================================================
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Sequence, Tuple

from discovery.hosts import HostRecord
from discovery.range_normalizer import IPRange, normalize_range

# Pushed event names
HOST_FOUND = "hostFound"
SCAN_COMPLETE = "scanComplete"
SCAN_ERROR = "scanError"
HOST_STATUS_UPDATE = "hostStatusUpdate"

EVENT_NAMES = (HOST_FOUND, SCAN_COMPLETE, SCAN_ERROR, HOST_STATUS_UPDATE)

# Callable the backend uses to push events
EventEmitter = Callable[[str, Any], None]


@dataclass(frozen=True)
class ScanParameters:
    """Everything the backend needs to run one scan.

    Built fresh for each request from a validated range and a settings
    snapshot; immutable once handed to the backend.
    """
    ip_range: IPRange
    service_ports: Tuple[int, ...]
    hidden_host_discovery_enabled: bool = False
    hidden_host_ports: Tuple[int, ...] = ()

    def to_dict(self) -> dict:
        return {
            "startIp": str(self.ip_range.start),
            "endIp": str(self.ip_range.end),
            "ports": list(self.service_ports),
            "searchHiddenHosts": self.hidden_host_discovery_enabled,
            "hiddenHostsPorts": list(self.hidden_host_ports),
        }


@dataclass(frozen=True)
class ScanHistoryEntry:
    """A previously scanned range."""
    ip_range: IPRange
    timestamp: datetime

    @property
    def start_ip(self) -> str:
        return str(self.ip_range.start)

    @property
    def end_ip(self) -> str:
        return str(self.ip_range.end)

    def to_dict(self) -> dict:
        return {
            "startIp": self.start_ip,
            "endIp": self.end_ip,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ScanHistoryEntry':
        """Build an entry from the wire format.

        The range is validated exactly like a live scan request.

        Raises:
            RangeValidationError: If the stored range does not validate.
            ValueError: If the timestamp cannot be parsed.
        """
        ip_range = normalize_range(data.get("startIp"), data.get("endIp"))
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        elif not isinstance(timestamp, datetime):
            raise ValueError(f"Invalid history timestamp: {timestamp!r}")
        return cls(ip_range=ip_range, timestamp=timestamp)


class DiscoveryBackend(ABC):
    """Commands the scan core issues to the discovery backend.

    Every command blocks until the backend acknowledges it. A rejected
    command raises ``config.exceptions.BackendCommandError``.
    """

    @abstractmethod
    def start_scan(self, params: ScanParameters) -> None:
        """Begin streaming discovery events for ``params.ip_range``."""

    @abstractmethod
    def start_monitoring(self, hosts: Sequence[HostRecord],
                         hidden_host_discovery_enabled: bool,
                         hidden_host_ports: Sequence[int]) -> None:
        """Begin continuous liveness polling of ``hosts``."""

    @abstractmethod
    def stop_monitoring(self) -> None:
        """Stop liveness polling. Stopping an inactive monitor is not an error."""

    @abstractmethod
    def is_monitoring_active(self) -> bool:
        """Whether liveness polling is currently running."""

    @abstractmethod
    def get_scan_history(self) -> List[ScanHistoryEntry]:
        """Up to the 10 most recent scans, newest first."""


__all__ = [
    "DiscoveryBackend",
    "EVENT_NAMES",
    "EventEmitter",
    "HOST_FOUND",
    "HOST_STATUS_UPDATE",
    "SCAN_COMPLETE",
    "SCAN_ERROR",
    "ScanHistoryEntry",
    "ScanParameters",
]

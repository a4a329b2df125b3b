"""Simulated discovery backend.

Replays a fixed table of hosts as a streaming scan and runs a liveness
polling loop over them, exactly following the backend event contract in
``discovery.backend``. Used by the console entry point and the integration
tests; a real probing backend plugs into the same interface.
"""
import random
import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from config import INTERVALS, get_logger
from config.exceptions import BackendCommandError, StorageError
from discovery.backend import (
    HOST_FOUND,
    HOST_STATUS_UPDATE,
    SCAN_COMPLETE,
    SCAN_ERROR,
    DiscoveryBackend,
    EventEmitter,
    ScanHistoryEntry,
    ScanParameters,
)
from discovery.hosts import HostRecord, classify_device
from discovery.ip_utils import parse_address

logger = get_logger(__name__)


DEFAULT_HOSTS: Tuple[dict, ...] = (
    {"ipAddress": "192.168.1.1", "hostname": "router.local", "macAddress": "00:1A:2B:3C:4D:5E",
     "os": "RouterOS", "openPorts": [80, 443, 53]},
    {"ipAddress": "192.168.1.100", "hostname": "my-desktop.local", "macAddress": "A1:B2:C3:D4:E5:F6",
     "os": "Windows 11", "openPorts": [3389, 8080]},
    {"ipAddress": "192.168.1.101", "hostname": "fileserver.lan", "macAddress": "12:34:56:78:9A:BC",
     "os": "Linux (Ubuntu Server)", "openPorts": [22, 445, 80, 443]},
    {"ipAddress": "192.168.1.102", "hostname": "iphone-of-user.local", "macAddress": "FE:DC:BA:98:76:54",
     "os": "iOS", "openPorts": []},
    {"ipAddress": "192.168.1.105", "hostname": "printer.corp", "macAddress": "AA:BB:CC:DD:EE:FF",
     "os": "Printer OS", "openPorts": [80, 515, 631, 9100]},
    {"ipAddress": "10.0.0.1", "hostname": "gateway.corp", "macAddress": "B1:C2:D3:E4:F5:00",
     "os": "FirewallOS", "openPorts": [22, 443]},
    {"ipAddress": "10.0.0.50", "hostname": "dev-vm.corp", "macAddress": "C1:D2:E3:F4:05:01",
     "os": "Linux (Dev VM)", "openPorts": [22, 8000, 9000]},
)


class SimulatedBackend(DiscoveryBackend):
    """In-process backend that streams a host table.

    Scan and monitoring loops run on their own daemon threads and push
    events through ``emit``.

    Args:
        emit: Callable receiving ``(event_name, payload)``.
        hosts: Host table in wire format. Defaults to ``DEFAULT_HOSTS``.
        history: Optional object with ``add_range()`` / ``get_recent()``
            (a ``storage.ScanHistoryStore``).
        liveness_probe: ``probe(ip) -> bool``. Defaults to the simulated
            online flags, see ``set_host_online``.
        host_delay: (min, max) seconds between two ``hostFound`` events.
        first_host_delay: Seconds before the first event of a scan.
        monitor_interval: Seconds between two liveness polling cycles.
    """

    def __init__(
        self,
        emit: EventEmitter,
        hosts: Optional[Iterable[dict]] = None,
        history=None,
        liveness_probe: Optional[Callable[[str], bool]] = None,
        host_delay: Tuple[float, float] = (INTERVALS.SIMULATED_HOST_DELAY_MIN,
                                           INTERVALS.SIMULATED_HOST_DELAY_MAX),
        first_host_delay: float = INTERVALS.SIMULATED_FIRST_HOST_DELAY,
        monitor_interval: float = INTERVALS.MONITOR_POLL_SECONDS,
    ):
        self._emit = emit
        self._hosts: List[dict] = [dict(h) for h in (hosts if hosts is not None else DEFAULT_HOSTS)]
        self._history = history
        self._probe = liveness_probe or self._simulated_probe
        self._host_delay = host_delay
        self._first_host_delay = first_host_delay
        self._monitor_interval = monitor_interval

        self._lock = threading.Lock()
        self._shutdown = threading.Event()
        self._scan_thread: Optional[threading.Thread] = None

        self._online: Dict[str, bool] = {h["ipAddress"]: True for h in self._hosts}
        self._monitored: Dict[str, bool] = {}
        self._monitor_stop = threading.Event()
        self._monitor_thread: Optional[threading.Thread] = None
        self._monitoring = False
        self._hidden_host_ports: Tuple[int, ...] = ()

        logger.info(f"SimulatedBackend initialized with {len(self._hosts)} hosts")

    # ========================================================================
    # Scanning
    # ========================================================================

    def start_scan(self, params: ScanParameters) -> None:
        with self._lock:
            if self._scan_thread and self._scan_thread.is_alive():
                raise BackendCommandError("A scan is already in progress", command="start_scan")

            if self._history is not None:
                try:
                    self._history.add_range(params.ip_range)
                except StorageError as e:
                    logger.warning(f"Could not record scan history: {e}")

            self._scan_thread = threading.Thread(
                target=self._run_scan,
                args=(params,),
                daemon=True,
                name="SimulatedBackend-Scan",
            )
            self._scan_thread.start()

        logger.info(f"Scan started for {params.ip_range} (ports={list(params.service_ports)})")

    def _run_scan(self, params: ScanParameters) -> None:
        ip_range = params.ip_range
        if ip_range.start.ordinal > ip_range.end.ordinal:
            self._emit(SCAN_ERROR, "Start IP cannot be greater than End IP.")
            self._emit(SCAN_COMPLETE, False)
            return

        matches = []
        for host in self._hosts:
            addr = parse_address(host.get("ipAddress"))
            if addr is None:
                continue
            if ip_range.contains(addr):
                matches.append(host)

        if not matches:
            logger.info("No hosts to scan in the given range")

        delay = self._first_host_delay
        for host in matches:
            if self._shutdown.wait(delay):
                logger.debug("Scan interrupted by backend shutdown")
                break
            payload = dict(host)
            if not payload.get("deviceType"):
                payload["deviceType"] = classify_device(
                    payload["ipAddress"], payload.get("hostname"), payload.get("openPorts") or []
                ).value
            logger.debug(f"Emitting hostFound: {payload['ipAddress']}")
            self._emit(HOST_FOUND, payload)
            delay = random.uniform(*self._host_delay)

        logger.debug("Emitting scanComplete")
        self._emit(SCAN_COMPLETE, True)

    def wait_for_scan(self, timeout: Optional[float] = None) -> bool:
        """Block until the running scan has emitted ``scanComplete``.

        Returns:
            True if no scan is running anymore.
        """
        thread = self._scan_thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    # ========================================================================
    # Monitoring
    # ========================================================================

    def start_monitoring(self, hosts: Sequence[HostRecord],
                         hidden_host_discovery_enabled: bool,
                         hidden_host_ports: Sequence[int]) -> None:
        if self.is_monitoring_active():
            logger.debug("Monitoring already active. Stopping existing monitor first.")
            self.stop_monitoring()

        ips = [str(h.ip_address) for h in hosts]
        if not ips:
            logger.info("start_monitoring called with no hosts; monitoring will not run")
            return

        with self._lock:
            # Hosts were just found by a scan, so they start out online
            self._monitored = {ip: True for ip in ips}
            self._hidden_host_ports = tuple(hidden_host_ports) if hidden_host_discovery_enabled else ()
            self._monitor_stop.clear()
            self._monitoring = True
            self._monitor_thread = threading.Thread(
                target=self._monitor_loop,
                daemon=True,
                name="SimulatedBackend-Monitor",
            )
            self._monitor_thread.start()

        logger.info(f"Monitoring started for {len(ips)} hosts "
                    f"(hidden-host ports={list(self._hidden_host_ports)})")

    def _monitor_loop(self) -> None:
        try:
            self.perform_status_checks()
            while not self._monitor_stop.wait(self._monitor_interval):
                self.perform_status_checks()
        finally:
            with self._lock:
                self._monitoring = False
            logger.debug("Monitoring loop finished")

    def perform_status_checks(self) -> None:
        """Probe every monitored host once, emitting an event per status change."""
        with self._lock:
            snapshot = dict(self._monitored)

        for ip, last_known in snapshot.items():
            if self._monitor_stop.is_set():
                return
            is_online = bool(self._probe(ip))

            with self._lock:
                if ip not in self._monitored:
                    continue
                if is_online == self._monitored[ip]:
                    continue
                self._monitored[ip] = is_online

            logger.info(f"Host {ip} status changed: was {last_known}, now {is_online}")
            self._emit(HOST_STATUS_UPDATE, {"ipAddress": ip, "isOnline": is_online})

    def stop_monitoring(self) -> None:
        with self._lock:
            thread = self._monitor_thread
            if not self._monitoring and thread is None:
                logger.debug("Monitoring is not active, nothing to stop")
                return
            self._monitor_stop.set()

        if thread is not None and thread is not threading.current_thread():
            thread.join(INTERVALS.THREAD_JOIN_TIMEOUT_SECONDS)

        with self._lock:
            self._monitoring = False
            self._monitor_thread = None
            self._monitored = {}
        logger.info("Monitoring stopped")

    def is_monitoring_active(self) -> bool:
        with self._lock:
            return self._monitoring

    # ========================================================================
    # History
    # ========================================================================

    def get_scan_history(self) -> List[ScanHistoryEntry]:
        if self._history is None:
            return []
        return self._history.get_recent()

    # ========================================================================
    # Simulation controls
    # ========================================================================

    def _simulated_probe(self, ip: str) -> bool:
        with self._lock:
            return self._online.get(ip, False)

    def set_host_online(self, ip: str, online: bool) -> None:
        """Flip the simulated reachability of a host."""
        with self._lock:
            self._online[ip] = online

    def shutdown(self) -> None:
        """Stop the scan and monitoring threads."""
        self._shutdown.set()
        self.stop_monitoring()
        if self._scan_thread is not None:
            self._scan_thread.join(INTERVALS.THREAD_JOIN_TIMEOUT_SECONDS)
        logger.debug("SimulatedBackend shut down")

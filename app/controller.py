"""Discovery session controller for NetView.

Owns the session state machine (idle / scanning / monitoring), issues
commands to the discovery backend, and folds the backend's pushed events
into the host store. It is the only writer of the store.

Usage:
    from app.controller import DiscoverySessionController
    from app.dependencies import create_dependencies, create_controller

    deps = create_dependencies()
    controller = create_controller(deps)
    controller.attach()
    controller.request_scan("192.168.1", "")
"""
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

from config import SCAN, LogContext, get_logger
from config.exceptions import (
    BackendCommandError,
    CommandInProgressError,
    InvalidTransitionError,
    RangeFailure,
    RangeValidationError,
)
from discovery.backend import DiscoveryBackend, ScanHistoryEntry, ScanParameters
from discovery.hosts import HostRecord, HostStore, LivenessStatus
from discovery.range_normalizer import IPRange, normalize_range, resolve_range
from app.events import Event, EventBus, EventType, Subscription
from storage.settings import SettingsSnapshot

logger = get_logger(__name__)


class SessionState(Enum):
    """Discovery session states. IDLE and MONITORING are resting states."""
    IDLE = "idle"
    SCANNING = "scanning"
    MONITORING = "monitoring"


@dataclass(frozen=True)
class ScanOutcome:
    """How the most recent scan ended."""
    success: bool
    error_message: Optional[str] = None
    host_count: int = 0


def apply_optimistic_transition(store: HostStore, active: bool) -> None:
    """Set every host's status for a monitoring start or stop.

    Hosts are assumed online as soon as the backend accepts a monitoring
    start, until real liveness updates arrive; they revert to unknown once
    monitoring stops.
    """
    store.mark_all(LivenessStatus.ONLINE if active else LivenessStatus.UNKNOWN)


class DiscoverySessionController:
    """State machine driving scans and monitoring against one backend.

    Commands (``request_*``) run on the caller's thread and block until the
    backend acknowledges them; only one command may be in flight at a time.
    Backend events arrive through the event bus once ``attach()`` has been
    called and are each handled to completion.

    Attributes:
        backend: The discovery backend commands are sent to.
        store: The host store this controller owns.
        event_bus: Bus carrying backend events in and session events out.
    """

    def __init__(self, backend: DiscoveryBackend, store: Optional[HostStore] = None,
                 settings=None, event_bus: Optional[EventBus] = None):
        """Initialize the controller.

        Args:
            backend: Discovery backend.
            store: Host store (a fresh one if not provided).
            settings: Object with a ``snapshot()`` method returning a
                ``SettingsSnapshot``; built-in defaults if not provided.
            event_bus: Event bus (a private one if not provided).
        """
        self.backend = backend
        self.store = store if store is not None else HostStore()
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self._settings = settings

        self._state = SessionState.IDLE
        self._state_lock = threading.RLock()
        self._command_lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

        # Backend kept monitoring through a scan (stop was rejected)
        self._monitoring_carry_over = False
        # scanComplete events still owed by scans that ended with scanError
        self._pending_completes = 0
        self._last_outcome: Optional[ScanOutcome] = None

        logger.info("DiscoverySessionController initialized")

    # ========================================================================
    # Read-only views
    # ========================================================================

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    @property
    def hosts(self) -> List[HostRecord]:
        """Discovered hosts in ascending IP order."""
        return self.store.hosts()

    def filter_hosts(self, term: str) -> List[HostRecord]:
        return self.store.filter(term)

    @property
    def last_outcome(self) -> Optional[ScanOutcome]:
        """Outcome of the most recently finished scan, None before the first."""
        with self._state_lock:
            return self._last_outcome

    @property
    def is_attached(self) -> bool:
        return bool(self._subscriptions)

    # ========================================================================
    # Event subscriptions
    # ========================================================================

    def attach(self) -> None:
        """Subscribe to backend events. Calling it twice is harmless."""
        if self._subscriptions:
            return
        self._subscriptions = [
            self.event_bus.subscribe(EventType.HOST_FOUND, self._on_host_found),
            self.event_bus.subscribe(EventType.SCAN_COMPLETE, self._on_scan_complete),
            self.event_bus.subscribe(EventType.SCAN_ERROR, self._on_scan_error),
            self.event_bus.subscribe(EventType.HOST_STATUS_UPDATE, self._on_host_status_update),
        ]
        logger.debug("Controller attached to event bus")

    def detach(self) -> None:
        """Drop every backend event subscription."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        logger.debug("Controller detached from event bus")

    # ========================================================================
    # Commands
    # ========================================================================

    @contextmanager
    def _command(self, name: str) -> Iterator[None]:
        if not self._command_lock.acquire(blocking=False):
            raise CommandInProgressError(
                "Another command is still waiting for the backend", {"command": name}
            )
        try:
            yield
        finally:
            self._command_lock.release()

    def request_scan(self, start_raw: str, end_raw: str) -> IPRange:
        """Validate raw range input and start a scan.

        The end address is auto-suggested from the start before the range is
        normalized, so ``("192.168.1", "")`` scans 192.168.1.0 - 192.168.1.255.

        Returns:
            The range that was sent to the backend.

        Raises:
            RangeValidationError: If the range does not validate. No backend
                command is issued in that case.
            InvalidTransitionError: If a scan is already running.
            BackendCommandError: If the backend rejects the scan.
        """
        ip_range = resolve_range(start_raw, end_raw)
        self.request_scan_range(ip_range)
        return ip_range

    def request_scan_range(self, ip_range: IPRange) -> None:
        """Start a scan of an already-normalized range.

        From MONITORING, monitoring is stopped first. If the backend refuses
        to stop, a ``SCAN_WARNING`` is published and the scan goes ahead;
        hosts found while the backend keeps monitoring are inserted online,
        and the session returns to MONITORING once the scan ends.

        If the backend rejects the scan, the previous hosts are restored and
        the session settles in IDLE, or in MONITORING when the backend is
        still monitoring.
        """
        if ip_range.start.ordinal > ip_range.end.ordinal:
            raise RangeValidationError(
                "Start IP cannot be greater than End IP",
                RangeFailure.INVERTED_RANGE,
                start=str(ip_range.start),
                end=str(ip_range.end),
            )

        with self._command("request_scan"):
            state = self.state
            if state is SessionState.SCANNING:
                raise InvalidTransitionError("A scan is already in progress")

            snapshot = self._settings_snapshot()
            params = ScanParameters(
                ip_range=ip_range,
                service_ports=tuple(snapshot.service_ports),
                hidden_host_discovery_enabled=snapshot.hidden_host_discovery_enabled,
                hidden_host_ports=tuple(snapshot.hidden_host_ports),
            )

            carry_over = False
            if state is SessionState.MONITORING:
                try:
                    with LogContext(logger, "stop_monitoring"):
                        self.backend.stop_monitoring()
                except BackendCommandError as e:
                    carry_over = True
                    self._publish_warning(
                        EventType.SCAN_WARNING,
                        f"Could not stop monitoring before scanning: {e.message}",
                        kind="stop_rejected",
                    )

            with self._state_lock:
                previous_hosts = self.store.hosts()
                self.store.reset()
                self._monitoring_carry_over = carry_over
                previous = self._swap_state(SessionState.SCANNING)
            self._publish_state_change(previous, SessionState.SCANNING)
            self._publish_hosts_changed()

            try:
                with LogContext(logger, f"start_scan {ip_range}"):
                    self.backend.start_scan(params)
            except BackendCommandError:
                # Back to the resting state the backend is actually in
                resting = SessionState.MONITORING if carry_over else SessionState.IDLE
                with self._state_lock:
                    self._monitoring_carry_over = False
                    for host in previous_hosts:
                        self.store.apply_discovered(host, host.status)
                    if state is SessionState.MONITORING and not carry_over:
                        apply_optimistic_transition(self.store, False)
                    previous = self._swap_state(resting)
                self._publish_state_change(previous, resting)
                self._publish_hosts_changed()
                raise

        logger.info(f"Scan started: {ip_range} ({ip_range.size} addresses)")

    def rescan_from_history(self, entry: ScanHistoryEntry) -> IPRange:
        """Scan a range taken from the scan history.

        The stored range is validated again like any typed-in range.
        """
        ip_range = normalize_range(entry.start_ip, entry.end_ip)
        self.request_scan_range(ip_range)
        return ip_range

    def request_monitor(self) -> None:
        """Start monitoring every discovered host.

        Raises:
            InvalidTransitionError: Unless IDLE with at least one host.
            BackendCommandError: If the backend rejects the command; the
                controller stays IDLE.
        """
        with self._command("request_monitor"):
            if self.state is not SessionState.IDLE:
                raise InvalidTransitionError(
                    "Monitoring can only start from idle", {"state": self.state.value}
                )
            hosts = self.store.hosts()
            if not hosts:
                raise InvalidTransitionError("No hosts to monitor")

            snapshot = self._settings_snapshot()
            with LogContext(logger, f"start_monitoring ({len(hosts)} hosts)"):
                self.backend.start_monitoring(
                    hosts,
                    snapshot.hidden_host_discovery_enabled,
                    list(snapshot.hidden_host_ports),
                )

            with self._state_lock:
                apply_optimistic_transition(self.store, True)
                previous = self._swap_state(SessionState.MONITORING)
            self._publish_state_change(previous, SessionState.MONITORING)
            self._publish_hosts_changed()

    def request_stop_monitor(self) -> None:
        """Stop monitoring and return to IDLE.

        Raises:
            InvalidTransitionError: If not MONITORING.
            BackendCommandError: If the backend rejects the command; the
                controller stays MONITORING.
        """
        with self._command("request_stop_monitor"):
            if self.state is not SessionState.MONITORING:
                raise InvalidTransitionError(
                    "Monitoring is not active", {"state": self.state.value}
                )

            with LogContext(logger, "stop_monitoring"):
                self.backend.stop_monitoring()

            with self._state_lock:
                apply_optimistic_transition(self.store, False)
                previous = self._swap_state(SessionState.IDLE)
            self._publish_state_change(previous, SessionState.IDLE)
            self._publish_hosts_changed()

    def adopt_monitoring_state(self, active: bool) -> None:
        """Align local state with the backend's reported monitoring state.

        Used once at startup. A backend that is monitoring while no hosts are
        known locally is reported as a ``DESYNC_WARNING``; the state still
        follows the backend.

        Raises:
            InvalidTransitionError: If called while scanning.
        """
        with self._command("adopt_monitoring_state"):
            if self.state is SessionState.SCANNING:
                raise InvalidTransitionError("Cannot resynchronize while scanning")

            target = SessionState.MONITORING if active else SessionState.IDLE
            with self._state_lock:
                if self._state is target:
                    return
                apply_optimistic_transition(self.store, active)
                previous = self._swap_state(target)
                empty = len(self.store) == 0

            if active and empty:
                self._publish_warning(
                    EventType.DESYNC_WARNING,
                    "Backend is monitoring but no hosts are known locally",
                    kind="monitoring_without_hosts",
                )
            self._publish_state_change(previous, target)
            self._publish_hosts_changed()

    def get_scan_history(self) -> List[ScanHistoryEntry]:
        """Recent scans, newest first.

        Entries whose range no longer validates are skipped.
        """
        entries = []
        for entry in self.backend.get_scan_history():
            try:
                if isinstance(entry, dict):
                    entry = ScanHistoryEntry.from_dict(entry)
                else:
                    normalize_range(entry.start_ip, entry.end_ip)
            except (RangeValidationError, ValueError) as e:
                logger.warning(f"Skipping invalid history entry: {e}")
                continue
            entries.append(entry)

        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:SCAN.MAX_HISTORY_ITEMS]

    # ========================================================================
    # Backend event handlers
    # ========================================================================

    def _on_host_found(self, event: Event) -> None:
        payload = event.data.get("host")
        try:
            record = payload if isinstance(payload, HostRecord) else HostRecord.from_dict(payload)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring malformed hostFound payload: {e}")
            return

        with self._state_lock:
            if self._state is not SessionState.SCANNING:
                logger.warning(f"Dropping hostFound for {record.ip_address} outside a scan")
                return
            status = LivenessStatus.ONLINE if self._monitoring_carry_over else LivenessStatus.UNKNOWN
            is_new = self.store.apply_discovered(record, status)

        if is_new:
            logger.debug(f"Host discovered: {record.ip_address}")
        self._publish_hosts_changed()

    def _on_scan_complete(self, event: Event) -> None:
        success = bool(event.data.get("success", False))

        with self._state_lock:
            if self._pending_completes:
                # Terminal event of an earlier scan that already ended with scanError
                self._pending_completes -= 1
                logger.debug("scanComplete after scanError absorbed")
                return
            if self._state is not SessionState.SCANNING:
                logger.warning("Dropping scanComplete outside a scan")
                return

            message = None if success else "Scan finished with an incomplete result"
            self._last_outcome = ScanOutcome(success, message, len(self.store))
            resting = self._resting_state_after_scan()
            previous = self._swap_state(resting)
            outcome = self._last_outcome

        logger.info(f"Scan complete (success={success}, hosts={outcome.host_count})")
        self._publish_state_change(previous, resting)
        if not success:
            self._publish_warning(EventType.SCAN_WARNING, message, kind="incomplete")

    def _on_scan_error(self, event: Event) -> None:
        message = event.data.get("message") or "Unknown scan error"

        with self._state_lock:
            if self._state is not SessionState.SCANNING:
                logger.warning(f"Dropping scanError outside a scan: {message}")
                return
            self._last_outcome = ScanOutcome(False, message, len(self.store))
            self._pending_completes += 1
            resting = self._resting_state_after_scan()
            previous = self._swap_state(resting)

        logger.error(f"Scan aborted by backend: {message}")
        self._publish_state_change(previous, resting)
        self._publish_warning(EventType.SCAN_WARNING, message, kind="error")

    def _on_host_status_update(self, event: Event) -> None:
        ip_address = event.data.get("ipAddress")
        is_online = bool(event.data.get("isOnline", False))

        with self._state_lock:
            if self._state is not SessionState.MONITORING and not self._monitoring_carry_over:
                logger.debug(f"Dropping status update for {ip_address}: not monitoring")
                return
            applied = self.store.apply_liveness(ip_address, is_online)

        if applied:
            self._publish_hosts_changed()
        else:
            self._publish_warning(
                EventType.DESYNC_WARNING,
                f"Status update for unknown host {ip_address}",
                kind="unknown_host",
                ip_address=ip_address,
            )

    # ========================================================================
    # Internal helpers
    # ========================================================================

    def _settings_snapshot(self) -> SettingsSnapshot:
        if self._settings is None:
            return SettingsSnapshot()
        return self._settings.snapshot()

    def _resting_state_after_scan(self) -> SessionState:
        """State to settle in when a scan ends; caller holds the state lock.

        A backend that refused to stop monitoring for this scan is still
        monitoring, so the session goes back to MONITORING.
        """
        carry_over = self._monitoring_carry_over
        self._monitoring_carry_over = False
        return SessionState.MONITORING if carry_over else SessionState.IDLE

    def _swap_state(self, new_state: SessionState) -> SessionState:
        """Set the state; caller holds the state lock."""
        previous = self._state
        self._state = new_state
        return previous

    def _publish_state_change(self, previous: SessionState, current: SessionState) -> None:
        if previous is current:
            return
        logger.info(f"Session state: {previous.value} -> {current.value}")
        self.event_bus.publish(
            EventType.SESSION_STATE_CHANGED,
            {"previous": previous, "state": current},
            source="controller",
        )

    def _publish_hosts_changed(self) -> None:
        self.event_bus.publish(
            EventType.HOSTS_CHANGED,
            {"count": len(self.store)},
            source="controller",
        )

    def _publish_warning(self, event_type: EventType, message: str, kind: str,
                         ip_address: Optional[str] = None) -> None:
        logger.warning(message)
        data = {"message": message, "kind": kind}
        if ip_address is not None:
            data["ipAddress"] = ip_address
        self.event_bus.publish(event_type, data, source="controller")

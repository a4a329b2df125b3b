"""Monitoring lifecycle management.

Turns a "toggle monitoring" intent into the matching controller command and
keeps local state in line with what the backend has confirmed, including
monitoring left running by an earlier session.
"""
from config import get_logger, log_exception
from config.exceptions import BackendCommandError, InvalidTransitionError
from discovery.backend import DiscoveryBackend
from app.controller import DiscoverySessionController, SessionState

logger = get_logger(__name__)


class MonitoringLifecycleManager:
    """Starts, stops and resynchronizes liveness monitoring.

    Local state only ever reflects a state the backend confirmed: a failed
    start or stop raises and leaves the controller where it was.

    Example:
        >>> manager = MonitoringLifecycleManager(controller, backend)
        >>> manager.resync()
        >>> manager.toggle()
    """

    def __init__(self, controller: DiscoverySessionController, backend: DiscoveryBackend):
        self._controller = controller
        self._backend = backend

    @property
    def is_active(self) -> bool:
        """Whether monitoring is running, as last confirmed by the backend."""
        return self._controller.state is SessionState.MONITORING

    def resync(self) -> bool:
        """Query the backend once and adopt its monitoring state.

        Returns:
            The backend-confirmed monitoring state.

        Raises:
            BackendCommandError: If the backend cannot be queried; local
                state is left unchanged.
        """
        try:
            active = bool(self._backend.is_monitoring_active())
        except BackendCommandError as e:
            log_exception(logger, "Could not query backend monitoring state", e)
            raise

        self._controller.adopt_monitoring_state(active)
        logger.info(f"Monitoring state resynchronized: active={active}")
        return active

    def start(self) -> None:
        try:
            self._controller.request_monitor()
        except BackendCommandError as e:
            log_exception(logger, "Backend rejected start of monitoring", e)
            raise
        logger.info("Monitoring started")

    def stop(self) -> None:
        try:
            self._controller.request_stop_monitor()
        except BackendCommandError as e:
            log_exception(logger, "Backend rejected stop of monitoring", e)
            raise
        logger.info("Monitoring stopped")

    def toggle(self) -> bool:
        """Start monitoring if idle, stop it if running.

        Returns:
            The new monitoring state.

        Raises:
            InvalidTransitionError: While a scan is running, or when there
                are no hosts to monitor.
            BackendCommandError: If the backend rejects the command.
        """
        state = self._controller.state
        if state is SessionState.SCANNING:
            raise InvalidTransitionError("Cannot toggle monitoring while scanning")

        if state is SessionState.MONITORING:
            self.stop()
        else:
            self.start()
        return self.is_active

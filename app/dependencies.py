"""Dependency injection container for NetView.

Provides a centralized way to create and wire the scan core's components,
making them easy to test and swap out.

Usage:
    from app.dependencies import create_dependencies, create_controller

    # Create all dependencies
    deps = create_dependencies()

    # Build the session controller on top of them
    controller = create_controller(deps)
    controller.attach()
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config import STORAGE, get_logger

logger = get_logger(__name__)


@dataclass
class AppDependencies:
    """Container for all application dependencies.

    Using a dataclass makes dependencies explicit and easy to mock in tests.
    Each field represents a component that can be injected.
    """

    # Discovery components
    backend: "DiscoveryBackend"
    store: "HostStore"

    # Storage components
    settings: "SettingsManager"
    history: Optional["ScanHistoryStore"] = None

    # Event bus (shared between backend and controller)
    event_bus: Optional["EventBus"] = None

    def __post_init__(self):
        """Log dependency creation."""
        logger.debug("AppDependencies container created")


def create_dependencies(
    data_dir: Optional[Path] = None,
    event_bus: Optional["EventBus"] = None,
    backend: Optional["DiscoveryBackend"] = None,
) -> AppDependencies:
    """Create all application dependencies.

    Factory function that instantiates all required components
    and wires them together.

    Args:
        data_dir: Override the default data directory.
        event_bus: Provide an existing event bus, or one will be created.
        backend: Provide a discovery backend, or a ``SimulatedBackend``
            pushing onto ``event_bus`` is created.

    Returns:
        AppDependencies container with all components.

    Example:
        >>> deps = create_dependencies()
        >>> deps.backend.is_monitoring_active()
        False
    """
    # Import here to avoid circular imports
    from app.events import EventBus
    from discovery.hosts import HostStore
    from discovery.simulated import SimulatedBackend
    from storage.history_store import ScanHistoryStore
    from storage.settings import get_settings_manager

    logger.info("Creating application dependencies...")

    # Resolve data directory
    if data_dir is None:
        data_dir = Path.home() / STORAGE.DATA_DIR_NAME

    # Create storage first (the backend records history into it)
    settings = get_settings_manager(data_dir)
    history = ScanHistoryStore(data_dir=data_dir)

    if event_bus is None:
        event_bus = EventBus()

    if backend is None:
        backend = SimulatedBackend(emit=event_bus.backend_emitter(), history=history)

    deps = AppDependencies(
        backend=backend,
        store=HostStore(),
        settings=settings,
        history=history,
        event_bus=event_bus,
    )

    logger.info("All dependencies created successfully")
    return deps


def create_mock_dependencies() -> AppDependencies:
    """Create mock dependencies for testing.

    Returns an AppDependencies container with mock objects
    that don't touch the disk or the network.

    Returns:
        AppDependencies with mock implementations.
    """
    from app.events import EventBus
    from discovery.hosts import HostStore
    from tests.mocks import MockBackend, MockSettingsManager

    logger.debug("Creating mock dependencies for testing")

    return AppDependencies(
        backend=MockBackend(),
        store=HostStore(),
        settings=MockSettingsManager(),
        history=None,
        event_bus=EventBus(async_mode=False),  # Sync mode for testing
    )


def create_controller(deps: AppDependencies) -> "DiscoverySessionController":
    """Build a session controller from a dependency container."""
    from app.controller import DiscoverySessionController

    return DiscoverySessionController(
        backend=deps.backend,
        store=deps.store,
        settings=deps.settings,
        event_bus=deps.event_bus,
    )

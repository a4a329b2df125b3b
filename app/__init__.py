"""Application module for NetView.

Contains the scan/monitor orchestration components:
- EventBus: Backend events and internal event communication
- DiscoverySessionController: Session state machine with DI
- MonitoringLifecycleManager: Monitoring toggle and startup resync
"""

from app.controller import (
    DiscoverySessionController,
    ScanOutcome,
    SessionState,
    apply_optimistic_transition,
)
from app.dependencies import AppDependencies, create_controller, create_dependencies
from app.events import Event, EventBus, EventType, Subscription
from app.monitoring import MonitoringLifecycleManager

__all__ = [
    "AppDependencies",
    "DiscoverySessionController",
    "Event",
    "EventBus",
    "EventType",
    "MonitoringLifecycleManager",
    "ScanOutcome",
    "SessionState",
    "Subscription",
    "apply_optimistic_transition",
    "create_controller",
    "create_dependencies",
]

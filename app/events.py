"""Event bus for backend notifications and internal application communication.

The discovery backend pushes its events (hosts found, scan completion,
scan errors, liveness changes) onto the bus; the session controller and any
UI layer subscribe to them. ``subscribe`` returns a ``Subscription`` handle
whose ``unsubscribe()`` (or ``with`` block) tears the handler down
deterministically.

Usage:
    from app.events import EventBus, EventType

    bus = EventBus()

    # Subscribe to events
    sub = bus.subscribe(EventType.HOST_FOUND, lambda e: print(e.data["host"]))

    # Publish events
    bus.publish(EventType.HOST_FOUND, {"host": {"ipAddress": "192.168.1.1"}})

    # Tear down
    sub.unsubscribe()
"""
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

from config import get_logger
from discovery import backend

logger = get_logger(__name__)


class EventType(Enum):
    """Types of events that can be published/subscribed."""

    # Pushed by the discovery backend
    HOST_FOUND = auto()
    SCAN_COMPLETE = auto()
    SCAN_ERROR = auto()
    HOST_STATUS_UPDATE = auto()

    # Published by the session controller
    SESSION_STATE_CHANGED = auto()
    HOSTS_CHANGED = auto()
    SCAN_WARNING = auto()
    DESYNC_WARNING = auto()


# Backend event names (see discovery.backend) and the bus event each maps to
BACKEND_EVENTS = {
    backend.HOST_FOUND: EventType.HOST_FOUND,
    backend.SCAN_COMPLETE: EventType.SCAN_COMPLETE,
    backend.SCAN_ERROR: EventType.SCAN_ERROR,
    backend.HOST_STATUS_UPDATE: EventType.HOST_STATUS_UPDATE,
}


@dataclass
class Event:
    """Represents an event with type and data.

    Attributes:
        event_type: The type of event.
        data: Optional dictionary with event-specific data.
        timestamp: When the event was created.
        source: Optional identifier of the event source.
    """
    event_type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    source: Optional[str] = None

    def __str__(self) -> str:
        return f"Event({self.event_type.name}, data={self.data})"


# Type alias for event handlers
EventHandler = Callable[[Event], None]


class Subscription:
    """Handle returned by ``EventBus.subscribe``.

    Calling ``unsubscribe()`` more than once is harmless. Can be used as a
    context manager to scope a subscription to a block.
    """

    def __init__(self, bus: 'EventBus', event_type: EventType, handler: EventHandler):
        self._bus = bus
        self.event_type = event_type
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> bool:
        """Remove the handler from the bus.

        Returns:
            True if the handler was removed by this call.
        """
        if not self._active:
            return False
        self._active = False
        return self._bus.unsubscribe(self.event_type, self.handler)

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unsubscribe()
        return False


class EventBus:
    """Thread-safe publish/subscribe event bus.

    In async mode (the default) events are queued and dispatched by a single
    background worker, so each event is handled to completion before the
    next one starts. Sync mode dispatches on the publishing thread, which
    keeps tests deterministic.

    Attributes:
        async_mode: If True (default), events are processed in a background thread.

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe(EventType.SCAN_COMPLETE, lambda e: print(e.data))
        >>> bus.publish(EventType.SCAN_COMPLETE, {"success": True})
    """

    def __init__(self, async_mode: bool = True):
        self._subscribers: Dict[EventType, List[EventHandler]] = {}
        self._lock = threading.Lock()
        self._async_mode = async_mode
        self._event_queue: queue.Queue = queue.Queue()
        self._running = False
        self._worker_thread: Optional[threading.Thread] = None

        if async_mode:
            self._start_worker()

    def _start_worker(self) -> None:
        """Start the background event processing thread."""
        self._running = True
        self._worker_thread = threading.Thread(
            target=self._process_events,
            daemon=True,
            name="EventBus-Worker"
        )
        self._worker_thread.start()
        logger.debug("EventBus worker thread started")

    def _process_events(self) -> None:
        """Process events from the queue in background thread."""
        while self._running:
            try:
                event = self._event_queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self._dispatch_event(event)
            finally:
                self._event_queue.task_done()

    def _dispatch_event(self, event: Event) -> None:
        """Dispatch event to all subscribers."""
        with self._lock:
            handlers = self._subscribers.get(event.event_type, []).copy()

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error in event handler for {event.event_type.name}: {e}",
                    exc_info=True
                )

    def subscribe(self, event_type: EventType, handler: EventHandler) -> Subscription:
        """Subscribe to an event type.

        Args:
            event_type: The type of event to subscribe to.
            handler: Callback function that takes an Event parameter.

        Returns:
            A Subscription handle for explicit teardown.
        """
        with self._lock:
            if event_type not in self._subscribers:
                self._subscribers[event_type] = []
            self._subscribers[event_type].append(handler)

        logger.debug(f"Subscribed to {event_type.name}")
        return Subscription(self, event_type, handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> bool:
        """Unsubscribe from an event type.

        Args:
            event_type: The type of event to unsubscribe from.
            handler: The handler to remove.

        Returns:
            True if handler was found and removed, False otherwise.
        """
        with self._lock:
            if event_type in self._subscribers:
                try:
                    self._subscribers[event_type].remove(handler)
                    logger.debug(f"Unsubscribed from {event_type.name}")
                    return True
                except ValueError:
                    pass
        return False

    def publish(self, event_type: EventType, data: Dict[str, Any] = None,
                source: str = None) -> None:
        """Publish an event.

        Args:
            event_type: The type of event to publish.
            data: Optional data to include with the event.
            source: Optional identifier of the event source.
        """
        event = Event(
            event_type=event_type,
            data=data or {},
            source=source
        )

        if self._async_mode:
            self._event_queue.put(event)
        else:
            self._dispatch_event(event)

        logger.debug(f"Published {event_type.name}")

    def backend_emitter(self, source: str = "backend") -> Callable[[str, Any], None]:
        """Build the ``emit(name, payload)`` callable handed to a discovery backend.

        Wire payloads are wrapped into event data dicts:
        ``hostFound`` -> ``{"host": ...}``, ``scanComplete`` -> ``{"success": ...}``,
        ``scanError`` -> ``{"message": ...}``; ``hostStatusUpdate`` payloads
        are already dicts.
        """
        def emit(name: str, payload: Any = None) -> None:
            event_type = BACKEND_EVENTS.get(name)
            if event_type is None:
                logger.warning(f"Ignoring unknown backend event: {name}")
                return

            if event_type is EventType.HOST_FOUND:
                data = {"host": payload}
            elif event_type is EventType.SCAN_COMPLETE:
                data = {"success": bool(payload)}
            elif event_type is EventType.SCAN_ERROR:
                data = {"message": str(payload)}
            else:
                data = dict(payload or {})

            self.publish(event_type, data, source=source)

        return emit

    def wait_until_idle(self) -> None:
        """Block until every queued event has been dispatched (async mode)."""
        if self._async_mode:
            self._event_queue.join()

    def clear_subscribers(self, event_type: Optional[EventType] = None) -> None:
        """Clear subscribers for an event type or all events.

        Args:
            event_type: If provided, only clear subscribers for this type.
                       If None, clear all subscribers.
        """
        with self._lock:
            if event_type:
                self._subscribers.pop(event_type, None)
            else:
                self._subscribers.clear()

    def get_subscriber_count(self, event_type: EventType) -> int:
        """Get the number of subscribers for an event type."""
        with self._lock:
            return len(self._subscribers.get(event_type, []))

    def shutdown(self) -> None:
        """Shutdown the event bus and stop the worker thread."""
        self._running = False
        if self._worker_thread:
            self._worker_thread.join(timeout=1.0)
        logger.debug("EventBus shut down")

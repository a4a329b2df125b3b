"""Custom exception hierarchy for NetView.

Provides specific exceptions for the error categories of the scan/monitor
core: local validation failures, backend command rejections, and illegal
state machine requests.
"""

from enum import Enum
from typing import Optional


class NetViewError(Exception):
    """Base exception for all NetView errors.

    All custom exceptions in this application should inherit from this class.
    This allows catching all application-specific errors with a single except clause.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class ValidationError(NetViewError):
    """Local input validation errors.

    Raised synchronously before any backend command is issued. A validation
    error never reaches the discovery backend.
    """

    pass


class RangeSide(Enum):
    """Which end of an IP range failed validation."""
    START = "start"
    END = "end"


class RangeFailure(Enum):
    """Why an IP range was rejected."""
    INVALID_ADDRESS = "invalid_address"
    INVERTED_RANGE = "inverted_range"


class RangeValidationError(ValidationError):
    """An IP range could not be normalized.

    Attributes:
        reason: RangeFailure describing the failure.
        side: RangeSide that failed, or None for an inverted range
            (both addresses parsed but start > end).
        start: The filled start address text that was checked.
        end: The filled end address text that was checked.

    Examples:
        >>> raise RangeValidationError(
        ...     "Start IP address is not valid",
        ...     reason=RangeFailure.INVALID_ADDRESS,
        ...     side=RangeSide.START,
        ...     start="300.0.0.0",
        ... )
    """

    def __init__(
        self,
        message: str,
        reason: RangeFailure,
        side: Optional[RangeSide] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ):
        details = {"reason": reason.value}
        if side is not None:
            details["side"] = side.value
        if start is not None:
            details["start"] = start
        if end is not None:
            details["end"] = end

        super().__init__(message, details)
        self.reason = reason
        self.side = side
        self.start = start
        self.end = end

    @property
    def is_inverted(self) -> bool:
        return self.reason is RangeFailure.INVERTED_RANGE


class BackendCommandError(NetViewError):
    """The discovery backend rejected a command.

    Recoverable: the session state machine stays in its pre-transition
    state and the caller may retry.

    Attributes:
        command: Name of the rejected command (e.g. "start_scan").

    Examples:
        >>> raise BackendCommandError("Backend busy", command="stop_monitoring")
    """

    def __init__(self, message: str, command: Optional[str] = None,
                 details: Optional[dict] = None):
        details = details or {}
        if command:
            details["command"] = command
        super().__init__(message, details)
        self.command = command


class InvalidTransitionError(NetViewError):
    """A session transition was requested from a state that does not allow it.

    Raised when there are issues like:
    - Starting monitoring with no discovered hosts
    - Starting monitoring while a scan is streaming
    - Stopping monitoring that is not active
    """

    pass


class CommandInProgressError(InvalidTransitionError):
    """Another backend command is still awaiting its result.

    Only one command may be in flight per controller instance; callers
    should disable the triggering action until the first one completes.
    """

    pass


class StorageError(NetViewError):
    """Data persistence errors.

    Raised when there are issues with:
    - Reading/writing the scan history database
    - File permissions
    - Data corruption

    Examples:
        >>> raise StorageError("Failed to record scan", {"path": "/path/to/db"})
    """

    pass


class ConfigurationError(NetViewError):
    """Settings and configuration errors.

    Raised when there are issues with:
    - Invalid configuration values
    - Configuration file parsing

    Examples:
        >>> raise ConfigurationError("Invalid port list", {"value": "22,abc"})
    """

    pass

"""Configuration module for NetView.

Provides centralized configuration, logging, and exceptions.
"""
from config.constants import (
    INTERVALS,
    SCAN,
    STORAGE,
    Intervals,
    ScanConfig,
    StorageConfig,
)
from config.exceptions import (
    BackendCommandError,
    CommandInProgressError,
    ConfigurationError,
    InvalidTransitionError,
    NetViewError,
    RangeFailure,
    RangeSide,
    RangeValidationError,
    StorageError,
    ValidationError,
)
from config.logging_config import LogContext, get_logger, log_exception, setup_logging

__all__ = [
    # Constants
    "INTERVALS",
    "SCAN",
    "STORAGE",
    "Intervals",
    "ScanConfig",
    "StorageConfig",
    # Exceptions
    "NetViewError",
    "ValidationError",
    "RangeValidationError",
    "RangeSide",
    "RangeFailure",
    "BackendCommandError",
    "InvalidTransitionError",
    "CommandInProgressError",
    "StorageError",
    "ConfigurationError",
    # Logging
    "setup_logging",
    "get_logger",
    "log_exception",
    "LogContext",
]

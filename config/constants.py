"""Centralized constants and configuration for NetView.

This module contains the magic numbers, strings, and configuration values
used by the scan/monitor core. Centralizing them makes the code easier to
maintain and configure.

Usage:
    from config.constants import INTERVALS, SCAN, STORAGE

    # Access values
    poll_interval = INTERVALS.MONITOR_POLL_SECONDS
    default_ports = SCAN.DEFAULT_SERVICE_PORTS
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Intervals:
    """Time intervals for various operations (in seconds).

    All interval values are in seconds unless otherwise specified.
    """
    # Liveness monitoring
    MONITOR_POLL_SECONDS: float = 10.0

    # Simulated backend pacing (mirrors the streaming behaviour of a real scan)
    SIMULATED_FIRST_HOST_DELAY: float = 0.2
    SIMULATED_HOST_DELAY_MIN: float = 0.3
    SIMULATED_HOST_DELAY_MAX: float = 0.7

    # Worker shutdown
    THREAD_JOIN_TIMEOUT_SECONDS: float = 2.0


@dataclass(frozen=True)
class ScanConfig:
    """Scan request defaults and limits."""
    # Ports probed when the user has not configured any
    DEFAULT_SERVICE_PORTS: Tuple[int, ...] = (22, 80, 443, 8080, 445)

    # Valid TCP port range for user-entered port lists
    MIN_PORT: int = 1
    MAX_PORT: int = 65535

    # Scan history
    MAX_HISTORY_ITEMS: int = 10

    # Addresses commonly used by home/office gateways
    COMMON_GATEWAYS: Tuple[str, ...] = ("192.168.1.1", "192.168.0.1", "10.0.0.1")

    # Octet policy for the range normalizer
    EMPTY_OCTET_FILL: str = "0"
    EMPTY_LAST_END_OCTET_FILL: str = "255"


@dataclass(frozen=True)
class StorageConfig:
    """Storage and file-related configuration."""
    # Directory and file names
    DATA_DIR_NAME: str = ".netview"
    SETTINGS_FILE: str = "settings.json"
    HISTORY_DB_FILE: str = "scan_history.db"
    LOG_FILE: str = "netview.log"

    # Log rotation
    LOG_MAX_BYTES: int = 5_000_000  # 5MB
    LOG_BACKUP_COUNT: int = 3


# Singleton instances for easy import
INTERVALS = Intervals()
SCAN = ScanConfig()
STORAGE = StorageConfig()

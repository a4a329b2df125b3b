"""Data persistence components."""

from .history_store import ScanHistoryEntry, ScanHistoryStore
from .settings import (
    AppSettings,
    SettingsManager,
    SettingsSnapshot,
    Theme,
    get_settings_manager,
    parse_port_list,
)

__all__ = [
    "AppSettings",
    "ScanHistoryEntry",
    "ScanHistoryStore",
    "SettingsManager",
    "SettingsSnapshot",
    "Theme",
    "get_settings_manager",
    "parse_port_list",
]

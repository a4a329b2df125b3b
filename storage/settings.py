"""Settings management for NetView.

Persists the user's scan preferences (service ports, hidden-host
discovery, theme) and hands the scan core an immutable snapshot of them at
the moment a scan or monitoring session is requested.
"""
import json
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from config import SCAN, STORAGE, get_logger
from config.exceptions import ConfigurationError

logger = get_logger(__name__)


class Theme(Enum):
    """UI theme options."""
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


DEFAULT_PORTS_STRING = ", ".join(str(p) for p in SCAN.DEFAULT_SERVICE_PORTS)


def parse_port_list(text: Optional[str], strict: bool = False) -> List[int]:
    """Parse a comma-separated port list.

    Blank entries are dropped. Non-numeric or out-of-range entries are
    dropped too, unless ``strict`` is set.

    Raises:
        ConfigurationError: In strict mode, for the first invalid entry.

    Examples:
        >>> parse_port_list("22, 80,, 443")
        [22, 80, 443]
        >>> parse_port_list("22, abc, 70000")
        [22]
    """
    ports = []
    for part in (text or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            port = int(part)
        except ValueError:
            port = None
        if port is None or not SCAN.MIN_PORT <= port <= SCAN.MAX_PORT:
            if strict:
                raise ConfigurationError("Invalid port in port list", {"value": part})
            continue
        ports.append(port)
    return ports


@dataclass(frozen=True)
class SettingsSnapshot:
    """Read-only view of the settings a scan request is built from."""
    service_ports: Tuple[int, ...] = SCAN.DEFAULT_SERVICE_PORTS
    hidden_host_discovery_enabled: bool = False
    hidden_host_ports: Tuple[int, ...] = ()


@dataclass
class AppSettings:
    """Application settings.

    Port lists are kept as the comma-separated text the user typed, so an
    in-progress edit survives a restart.
    """
    custom_ports: str = DEFAULT_PORTS_STRING
    search_hidden_hosts: bool = False
    hidden_hosts_ports: str = ""
    theme: str = Theme.SYSTEM.value

    def to_dict(self) -> dict:
        return {
            "customPorts": self.custom_ports,
            "searchHiddenHosts": self.search_hidden_hosts,
            "hiddenHostsPorts": self.hidden_hosts_ports,
            "theme": self.theme,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'AppSettings':
        return cls(
            custom_ports=data.get("customPorts", DEFAULT_PORTS_STRING),
            search_hidden_hosts=bool(data.get("searchHiddenHosts", False)),
            hidden_hosts_ports=data.get("hiddenHostsPorts", ""),
            theme=data.get("theme", Theme.SYSTEM.value),
        )

    def snapshot(self) -> SettingsSnapshot:
        """Effective settings: custom ports fall back to the defaults when empty."""
        service_ports = tuple(parse_port_list(self.custom_ports)) or SCAN.DEFAULT_SERVICE_PORTS
        return SettingsSnapshot(
            service_ports=service_ports,
            hidden_host_discovery_enabled=self.search_hidden_hosts,
            hidden_host_ports=tuple(parse_port_list(self.hidden_hosts_ports)),
        )


class SettingsManager:
    """Manages application settings."""

    DEFAULT_SETTINGS_FILE = STORAGE.SETTINGS_FILE

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.settings_file = data_dir / self.DEFAULT_SETTINGS_FILE
        self._lock = threading.Lock()
        self._settings: AppSettings = AppSettings()
        self._load()

    def _load(self) -> None:
        """Load settings from file, falling back to defaults."""
        if self.settings_file.exists():
            try:
                with open(self.settings_file, 'r') as f:
                    data = json.load(f)
                self._settings = AppSettings.from_dict(data)
            except (json.JSONDecodeError, OSError, AttributeError) as e:
                logger.warning(f"Could not load settings, using defaults: {e}")
                self._settings = AppSettings()
        else:
            self._settings = AppSettings()

    def _save(self) -> None:
        """Save settings to file."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with open(self.settings_file, 'w') as f:
                json.dump(self._settings.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"Error saving settings: {e}")

    # === Ports ===

    def get_custom_ports(self) -> str:
        return self._settings.custom_ports

    def set_custom_ports(self, ports: str) -> None:
        with self._lock:
            self._settings.custom_ports = ports
            self._save()

    # === Hidden host discovery ===

    def get_search_hidden_hosts(self) -> bool:
        return self._settings.search_hidden_hosts

    def set_search_hidden_hosts(self, enabled: bool) -> None:
        with self._lock:
            self._settings.search_hidden_hosts = enabled
            self._save()

    def get_hidden_hosts_ports(self) -> str:
        return self._settings.hidden_hosts_ports

    def set_hidden_hosts_ports(self, ports: str) -> None:
        with self._lock:
            self._settings.hidden_hosts_ports = ports
            self._save()

    # === Theme ===

    def get_theme(self) -> str:
        return self._settings.theme

    def set_theme(self, theme: str) -> None:
        """Set the UI theme.

        Raises:
            ConfigurationError: If the theme name is not a Theme value.
        """
        try:
            Theme(theme)
        except ValueError:
            raise ConfigurationError("Unknown theme", {"value": theme})
        with self._lock:
            self._settings.theme = theme
            self._save()

    # === Snapshot ===

    def snapshot(self) -> SettingsSnapshot:
        """Immutable settings view taken at request time."""
        with self._lock:
            return self._settings.snapshot()


def get_settings_manager(data_dir: Optional[Path] = None) -> SettingsManager:
    """Create a settings manager for the given (or default) data directory."""
    if data_dir is None:
        data_dir = Path.home() / STORAGE.DATA_DIR_NAME
    return SettingsManager(data_dir)

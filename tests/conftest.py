"""Pytest configuration and shared fixtures.

This module provides:
- Common test fixtures for data directories, sample hosts, and mocks
- Pytest markers for test categorization (unit, integration, slow)
- A synchronous event bus so controller tests run deterministically
"""
import tempfile
from pathlib import Path
from typing import Any, Callable, Generator
from unittest.mock import MagicMock, patch

import pytest

from app.controller import DiscoverySessionController
from app.events import EventBus
from discovery.hosts import HostStore
from tests.mocks import MockBackend, MockSettingsManager

# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: mark test as a unit test (fast, isolated)")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# =============================================================================
# Directory and Path Fixtures
# =============================================================================


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test data."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def sample_host_data() -> dict[str, Any]:
    """A hostFound payload in wire format."""
    return {
        "ipAddress": "192.168.1.101",
        "hostname": "fileserver.lan",
        "macAddress": "12:34:56:78:9A:BC",
        "os": "Linux (Ubuntu Server)",
        "openPorts": [22, 445, 80, 443],
        "deviceType": "linux_server",
    }


@pytest.fixture
def three_hosts() -> list[dict[str, Any]]:
    """Three hostFound payloads, deliberately out of IP order."""
    return [
        {"ipAddress": "192.168.1.20", "hostname": "nas.local"},
        {"ipAddress": "192.168.1.3", "hostname": "printer.local", "macAddress": "AA:BB:CC:00:11:22"},
        {"ipAddress": "192.168.1.100", "hostname": "desktop.local"},
    ]


# =============================================================================
# Controller Fixtures
# =============================================================================


@pytest.fixture
def sync_bus() -> EventBus:
    """Event bus that dispatches on the publishing thread."""
    return EventBus(async_mode=False)


@pytest.fixture
def mock_backend() -> MockBackend:
    return MockBackend()


@pytest.fixture
def mock_settings() -> MockSettingsManager:
    return MockSettingsManager(custom_ports="22, 80", search_hidden_hosts=True,
                               hidden_hosts_ports="8081")


@pytest.fixture
def controller(mock_backend, mock_settings, sync_bus) -> Generator[DiscoverySessionController, None, None]:
    """An attached controller wired to a recording backend."""
    ctrl = DiscoverySessionController(
        backend=mock_backend,
        store=HostStore(),
        settings=mock_settings,
        event_bus=sync_bus,
    )
    ctrl.attach()
    yield ctrl
    ctrl.detach()


@pytest.fixture
def emit(sync_bus) -> Callable[[str, Any], None]:
    """Push backend events the way a backend would."""
    return sync_bus.backend_emitter()


@pytest.fixture
def run_scan(controller, emit) -> Callable[..., None]:
    """Run a complete scan that finds the given host payloads."""
    def _run(hosts, start="192.168.1.0", end="192.168.1.255", success=True):
        controller.request_scan(start, end)
        for host in hosts:
            emit("hostFound", host)
        emit("scanComplete", success)
    return _run


# =============================================================================
# Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_network_interface() -> Generator[MagicMock, None, None]:
    """Mock network interface detection."""
    def addr(family, address):
        entry = MagicMock(address=address, netmask="255.255.255.0")
        entry.family.name = family
        return entry

    with patch("psutil.net_if_addrs") as mock_addrs, patch("psutil.net_if_stats") as mock_stats:
        mock_addrs.return_value = {
            "lo0": [addr("AF_INET", "127.0.0.1")],
            "en0": [
                addr("AF_LINK", "a1:b2:c3:d4:e5:f6"),
                addr("AF_INET", "192.168.1.50"),
            ],
        }
        mock_stats.return_value = {
            "lo0": MagicMock(isup=True),
            "en0": MagicMock(isup=True),
        }
        yield mock_addrs


"""Tests for the simulated discovery backend."""
import threading
from unittest.mock import MagicMock

import pytest

from config.exceptions import BackendCommandError, StorageError
from discovery.backend import (
    HOST_FOUND,
    HOST_STATUS_UPDATE,
    SCAN_COMPLETE,
    SCAN_ERROR,
    ScanParameters,
)
from discovery.hosts import HostRecord
from discovery.ip_utils import parse_address
from discovery.range_normalizer import IPRange, normalize_range
from discovery.simulated import DEFAULT_HOSTS, SimulatedBackend


class Recorder:
    """Thread-safe emit() target."""

    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def __call__(self, name, payload=None):
        with self._lock:
            self.events.append((name, payload))

    def names(self):
        with self._lock:
            return [name for name, _ in self.events]


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def backend(recorder):
    b = SimulatedBackend(emit=recorder, host_delay=(0, 0), first_host_delay=0,
                         monitor_interval=60)
    yield b
    b.shutdown()


def params_for(start, end):
    return ScanParameters(ip_range=normalize_range(start, end), service_ports=(22, 80))


def hosts(*ips):
    return [HostRecord(ip_address=parse_address(ip)) for ip in ips]


class TestSimulatedScan:
    """Tests for streaming scans."""

    def test_scan_streams_hosts_in_range(self, backend, recorder):
        backend.start_scan(params_for("192.168.1.0", "192.168.1.255"))
        assert backend.wait_for_scan(5)

        names = recorder.names()
        assert names[-1] == SCAN_COMPLETE
        assert recorder.events[-1][1] is True
        found = [payload["ipAddress"] for name, payload in recorder.events if name == HOST_FOUND]
        assert found == ["192.168.1.1", "192.168.1.100", "192.168.1.101",
                         "192.168.1.102", "192.168.1.105"]

    def test_payloads_carry_device_type(self, backend, recorder):
        backend.start_scan(params_for("192.168.1.105", "192.168.1.105"))
        backend.wait_for_scan(5)

        payload = recorder.events[0][1]
        assert payload["hostname"] == "printer.corp"
        assert payload["deviceType"] == "printer"

    def test_empty_range_completes(self, backend, recorder):
        backend.start_scan(params_for("172.16.0.0", "172.16.0.255"))
        backend.wait_for_scan(5)
        assert recorder.events == [(SCAN_COMPLETE, True)]

    def test_inverted_range_reports_error(self, backend, recorder):
        ip_range = IPRange(start=parse_address("10.0.0.9"), end=parse_address("10.0.0.1"))
        backend.start_scan(ScanParameters(ip_range=ip_range, service_ports=(22,)))
        backend.wait_for_scan(5)

        assert recorder.names() == [SCAN_ERROR, SCAN_COMPLETE]
        assert recorder.events[1][1] is False

    def test_second_scan_while_running_rejected(self, recorder):
        slow = SimulatedBackend(emit=recorder, first_host_delay=5)
        try:
            slow.start_scan(params_for("192.168.1.0", "192.168.1.255"))
            with pytest.raises(BackendCommandError):
                slow.start_scan(params_for("10.0.0.0", "10.0.0.255"))
        finally:
            slow.shutdown()
        # Shutdown cuts the scan short but still completes it
        assert recorder.names() == [SCAN_COMPLETE]

    def test_scan_records_history(self, recorder):
        history = MagicMock()
        b = SimulatedBackend(emit=recorder, history=history, host_delay=(0, 0), first_host_delay=0)
        ip_range = normalize_range("10.0.0.0", "10.0.0.255")

        b.start_scan(ScanParameters(ip_range=ip_range, service_ports=(22,)))
        b.wait_for_scan(5)

        history.add_range.assert_called_once_with(ip_range)

    def test_history_failure_does_not_block_scan(self, recorder):
        history = MagicMock()
        history.add_range.side_effect = StorageError("disk full")
        b = SimulatedBackend(emit=recorder, history=history, host_delay=(0, 0), first_host_delay=0)

        b.start_scan(params_for("10.0.0.0", "10.0.0.255"))
        b.wait_for_scan(5)

        assert recorder.names() == [HOST_FOUND, HOST_FOUND, SCAN_COMPLETE]

    def test_history_without_store(self, backend):
        assert backend.get_scan_history() == []

    def test_custom_host_table(self, recorder):
        b = SimulatedBackend(emit=recorder, hosts=[{"ipAddress": "10.9.9.9", "deviceType": "linux_pc"}],
                             host_delay=(0, 0), first_host_delay=0)
        b.start_scan(params_for("10.9.9.0", "10.9.9.255"))
        b.wait_for_scan(5)
        assert recorder.events[0] == (HOST_FOUND, {"ipAddress": "10.9.9.9", "deviceType": "linux_pc"})

    def test_default_table_is_valid(self):
        assert all(parse_address(h["ipAddress"]) for h in DEFAULT_HOSTS)


class TestSimulatedMonitoring:
    """Tests for the liveness polling loop."""

    def test_start_and_stop(self, backend):
        backend.start_monitoring(hosts("192.168.1.1"), False, [])
        assert backend.is_monitoring_active() is True

        backend.stop_monitoring()
        assert backend.is_monitoring_active() is False

    def test_no_hosts_does_not_start(self, backend):
        backend.start_monitoring([], False, [])
        assert backend.is_monitoring_active() is False

    def test_stop_when_inactive(self, backend):
        backend.stop_monitoring()
        assert backend.is_monitoring_active() is False

    def test_emits_only_on_change(self, backend, recorder):
        """Hosts start online; only transitions are reported."""
        backend.start_monitoring(hosts("192.168.1.1", "192.168.1.100"), True, [8081])
        backend.perform_status_checks()
        assert HOST_STATUS_UPDATE not in recorder.names()

        backend.set_host_online("192.168.1.100", False)
        backend.perform_status_checks()
        backend.perform_status_checks()

        updates = [p for name, p in recorder.events if name == HOST_STATUS_UPDATE]
        assert updates == [{"ipAddress": "192.168.1.100", "isOnline": False}]

    def test_custom_probe(self, recorder):
        b = SimulatedBackend(emit=recorder, liveness_probe=lambda ip: ip != "10.0.0.50",
                             monitor_interval=60)
        try:
            b.start_monitoring(hosts("10.0.0.1", "10.0.0.50"), False, [])
            b.perform_status_checks()
        finally:
            b.shutdown()

        updates = [p for name, p in recorder.events if name == HOST_STATUS_UPDATE]
        assert updates == [{"ipAddress": "10.0.0.50", "isOnline": False}]

    def test_restart_replaces_monitored_set(self, backend, recorder):
        backend.start_monitoring(hosts("192.168.1.1"), False, [])
        backend.start_monitoring(hosts("192.168.1.100"), False, [])
        backend.set_host_online("192.168.1.1", False)
        backend.perform_status_checks()

        assert HOST_STATUS_UPDATE not in recorder.names()
        assert backend.is_monitoring_active() is True

"""Tests for host records and the host store."""
import threading

import pytest

from discovery.hosts import (
    DeviceType,
    HostRecord,
    HostStore,
    LivenessStatus,
    classify_device,
)
from discovery.ip_utils import parse_address


def ips(s):
    return [str(h.ip_address) for h in s.hosts()]


def record(ip, **kwargs):
    return HostRecord(ip_address=parse_address(ip), **kwargs)


@pytest.fixture
def store():
    s = HostStore()
    for ip, hostname, mac in [
        ("192.168.1.20", "NAS.local", "00:11:22:33:44:55"),
        ("192.168.1.3", "printer.local", "AA:BB:CC:DD:EE:FF"),
        ("10.0.0.1", "gateway.corp", None),
        ("192.168.1.100", None, "a1:b2:c3:d4:e5:f6"),
    ]:
        s.apply_discovered(record(ip, hostname=hostname, mac_address=mac))
    return s


class TestHostRecord:
    """Tests for HostRecord."""

    def test_from_dict(self, sample_host_data):
        host = HostRecord.from_dict(sample_host_data)
        assert str(host.ip_address) == "192.168.1.101"
        assert host.hostname == "fileserver.lan"
        assert host.open_ports == [22, 445, 80, 443]
        assert host.device_type is DeviceType.LINUX_SERVER
        assert host.status is LivenessStatus.UNKNOWN

    def test_to_dict_round_trip_fields(self, sample_host_data):
        """Wire format is camelCase and carries no local status."""
        data = HostRecord.from_dict(sample_host_data).to_dict()
        assert data == sample_host_data
        assert "status" not in data

    def test_minimal_payload(self):
        host = HostRecord.from_dict({"ipAddress": "10.0.0.1", "hostname": ""})
        assert host.hostname is None
        assert host.open_ports == []
        assert host.display_name == "10.0.0.1"

    def test_unknown_device_tag(self):
        host = HostRecord.from_dict({"ipAddress": "10.0.0.1", "deviceType": "toaster"})
        assert host.device_type is None

    @pytest.mark.parametrize("data", [{}, {"ipAddress": "10.0.0"}, {"ipAddress": "10.0.0.256"}])
    def test_invalid_ip(self, data):
        with pytest.raises(ValueError):
            HostRecord.from_dict(data)


class TestHostStore:
    """Tests for HostStore."""

    def test_hosts_in_ip_order(self, store):
        assert ips(store) == ["10.0.0.1", "192.168.1.3", "192.168.1.20", "192.168.1.100"]

    def test_addresses_are_valid(self, store):
        """Every address the store renders parses again."""
        assert all(parse_address(ip) is not None for ip in ips(store))

    def test_apply_discovered_new_and_replace(self):
        s = HostStore()
        assert s.apply_discovered(record("10.0.0.5", open_ports=[22])) is True
        assert s.apply_discovered(record("10.0.0.5", open_ports=[22, 80])) is False

        assert len(s) == 1
        assert s.get("10.0.0.5").open_ports == [22, 80]

    def test_same_record_twice_is_idempotent(self, store):
        before = store.hosts()
        store.apply_discovered(record("192.168.1.3", hostname="printer.local",
                                      mac_address="AA:BB:CC:DD:EE:FF"))
        assert store.hosts() == before

    def test_replace_keeps_status(self, store):
        store.apply_liveness("192.168.1.3", False)
        store.apply_discovered(record("192.168.1.3", hostname="renamed"))

        host = store.get("192.168.1.3")
        assert host.hostname == "renamed"
        assert host.status is LivenessStatus.OFFLINE

    def test_default_status_for_new_hosts(self):
        s = HostStore()
        s.apply_discovered(record("10.0.0.1"), default_status=LivenessStatus.ONLINE)
        assert s.get("10.0.0.1").status is LivenessStatus.ONLINE

    def test_incoming_status_is_ignored(self):
        s = HostStore()
        s.apply_discovered(record("10.0.0.1", status=LivenessStatus.OFFLINE))
        assert s.get("10.0.0.1").status is LivenessStatus.UNKNOWN

    def test_apply_liveness(self, store):
        assert store.apply_liveness("10.0.0.1", True) is True
        assert store.get("10.0.0.1").status is LivenessStatus.ONLINE
        assert store.apply_liveness("10.0.0.1", False) is True
        assert store.get("10.0.0.1").status is LivenessStatus.OFFLINE

    def test_apply_liveness_unknown_ip(self, store):
        """An unknown IP creates nothing."""
        assert store.apply_liveness("10.0.0.9", True) is False
        assert store.apply_liveness("garbage", True) is False
        assert len(store) == 4

    def test_reset(self, store):
        store.reset()
        assert len(store) == 0
        assert store.hosts() == []

    def test_mark_all_and_counts(self, store):
        store.mark_all(LivenessStatus.ONLINE)
        store.apply_liveness("10.0.0.1", False)
        counts = store.status_counts()
        assert counts[LivenessStatus.ONLINE] == 3
        assert counts[LivenessStatus.OFFLINE] == 1
        assert counts[LivenessStatus.UNKNOWN] == 0

    def test_readers_get_copies(self, store):
        host = store.get("10.0.0.1")
        host.hostname = "changed"
        host.open_ports.append(9999)
        assert store.get("10.0.0.1").hostname == "gateway.corp"
        assert store.get("10.0.0.1").open_ports == []

    def test_contains(self, store):
        assert "10.0.0.1" in store
        assert parse_address("192.168.1.3") in store
        assert "10.0.0.2" not in store
        assert None not in store

    def test_concurrent_discovery(self):
        s = HostStore()

        def worker(offset):
            for i in range(50):
                s.apply_discovered(record(f"10.0.{offset}.{i}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(s) == 200


class TestFilter:
    """Tests for HostStore.filter."""

    @pytest.mark.parametrize("term,expected", [
        ("", ["10.0.0.1", "192.168.1.3", "192.168.1.20", "192.168.1.100"]),
        ("192.168.1.1", ["192.168.1.100"]),
        ("nas", ["192.168.1.20"]),
        ("NAS", ["192.168.1.20"]),
        ("a1:B2", ["192.168.1.100"]),
        (".corp", ["10.0.0.1"]),
        ("zzz", []),
    ])
    def test_filter(self, store, term, expected):
        assert [str(h.ip_address) for h in store.filter(term)] == expected

    def test_term_is_not_trimmed(self, store):
        assert store.filter(" nas") == []

    @pytest.mark.parametrize("term", ["", "1", "local", "0", "a", "192.168"])
    def test_filter_is_ordered_subsequence(self, store, term):
        """filter() keeps the store's IP order and never mutates it."""
        full = ips(store)
        result = [str(h.ip_address) for h in store.filter(term)]

        positions = [full.index(ip) for ip in result]
        assert positions == sorted(positions)
        assert ips(store) == full


class TestClassifyDevice:
    """Tests for the device-type heuristic."""

    @pytest.mark.parametrize("ip,hostname,ports,expected", [
        ("192.168.1.105", "printer.corp", [80, 515, 631, 9100], DeviceType.PRINTER),
        ("192.168.1.50", "office", [9100], DeviceType.PRINTER),
        ("192.168.1.1", "router.local", [80, 443, 53], DeviceType.ROUTER_FIREWALL),
        ("10.0.0.1", None, [], DeviceType.ROUTER_FIREWALL),
        ("192.168.1.100", "my-desktop.local", [3389, 8080], DeviceType.WINDOWS_PC),
        ("192.168.1.60", "macbook-pro", [], DeviceType.MACOS_PC),
        ("192.168.1.61", "storage-linux", [22, 5000], DeviceType.LINUX_SERVER),
        ("192.168.1.62", "desk-linux", [22], DeviceType.LINUX_PC),
        ("192.168.1.63", "android-phone", [], DeviceType.ANDROID_MOBILE),
        ("192.168.1.102", "iphone-of-user.local", [], DeviceType.IOS_MOBILE),
        ("192.168.1.64", None, [], DeviceType.GENERIC_DEVICE),
    ])
    def test_classification(self, ip, hostname, ports, expected):
        assert classify_device(ip, hostname, ports) is expected

"""Tests for adapter discovery parsing and the populate-once connection cache."""

import json
import threading
import time

import pytest

from shellenv.core import connections as conn_mod
from shellenv.core.connections import (
    CacheState,
    ConnectionCache,
    linux_connections,
    parse_hardware_ports,
    parse_net_adapters,
    parse_netsh_wlan,
    parse_proc_wireless,
)
from shellenv.core.errors import ConnectionTypeNotFoundError, NoConnectionsFoundError
from shellenv.core.session_log import LogLevel
from shellenv.core.utils import Connection, ConnectionType

WIRED = Connection("eth0", ConnectionType.ETHERNET, transmit_rate=1000, receive_rate=1000)
WIRELESS = Connection("wlan0", ConnectionType.WIFI, ssid="home", signal=77)


class CountingDiscovery:
    """Discovery stub that remembers how often it ran."""

    def __init__(self, result):
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return list(self.result)


class SlowDiscovery(CountingDiscovery):
    """Discovery stub that takes long enough for callers to overlap."""

    def __call__(self):
        time.sleep(0.05)
        return super().__call__()


class TestConnectionCache:
    """Verify memoisation and the two distinct failure kinds."""

    def test_starts_unpopulated(self, logger) -> None:
        discover = CountingDiscovery([WIRED])
        cache = ConnectionCache(discover, logger)
        assert cache.state is CacheState.UNPOPULATED
        assert discover.calls == 0

    def test_lookup_returns_first_match(self, logger) -> None:
        second_wifi = Connection("wlan1", ConnectionType.WIFI)
        cache = ConnectionCache(CountingDiscovery([WIRED, WIRELESS, second_wifi]), logger)
        assert cache.get(ConnectionType.WIFI) is WIRELESS

    def test_discovery_runs_once(self, logger) -> None:
        """Repeated lookups of different types share one discovery."""
        discover = CountingDiscovery([WIRED, WIRELESS])
        cache = ConnectionCache(discover, logger)
        assert cache.get(ConnectionType.ETHERNET) is WIRED
        assert cache.get(ConnectionType.WIFI) is WIRELESS
        assert cache.get(ConnectionType.ETHERNET) is WIRED
        assert discover.calls == 1
        assert cache.state is CacheState.POPULATED

    def test_empty_discovery_fails_every_time_without_retry(self, logger) -> None:
        discover = CountingDiscovery([])
        cache = ConnectionCache(discover, logger)
        for _ in range(3):
            with pytest.raises(NoConnectionsFoundError):
                cache.get(ConnectionType.WIFI)
        assert discover.calls == 1
        assert cache.state is CacheState.EMPTY

    def test_type_not_found_is_distinct(self, logger) -> None:
        cache = ConnectionCache(CountingDiscovery([WIRED]), logger)
        with pytest.raises(ConnectionTypeNotFoundError) as info:
            cache.get(ConnectionType.CELLULAR)
        assert info.value.connection_type is ConnectionType.CELLULAR
        assert not isinstance(info.value, NoConnectionsFoundError)
        assert "cellular" in str(info.value)

    def test_failures_are_logged(self, logger) -> None:
        cache = ConnectionCache(CountingDiscovery([WIRED]), logger)
        with pytest.raises(ConnectionTypeNotFoundError):
            cache.get(ConnectionType.BLUETOOTH)
        errors = logger.filter(level=LogLevel.ERROR, function="connection")
        assert errors[-1].message == "Network type 'bluetooth' not found"

    def test_concurrent_lookups_discover_once(self, logger) -> None:
        """Racing first lookups share a single discovery run."""
        discover = SlowDiscovery([WIRED, WIRELESS])
        cache = ConnectionCache(discover, logger)
        results = []

        def lookup():
            results.append(cache.get(ConnectionType.WIFI))

        threads = [threading.Thread(target=lookup) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert discover.calls == 1
        assert results == [WIRELESS] * 8

    def test_connections_are_not_rediscovered(self, logger) -> None:
        discover = CountingDiscovery([WIRED])
        cache = ConnectionCache(discover, logger)
        assert cache.connections() == (WIRED,)
        discover.result = [WIRELESS]
        assert cache.connections() == (WIRED,)
        assert discover.calls == 1


class TestConnection:
    def test_identity_key(self) -> None:
        assert WIRELESS.key == ("wlan0", ConnectionType.WIFI)

    def test_read_only(self) -> None:
        with pytest.raises(AttributeError):
            WIRED.name = "eth1"  # type: ignore[misc]


PROC_WIRELESS = """\
Inter-| sta-|   Quality        |   Discarded packets               | Missed | WE
 face | tus | link level noise |  nwid  crypt   frag  retry   misc | beacon | 22
wlan0: 0000   54.  -56.  -256        0      0      0      0     14        0
wlan1: 0000   70.  -40.  -256        0      0      0      0      0        0
"""


class TestLinuxDiscovery:
    """Verify sysfs/procfs parsing against a fake tree."""

    @staticmethod
    def _iface(root, name, operstate="up", arp_type="1", speed=None, wireless=False):
        iface = root / name
        iface.mkdir()
        (iface / "operstate").write_text(operstate + "\n")
        (iface / "type").write_text(arp_type + "\n")
        if speed is not None:
            (iface / "speed").write_text(f"{speed}\n")
        if wireless:
            (iface / "wireless").mkdir()

    def test_parse_proc_wireless(self) -> None:
        """Link quality is out of 70 and reported as a percentage."""
        assert parse_proc_wireless(PROC_WIRELESS) == {"wlan0": 77, "wlan1": 100}

    def test_parse_proc_wireless_empty(self) -> None:
        assert parse_proc_wireless("") == {}

    def test_enumerates_active_adapters(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(conn_mod, "_linux_ssid", lambda name: "home")
        sys_root = tmp_path / "net"
        sys_root.mkdir()
        self._iface(sys_root, "lo", arp_type="772")
        self._iface(sys_root, "eth0", speed=1000)
        self._iface(sys_root, "eth1", operstate="down", speed=-1)
        self._iface(sys_root, "wlan0", wireless=True)
        self._iface(sys_root, "wwan0", arp_type="65534")
        self._iface(sys_root, "tun0", arp_type="65534")
        wireless = tmp_path / "wireless"
        wireless.write_text(PROC_WIRELESS)

        found = linux_connections(str(sys_root), str(wireless))

        assert found == [
            Connection("eth0", ConnectionType.ETHERNET, transmit_rate=1000, receive_rate=1000),
            Connection("wlan0", ConnectionType.WIFI, ssid="home", signal=77),
            Connection("wwan0", ConnectionType.CELLULAR),
        ]

    def test_missing_sysfs(self, tmp_path) -> None:
        assert linux_connections(str(tmp_path / "absent"), str(tmp_path / "absent")) == []


NETSH_OUTPUT = """
There is 1 interface on the system:

    Name                   : Wi-Fi
    Description            : Intel(R) Wi-Fi 6 AX201 160MHz
    GUID                   : 1b2c3d4e-0000-0000-0000-000000000000
    Physical address       : aa:bb:cc:dd:ee:ff
    State                  : connected
    SSID                   : CoffeeShop
    BSSID                  : 11:22:33:44:55:66
    Radio type             : 802.11ax
    Receive rate (Mbps)    : 866.7
    Transmit rate (Mbps)   : 573.5
    Signal                 : 92%
"""


class TestWindowsDiscovery:
    def test_parse_net_adapters(self) -> None:
        output = json.dumps(
            [
                {"Name": "Ethernet", "PhysicalMediaType": "802.3", "ReceiveLinkSpeed": 1000000000, "TransmitLinkSpeed": 1000000000},
                {"Name": "Wi-Fi", "PhysicalMediaType": "Native 802.11", "ReceiveLinkSpeed": 866700000, "TransmitLinkSpeed": 573500000},
                {"Name": "vEthernet (WSL)", "PhysicalMediaType": "Unspecified", "ReceiveLinkSpeed": 0, "TransmitLinkSpeed": 0},
            ]
        )
        assert parse_net_adapters(output) == [
            ("Ethernet", ConnectionType.ETHERNET, 1000, 1000),
            ("Wi-Fi", ConnectionType.WIFI, 573, 866),
        ]

    def test_parse_single_adapter_object(self) -> None:
        """ConvertTo-Json emits a bare object for one adapter."""
        output = json.dumps({"Name": "Cellular", "PhysicalMediaType": "Wireless WAN"})
        assert parse_net_adapters(output) == [("Cellular", ConnectionType.CELLULAR, 0, 0)]

    def test_parse_net_adapters_garbage(self) -> None:
        assert parse_net_adapters("not json") == []
        assert parse_net_adapters("") == []
        assert parse_net_adapters("null") == []
        assert parse_net_adapters("\"Ethernet\"") == []
        assert parse_net_adapters("[1, \"Wi-Fi\", null]") == []

    def test_parse_net_adapters_bad_speed(self) -> None:
        output = json.dumps({"Name": "Ethernet", "PhysicalMediaType": "802.3", "ReceiveLinkSpeed": "fast"})
        assert parse_net_adapters(output) == [("Ethernet", ConnectionType.ETHERNET, 0, 0)]

    def test_parse_netsh_wlan(self) -> None:
        info = parse_netsh_wlan(NETSH_OUTPUT)
        assert list(info) == ["Wi-Fi"]
        assert info["Wi-Fi"]["ssid"] == "CoffeeShop"
        assert info["Wi-Fi"]["signal"] == "92%"
        assert info["Wi-Fi"]["bssid"] == "11:22:33:44:55:66"


HARDWARE_PORTS = """
Hardware Port: Wi-Fi
Device: en0
Ethernet Address: aa:bb:cc:dd:ee:ff

Hardware Port: Thunderbolt Bridge
Device: bridge0
Ethernet Address: N/A

VLAN Configurations
===================
"""


class TestMacosDiscovery:
    def test_parse_hardware_ports(self) -> None:
        assert parse_hardware_ports(HARDWARE_PORTS) == [("Wi-Fi", "en0"), ("Thunderbolt Bridge", "bridge0")]

"""
Network adapter discovery and the per-environment connection cache.

Discovery is cross-platform: ``/sys/class/net`` + ``/proc/net/wireless`` (Linux),
``Get-NetAdapter`` + ``netsh wlan`` (Windows) and ``networksetup`` (macOS).
Each routine returns only adapters that are up; none of them raise.
"""

from __future__ import annotations

import json
import os
import re
import threading
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from shellenv.config import (
    PLATFORM,
    PROC_NET_WIRELESS,
    SYS_CLASS_NET,
    WIRELESS_QUALITY_MAX,
)
from shellenv.core.errors import ConnectionTypeNotFoundError, NoConnectionsFoundError
from shellenv.core.session_log import SessionLogger
from shellenv.core.utils import Connection, ConnectionType, run_command

Discovery = Callable[[], List[Connection]]


def _read(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as fh:
            return fh.read()
    except OSError:
        return ""


def _to_int(raw: str) -> int:
    try:
        return max(int(float(raw)), 0)
    except ValueError:
        return 0


# ── Linux ─────────────────────────────────────────────────────────────────────


def parse_proc_wireless(output: str) -> Dict[str, int]:
    """Map interface name to signal percent from ``/proc/net/wireless``."""
    signals: dict[str, int] = {}
    for line in output.splitlines()[2:]:
        name, sep, rest = line.partition(":")
        parts = rest.split()
        if not sep or len(parts) < 2:
            continue
        quality = _to_int(parts[1].rstrip("."))
        signals[name.strip()] = min(round(quality * 100 / WIRELESS_QUALITY_MAX), 100)
    return signals


def _linux_type(name: str, iface_dir: str) -> Optional[ConnectionType]:
    if os.path.isdir(os.path.join(iface_dir, "wireless")) or os.path.exists(os.path.join(iface_dir, "phy80211")):
        return ConnectionType.WIFI
    if name.startswith("bnep"):
        return ConnectionType.BLUETOOTH
    if name.startswith(("wwan", "wwp", "ppp", "rmnet")):
        return ConnectionType.CELLULAR
    # ARPHRD_ETHER
    if _read(os.path.join(iface_dir, "type")).strip() == "1":
        return ConnectionType.ETHERNET
    return None


def _linux_ssid(name: str) -> str:
    if not PLATFORM.iwgetid:
        return ""
    rc, stdout, _ = run_command([PLATFORM.iwgetid, name, "-r"], timeout=5)
    return stdout.strip() if rc == 0 else ""


def linux_connections(
    sys_root: str = SYS_CLASS_NET,
    wireless_path: str = PROC_NET_WIRELESS,
) -> List[Connection]:
    """Enumerate active adapters under *sys_root*."""
    if not os.path.isdir(sys_root):
        return []

    signals = parse_proc_wireless(_read(wireless_path))
    found: list[Connection] = []
    for name in sorted(os.listdir(sys_root)):
        iface_dir = os.path.join(sys_root, name)
        # Skip loopback, bridges, veth pairs and other software interfaces
        if name == "lo" or "/virtual/" in os.path.realpath(iface_dir):
            continue
        if _read(os.path.join(iface_dir, "operstate")).strip() != "up":
            continue
        conn_type = _linux_type(name, iface_dir)
        if conn_type is None:
            continue
        rate = _to_int(_read(os.path.join(iface_dir, "speed")).strip() or "0")
        if conn_type is ConnectionType.WIFI:
            found.append(Connection(name, conn_type, ssid=_linux_ssid(name), signal=signals.get(name, 0)))
        else:
            found.append(Connection(name, conn_type, transmit_rate=rate, receive_rate=rate))
    return found


# ── Windows ───────────────────────────────────────────────────────────────────

_NET_ADAPTER_QUERY = (
    "Get-NetAdapter | Where-Object Status -eq 'Up' | "
    "Select-Object Name,PhysicalMediaType,ReceiveLinkSpeed,TransmitLinkSpeed | ConvertTo-Json"
)

_WINDOWS_MEDIA_TYPES = {
    "802.3": ConnectionType.ETHERNET,
    "native 802.11": ConnectionType.WIFI,
    "wireless lan": ConnectionType.WIFI,
    "wireless wan": ConnectionType.CELLULAR,
    "bluetooth": ConnectionType.BLUETOOTH,
}


def parse_net_adapters(output: str) -> List[Tuple[str, ConnectionType, int, int]]:
    """Parse ``Get-NetAdapter`` JSON into *(name, type, tx_mbps, rx_mbps)*."""
    try:
        data = json.loads(output) if output.strip() else []
    except ValueError:
        return []
    if isinstance(data, dict):  # ConvertTo-Json unwraps single-element arrays
        data = [data]
    if not isinstance(data, list):
        return []

    adapters = []
    for item in data:
        if not isinstance(item, dict):
            continue
        media = str(item.get("PhysicalMediaType") or "").lower()
        conn_type = _WINDOWS_MEDIA_TYPES.get(media)
        if conn_type is None:
            continue
        tx = _to_int(str(item.get("TransmitLinkSpeed") or 0)) // 1_000_000
        rx = _to_int(str(item.get("ReceiveLinkSpeed") or 0)) // 1_000_000
        adapters.append((str(item.get("Name", "")), conn_type, tx, rx))
    return adapters


def parse_netsh_wlan(output: str) -> Dict[str, Dict[str, str]]:
    """Parse ``netsh wlan show interfaces`` into per-interface field maps."""
    interfaces: dict[str, dict[str, str]] = {}
    current: Optional[dict[str, str]] = None
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key, value = key.strip().lower(), value.strip()
        if key == "name":
            current = {}
            interfaces[value] = current
        elif current is not None:
            current[key] = value
    return interfaces


def windows_connections() -> List[Connection]:
    if not PLATFORM.powershell:
        return []
    _, stdout, _ = run_command([PLATFORM.powershell, "-NoProfile", "-Command", _NET_ADAPTER_QUERY])
    wlan: dict[str, dict[str, str]] = {}
    if PLATFORM.netsh:
        _, out, _ = run_command([PLATFORM.netsh, "wlan", "show", "interfaces"])
        wlan = parse_netsh_wlan(out)

    found: list[Connection] = []
    for name, conn_type, tx, rx in parse_net_adapters(stdout):
        info = wlan.get(name)
        if conn_type is ConnectionType.WIFI and info:
            found.append(
                Connection(
                    name,
                    conn_type,
                    ssid=info.get("ssid", ""),
                    signal=_to_int(info.get("signal", "0").rstrip("%")),
                    transmit_rate=_to_int(info.get("transmit rate (mbps)", "0")) or tx,
                    receive_rate=_to_int(info.get("receive rate (mbps)", "0")) or rx,
                )
            )
        else:
            found.append(Connection(name, conn_type, transmit_rate=tx, receive_rate=rx))
    return found


# ── macOS ─────────────────────────────────────────────────────────────────────


def parse_hardware_ports(output: str) -> List[Tuple[str, str]]:
    """Parse ``networksetup -listallhardwareports`` into *(port, device)* pairs."""
    return re.findall(r"Hardware Port:\s*(.+?)\s*\nDevice:\s*(\S+)", output)


def _macos_type(port: str) -> Optional[ConnectionType]:
    lowered = port.lower()
    if "wi-fi" in lowered or "airport" in lowered:
        return ConnectionType.WIFI
    if "bluetooth" in lowered:
        return ConnectionType.BLUETOOTH
    if "iphone" in lowered or "wwan" in lowered:
        return ConnectionType.CELLULAR
    if "ethernet" in lowered or "lan" in lowered or "thunderbolt" in lowered:
        return ConnectionType.ETHERNET
    return None


def macos_connections() -> List[Connection]:
    if not PLATFORM.networksetup or not PLATFORM.ifconfig:
        return []
    _, stdout, _ = run_command([PLATFORM.networksetup, "-listallhardwareports"])

    found: list[Connection] = []
    for port, device in parse_hardware_ports(stdout):
        conn_type = _macos_type(port)
        if conn_type is None:
            continue
        _, status, _ = run_command([PLATFORM.ifconfig, device], timeout=5)
        if "status: active" not in status:
            continue
        ssid = ""
        if conn_type is ConnectionType.WIFI:
            _, out, _ = run_command([PLATFORM.networksetup, "-getairportnetwork", device], timeout=5)
            m = re.search(r"Current Wi-Fi Network:\s*(.+)", out)
            ssid = m.group(1).strip() if m else ""
        found.append(Connection(device, conn_type, ssid=ssid))
    return found


def default_discovery() -> Discovery:
    """Return the adapter discovery routine for the host OS."""
    if PLATFORM.is_windows:
        return windows_connections
    if PLATFORM.is_macos:
        return macos_connections
    return linux_connections


# ── Cache ─────────────────────────────────────────────────────────────────────


class CacheState(Enum):
    UNPOPULATED = "unpopulated"
    EMPTY = "empty"
    POPULATED = "populated"


class ConnectionCache:
    """Runs discovery at most once and serves typed lookups from memory.

    An empty discovery result is cached too: every later lookup fails the
    same way without discovering again.
    """

    function = "connection"

    def __init__(self, discover: Discovery, logger: SessionLogger) -> None:
        self._discover = discover
        self._log = logger
        self._connections: Optional[Tuple[Connection, ...]] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> CacheState:
        if self._connections is None:
            return CacheState.UNPOPULATED
        return CacheState.POPULATED if self._connections else CacheState.EMPTY

    def connections(self) -> Tuple[Connection, ...]:
        """Return every discovered connection, discovering on first use."""
        with self._lock:
            if self._connections is None:
                self._connections = tuple(self._discover())
                self._log.debug(self.function, f"discovered {len(self._connections)} connection(s)")
            return self._connections

    def get(self, connection_type: ConnectionType) -> Connection:
        connections = self.connections()
        if not connections:
            err = NoConnectionsFoundError()
            self._log.error(self.function, str(err))
            raise err

        for conn in connections:
            if conn.type is connection_type:
                return conn

        err = ConnectionTypeNotFoundError(connection_type)
        self._log.error(self.function, str(err))
        raise err

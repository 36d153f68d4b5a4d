"""
Centralised runtime configuration and OS-detection helpers.
"""

import os
import platform
import shutil
from dataclasses import dataclass, field
from typing import Mapping, Optional

WINDOWS = "windows"
LINUX = "linux"
DARWIN = "darwin"
UNIX = "unix"


@dataclass(frozen=True)
class PlatformInfo:
    """Immutable snapshot of the host OS and available external tools."""

    system: str = field(default_factory=lambda: platform.system())  # Windows | Linux | Darwin
    release: str = field(default_factory=platform.release)
    is_windows: bool = field(default=False)
    is_linux: bool = field(default=False)
    is_macos: bool = field(default=False)
    is_wsl: bool = field(default=False)
    is_wsl2: bool = field(default=False)

    # Paths to external tools used for adapter discovery (None if not found on PATH)
    netsh: Optional[str] = None
    powershell: Optional[str] = None
    iwgetid: Optional[str] = None
    networksetup: Optional[str] = None
    ifconfig: Optional[str] = None

    def __post_init__(self) -> None:  # pragma: no cover — simple wiring
        object.__setattr__(self, "is_windows", self.system == "Windows")
        object.__setattr__(self, "is_linux", self.system == "Linux")
        object.__setattr__(self, "is_macos", self.system == "Darwin")

        # WSL kernels carry "microsoft" in their release string
        release = self.release.lower()
        object.__setattr__(self, "is_wsl", self.is_linux and "microsoft" in release)
        object.__setattr__(self, "is_wsl2", self.is_wsl and "wsl2" in release)

        for tool_name in ("netsh", "powershell", "iwgetid", "networksetup", "ifconfig"):
            object.__setattr__(self, tool_name, shutil.which(tool_name))

    @property
    def name(self) -> str:
        """Normalised platform tag: ``windows``, ``darwin`` or ``linux``."""
        if self.is_windows:
            return WINDOWS
        if self.is_macos:
            return DARWIN
        if self.is_linux:
            return LINUX
        return UNIX


# Singleton — instantiated once at import time.
PLATFORM = PlatformInfo()


def _parse_int(raw: str) -> int:
    try:
        return max(int(raw), 0)
    except ValueError:
        return 0


@dataclass(frozen=True)
class Flags:
    """Caller-supplied settings.

    *terminal_width* of ``0`` means "no override, ask the console".
    An empty *log_dir* keeps the session log in memory only.
    """

    terminal_width: int = 0
    trace: bool = False
    log_dir: str = ""

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "Flags":
        """Build flags from ``SHELLENV_*`` environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            terminal_width=_parse_int(env.get("SHELLENV_TERMINAL_WIDTH", "0")),
            trace=env.get("SHELLENV_TRACE", "").lower() in ("1", "true", "yes", "on"),
            log_dir=env.get("SHELLENV_LOG_DIR", ""),
        )


# Adapter discovery
DEFAULT_COMMAND_TIMEOUT = 10
SYS_CLASS_NET = "/sys/class/net"
PROC_NET_WIRELESS = "/proc/net/wireless"
# Linux reports Wi-Fi link quality out of 70
WIRELESS_QUALITY_MAX = 70

# Cache directory created below the platform cache root
CACHE_DIR_NAME = "shellenv"

"""
Shared utilities: result types, subprocess runner, fact formatting.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich import box

from shellenv.config import PLATFORM, DEFAULT_COMMAND_TIMEOUT

console = Console()
err_console = Console(stderr=True)

DWORD_MAX = 0xFFFFFFFF
QWORD_MAX = 0xFFFFFFFFFFFFFFFF


# ── Result types ──────────────────────────────────────────────────────────────


class RegistryValueType(Enum):
    STRING = "STRING"
    DWORD = "DWORD"
    QWORD = "QWORD"
    BINARY = "BINARY"


@dataclass(frozen=True)
class RegistryValue:
    """A decoded registry value.

    *string* is always the display form.  Exactly one of the typed payloads
    is set for the numeric and binary variants; a STRING carries none.
    """

    value_type: RegistryValueType
    string: str
    dword: Optional[int] = None
    qword: Optional[int] = None
    binary: Optional[bytes] = None

    def __post_init__(self) -> None:
        payloads = {
            RegistryValueType.DWORD: self.dword,
            RegistryValueType.QWORD: self.qword,
            RegistryValueType.BINARY: self.binary,
        }
        for tag, payload in payloads.items():
            if tag is self.value_type and payload is None:
                raise ValueError(f"{tag.value} value is missing its payload")
            if tag is not self.value_type and payload is not None:
                raise ValueError(f"{self.value_type.value} value cannot carry a {tag.value} payload")
        if self.dword is not None and not 0 <= self.dword <= DWORD_MAX:
            raise ValueError(f"DWORD out of range: {self.dword}")
        if self.qword is not None and not 0 <= self.qword <= QWORD_MAX:
            raise ValueError(f"QWORD out of range: {self.qword}")

    @classmethod
    def from_string(cls, value: str) -> "RegistryValue":
        return cls(RegistryValueType.STRING, value)

    @classmethod
    def from_dword(cls, value: int) -> "RegistryValue":
        return cls(RegistryValueType.DWORD, f"0x{value:08X}", dword=value)

    @classmethod
    def from_qword(cls, value: int) -> "RegistryValue":
        return cls(RegistryValueType.QWORD, f"0x{value:016X}", qword=value)

    @classmethod
    def from_binary(cls, value: bytes) -> "RegistryValue":
        # Lossy for non-text data: undecodable bytes become U+FFFD.
        return cls(RegistryValueType.BINARY, value.decode("utf-8", errors="replace"), binary=value)

    def __str__(self) -> str:
        return self.string


class ConnectionType(Enum):
    ETHERNET = "ethernet"
    WIFI = "wifi"
    CELLULAR = "cellular"
    BLUETOOTH = "bluetooth"


@dataclass(frozen=True)
class Connection:
    """One active network adapter, as seen by adapter discovery."""

    name: str
    type: ConnectionType
    ssid: str = ""
    signal: int = 0  # percent, Wi-Fi / cellular only
    transmit_rate: int = 0  # Mbps
    receive_rate: int = 0  # Mbps

    @property
    def key(self) -> Tuple[str, ConnectionType]:
        return self.name, self.type


class PathDirection(Enum):
    TO_WINDOWS = "windows"
    TO_LINUX = "linux"


# ── Subprocess wrapper ────────────────────────────────────────────────────────


def run_command(
    cmd: list[str],
    timeout: int = DEFAULT_COMMAND_TIMEOUT,
) -> Tuple[int, str, str]:
    """Run an external command and return *(returncode, stdout, stderr)*.

    Output is decoded leniently so OEM-codepage bytes never crash discovery.
    """
    kwargs: dict = dict(
        timeout=timeout,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )

    if PLATFORM.is_windows:
        # Hide the console window that some tools try to spawn
        si = subprocess.STARTUPINFO()  # type: ignore[attr-defined]
        si.dwFlags |= subprocess.STARTF_USESHOWWINDOW  # type: ignore[attr-defined]
        kwargs["startupinfo"] = si

    try:
        proc = subprocess.run(cmd, **kwargs)
        stdout = proc.stdout.decode("utf-8", errors="replace") if proc.stdout else ""
        stderr = proc.stderr.decode("utf-8", errors="replace") if proc.stderr else ""
        return proc.returncode, stdout, stderr
    except FileNotFoundError:
        return -1, "", f"Command not found: {cmd[0]}"
    except subprocess.TimeoutExpired:
        return -2, "", f"Command timed out after {timeout}s"
    except Exception as exc:
        return -3, "", str(exc)


# ── Pretty printing ──────────────────────────────────────────────────────────


def print_facts(title: str, facts: List[Tuple[str, str]]) -> None:
    """Render *(label, value)* pairs as a two-column panel."""
    table = Table(box=None, show_header=False, padding=(0, 2))
    table.add_column(style="bold bright_cyan", no_wrap=True)
    table.add_column(style="white")
    for label, value in facts:
        table.add_row(label, Text(value) if value else Text("(empty)", style="dim"))

    console.print(
        Panel(
            table,
            title=Text(f" {title} ", style="bold white on green"),
            title_align="left",
            border_style="green",
            box=box.ROUNDED,
            expand=True,
            padding=(0, 1),
        )
    )


def print_value(value: object) -> None:
    console.print(str(value), highlight=False, markup=False)


def print_error(message: str) -> None:
    err_console.print(f"  [bold red]✘[/bold red] [red]{escape(message)}[/red]")

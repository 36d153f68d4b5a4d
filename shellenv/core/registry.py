"""
Windows registry lookups.

A registry path looks like::

    HKLM\\Software\\Microsoft\\Windows NT\\CurrentVersion\\EditionID
     1  |                  2                          |    3

1. the root hive alias, 2. the key path to open, 3. the value name.
A path ending in ``\\`` selects the key's ``(Default)`` value.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Tuple

from shellenv.config import PLATFORM
from shellenv.core.errors import (
    MalformedPathError,
    RegistryError,
    StoreAccessError,
    UnknownRootError,
    UnsupportedValueTypeError,
)
from shellenv.core.session_log import SessionLogger
from shellenv.core.utils import RegistryValue

SEPARATOR = "\\"

ROOT_ALIASES = {
    "HKCR": "HKEY_CLASSES_ROOT",
    "HKEY_CLASSES_ROOT": "HKEY_CLASSES_ROOT",
    "HKCC": "HKEY_CURRENT_CONFIG",
    "HKEY_CURRENT_CONFIG": "HKEY_CURRENT_CONFIG",
    "HKCU": "HKEY_CURRENT_USER",
    "HKEY_CURRENT_USER": "HKEY_CURRENT_USER",
    "HKLM": "HKEY_LOCAL_MACHINE",
    "HKEY_LOCAL_MACHINE": "HKEY_LOCAL_MACHINE",
    "HKU": "HKEY_USERS",
    "HKEY_USERS": "HKEY_USERS",
}

# Native value type codes (winnt.h)
REG_SZ = 1
REG_EXPAND_SZ = 2
REG_BINARY = 3
REG_DWORD = 4
REG_QWORD = 11

STRING_TYPES = (REG_SZ, REG_EXPAND_SZ)


def parse_registry_path(path: str) -> Tuple[str, str, str]:
    """Split *path* into *(hive, key_path, value_name)*.

    The hive is returned in its long form whichever alias was used.
    """
    root, found, rest = path.partition(SEPARATOR)
    if not found:
        raise MalformedPathError(path)

    hive = ROOT_ALIASES.get(root)
    if hive is None:
        raise UnknownRootError(root, path)

    key_path, _, value_name = rest.rpartition(SEPARATOR)
    return hive, key_path, value_name


# ── Stores ────────────────────────────────────────────────────────────────────


class RegistryStore:
    """Read-only access to a hierarchical configuration store.

    Both methods raise :class:`OSError` with the native detail on failure.
    """

    def open_key(self, hive: str, key_path: str) -> Any:
        """Context manager yielding an open key handle."""
        raise NotImplementedError

    def query_value(self, key: Any, name: str) -> Tuple[Any, int]:
        """Return *(data, type_code)* for value *name* of an open key."""
        raise NotImplementedError


class WinRegStore(RegistryStore):
    """The real Windows registry, via :mod:`winreg`."""

    @contextmanager
    def open_key(self, hive: str, key_path: str) -> Iterator[Any]:
        import winreg

        handle = winreg.OpenKey(getattr(winreg, hive), key_path, 0, winreg.KEY_READ)
        with handle:
            yield handle

    def query_value(self, key: Any, name: str) -> Tuple[Any, int]:
        import winreg

        return winreg.QueryValueEx(key, name)


class UnavailableStore(RegistryStore):
    """Stand-in for hosts without a registry; every open fails."""

    def open_key(self, hive: str, key_path: str) -> Any:
        raise OSError(f"the registry is not available on {PLATFORM.name}")

    def query_value(self, key: Any, name: str) -> Tuple[Any, int]:
        raise OSError(f"the registry is not available on {PLATFORM.name}")


def default_store() -> RegistryStore:
    if PLATFORM.is_windows:
        return WinRegStore()
    return UnavailableStore()


# ── Decoder ───────────────────────────────────────────────────────────────────


class RegistryDecoder:
    """Resolve a registry path and decode its value into a :class:`RegistryValue`."""

    function = "windows_registry_key_value"

    def __init__(self, store: RegistryStore, logger: SessionLogger) -> None:
        self._store = store
        self._log = logger

    def key_value(self, path: str) -> RegistryValue:
        try:
            hive, key_path, value_name = parse_registry_path(path)
        except RegistryError as exc:
            self._log.error(self.function, str(exc))
            raise
        self._log.debug(self.function, f"resolved {hive}, key '{key_path}', value '{value_name}'")

        try:
            with self._store.open_key(hive, key_path) as key:
                self._log.debug(self.function, f"opened {hive}\\{key_path}")
                data, type_code = self._store.query_value(key, value_name)
        except OSError as exc:
            self._log.error(self.function, str(exc))
            raise StoreAccessError(str(exc), path) from exc

        try:
            value = decode_value(data, type_code)
        except UnsupportedValueTypeError as exc:
            exc.path = path
            self._log.error(self.function, str(exc))
            raise

        self._log.debug(self.function, f"{value_name}({value.value_type.value}): {value.string}")
        return value


def decode_value(data: Any, type_code: int) -> RegistryValue:
    """Turn native *(data, type_code)* into exactly one :class:`RegistryValue` variant."""
    if type_code in STRING_TYPES:
        return RegistryValue.from_string(data)
    if type_code == REG_DWORD:
        return RegistryValue.from_dword(data)
    if type_code == REG_QWORD:
        return RegistryValue.from_qword(data)
    if type_code == REG_BINARY:
        # winreg hands back None for an empty binary value
        return RegistryValue.from_binary(bytes(data or b""))
    raise UnsupportedValueTypeError(type_code)

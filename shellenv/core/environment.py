"""
The environment facade — the one object prompt segments talk to.

Every public method runs inside :meth:`ShellEnvironment._traced`, which
closes a trace span on exit and logs the result (Debug) or the error text
(Error) before the error is re-raised.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional

from shellenv.config import Flags
from shellenv.core.connections import ConnectionCache, Discovery, default_discovery
from shellenv.core.probe import PlatformProbe, default_probe_class
from shellenv.core.registry import RegistryDecoder, RegistryStore, default_store
from shellenv.core.session_log import SessionLogger
from shellenv.core.utils import Connection, ConnectionType, PathDirection, RegistryValue


class _Outcome:
    """Holder the traced block fills in so the result can be logged."""

    __slots__ = ("value",)

    def __init__(self) -> None:
        self.value: Any = None


class ShellEnvironment:
    """Host facts for one process run.

    Owns its connection cache, which is never shared between instances.
    The logger defaults to the process-wide session logger.
    """

    def __init__(
        self,
        flags: Optional[Flags] = None,
        probe: Optional[PlatformProbe] = None,
        registry_store: Optional[RegistryStore] = None,
        discover: Optional[Discovery] = None,
        logger: Optional[SessionLogger] = None,
    ) -> None:
        self.flags = flags or Flags()
        self.logger = logger or SessionLogger.get(self.flags.log_dir)
        self._probe = probe or default_probe_class()(self.logger)
        self._registry = RegistryDecoder(registry_store or default_store(), self.logger)
        self._connections = ConnectionCache(discover or default_discovery(), self.logger)

    @contextmanager
    def _traced(self, function: str, *args: object) -> Iterator[_Outcome]:
        start = time.perf_counter()
        outcome = _Outcome()
        try:
            yield outcome
        except Exception as exc:
            self.logger.error(function, str(exc))
            raise
        else:
            self.logger.debug(function, str(outcome.value))
        finally:
            self.logger.trace(start, function, *args)

    def _call(self, function: str, query: Callable[[], Any], *args: object) -> Any:
        with self._traced(function, *args) as outcome:
            outcome.value = query()
        return outcome.value

    # ── Identity ──────────────────────────────────────────────────────────

    def platform(self) -> str:
        return self._call("platform", self._probe.platform)

    def is_elevated(self) -> bool:
        return self._call("is_elevated", self._probe.is_elevated)

    def home(self) -> str:
        return self._call("home", self._probe.home_directory)

    def getenv(self, key: str) -> str:
        return self._call("getenv", lambda: self._probe.getenv(key), key)

    # ── Console ───────────────────────────────────────────────────────────

    def terminal_width(self) -> int:
        """Console width in columns; the ``terminal_width`` flag wins when non-zero.

        Raises:
            ConsoleQueryError: the console could not be opened or read.
        """
        return self._call("terminal_width", lambda: self._probe.terminal_width(self.flags.terminal_width))

    # ── Filesystem ────────────────────────────────────────────────────────

    def dir_is_writable(self, path: str) -> bool:
        return self._call("dir_is_writable", lambda: self._probe.dir_is_writable(path), path)

    def convert_path(self, path: str, direction: PathDirection) -> str:
        return self._call("convert_path", lambda: self._probe.convert_path(path, direction), path, direction.value)

    def convert_to_windows_path(self, path: str) -> str:
        return self.convert_path(path, PathDirection.TO_WINDOWS)

    def convert_to_linux_path(self, path: str) -> str:
        return self.convert_path(path, PathDirection.TO_LINUX)

    def cache_path(self) -> str:
        return self._call("cache_path", self._probe.cache_path)

    # ── WSL ───────────────────────────────────────────────────────────────

    def is_wsl(self) -> bool:
        return self._call("is_wsl", self._probe.is_wsl)

    def is_wsl2(self) -> bool:
        return self._call("is_wsl2", self._probe.is_wsl2)

    def in_wsl_shared_drive(self) -> bool:
        return self._call("in_wsl_shared_drive", self._probe.in_wsl_shared_drive)

    # ── Registry ──────────────────────────────────────────────────────────

    def windows_registry_key_value(self, path: str) -> RegistryValue:
        """Read a registry value such as ``HKLM\\Software\\...\\EditionID``.

        A trailing ``\\`` reads the key's default value.

        Raises:
            MalformedPathError: *path* has no separator.
            UnknownRootError: the root alias is not a known hive.
            StoreAccessError: the key or value could not be read.
            UnsupportedValueTypeError: the value type has no decoder.
        """
        return self._call("windows_registry_key_value", lambda: self._registry.key_value(path), path)

    # ── Network ───────────────────────────────────────────────────────────

    def connection(self, connection_type: ConnectionType) -> Connection:
        """First active adapter of *connection_type*.

        Adapters are discovered once per instance.

        Raises:
            NoConnectionsFoundError: discovery found no adapters at all.
            ConnectionTypeNotFoundError: none of the adapters has that type.
        """
        return self._call("connection", lambda: self._connections.get(connection_type), connection_type.value)

    def connections(self) -> List[Connection]:
        return self._call("connections", lambda: list(self._connections.connections()))

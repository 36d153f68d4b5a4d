"""
Failure kinds raised by the environment layer.

Every error is logged where it is detected and then raised to the
caller, who decides how to surface it (usually by hiding a prompt segment).
"""

from __future__ import annotations


class ShellEnvError(Exception):
    """Base class for every environment query failure."""


class ConsoleQueryError(ShellEnvError):
    """Raise when the console geometry cannot be read."""


# ── Registry ──────────────────────────────────────────────────────────────────


class RegistryError(ShellEnvError):
    """Base class for registry lookups."""

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class MalformedPathError(RegistryError):
    """Raise when a registry path has no separator after the root."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Error, malformed registry path: '{path}'", path)


class UnknownRootError(RegistryError):
    """Raise when the root alias is not a recognised hive."""

    def __init__(self, root: str, path: str = "") -> None:
        super().__init__(f"Error, unknown registry key: '{root}'", path)
        self.root = root


class StoreAccessError(RegistryError):
    """Raise when the store refuses to open a key or read a value."""


class UnsupportedValueTypeError(RegistryError):
    """Raise when a value has a type with no decoder."""

    def __init__(self, type_code: int, path: str = "") -> None:
        super().__init__(f"Error, no formatter for type: {type_code}", path)
        self.type_code = type_code


# ── Connections ───────────────────────────────────────────────────────────────


class ConnectionLookupError(ShellEnvError):
    """Base class for network connection lookups."""


class NoConnectionsFoundError(ConnectionLookupError):
    """Raise when adapter discovery found nothing at all."""

    def __init__(self) -> None:
        super().__init__("No connections found")


class ConnectionTypeNotFoundError(ConnectionLookupError):
    """Raise when no discovered adapter has the requested type."""

    def __init__(self, connection_type: object) -> None:
        label = getattr(connection_type, "value", connection_type)
        super().__init__(f"Network type '{label}' not found")
        self.connection_type = connection_type

"""
Per-OS host queries — privilege level, home directory, console width,
directory permissions and path separators.

One probe class exists per platform family.  The right one is picked once
from :data:`shellenv.config.PLATFORM`; callers never branch on the OS.
"""

from __future__ import annotations

import os
import stat
import sys
from typing import Mapping, Optional, Type

from shellenv.config import PLATFORM, CACHE_DIR_NAME, WINDOWS, UNIX
from shellenv.core.errors import ConsoleQueryError
from shellenv.core.session_log import SessionLogger
from shellenv.core.utils import PathDirection


class PlatformProbe:
    """Behaviour shared by every platform; subclasses fill in the OS calls."""

    name = PLATFORM.name

    def __init__(
        self,
        logger: SessionLogger,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._log = logger
        self._environ = os.environ if environ is None else environ

    def getenv(self, key: str) -> str:
        return self._environ.get(key, "")

    def platform(self) -> str:
        return self.name

    # ── Identity ──────────────────────────────────────────────────────────

    def is_elevated(self) -> bool:
        raise NotImplementedError

    def home_directory(self) -> str:
        raise NotImplementedError

    # ── Console ───────────────────────────────────────────────────────────

    def terminal_width(self, override: int = 0) -> int:
        """Return *override* when set, otherwise the console's column count."""
        if override:
            return override
        try:
            return self._console_columns()
        except (OSError, ValueError) as exc:
            self._log.error("terminal_width", str(exc))
            raise ConsoleQueryError(str(exc)) from exc

    def _console_columns(self) -> int:
        raise NotImplementedError

    # ── Filesystem ────────────────────────────────────────────────────────

    def dir_is_writable(self, path: str) -> bool:
        """True when *path* is a directory with the owner write bit set."""
        try:
            info = os.stat(path)
        except (OSError, ValueError) as exc:
            self._log.error("dir_is_writable", str(exc))
            return False

        if not stat.S_ISDIR(info.st_mode):
            self._log.error("dir_is_writable", "Path isn't a directory")
            return False

        if not info.st_mode & stat.S_IWUSR:
            self._log.error("dir_is_writable", "Write permission bit is not set on this file for user")
            return False

        return True

    def convert_path(self, path: str, direction: PathDirection) -> str:
        raise NotImplementedError

    def cache_path(self) -> str:
        """Return this tool's cache directory, creating it when needed."""
        cache = self._build_cache_path(self._cache_root())
        if cache:
            return cache
        return self.home_directory()

    def _cache_root(self) -> str:
        raise NotImplementedError

    def _build_cache_path(self, base: str) -> str:
        if not base or not os.path.isdir(base):
            return ""
        cache = os.path.join(base, CACHE_DIR_NAME)
        try:
            os.makedirs(cache, exist_ok=True)
        except OSError as exc:
            self._log.error("cache_path", str(exc))
            return ""
        return cache

    # ── WSL ───────────────────────────────────────────────────────────────

    def is_wsl(self) -> bool:
        return False

    def is_wsl2(self) -> bool:
        return False

    def in_wsl_shared_drive(self, cwd: str = "") -> bool:
        return False


class WindowsProbe(PlatformProbe):
    """Win32 implementation (ctypes for the security and console APIs)."""

    name = WINDOWS

    def is_elevated(self) -> bool:
        """True when the process token is a member of BUILTIN\\Administrators."""
        try:
            return _token_in_administrators()
        except (OSError, AttributeError) as exc:
            self._log.error("is_elevated", str(exc))
            return False

    def home_directory(self) -> str:
        home = self.getenv("HOME")
        if home:
            return home
        # Fall back to older implementations on Windows
        drive, path = self.getenv("HOMEDRIVE"), self.getenv("HOMEPATH")
        if drive and path:
            return drive + path
        return self.getenv("USERPROFILE")

    def _console_columns(self) -> int:
        return _console_buffer_columns()

    def convert_path(self, path: str, direction: PathDirection) -> str:
        if direction is PathDirection.TO_WINDOWS:
            return path.replace("\\", "/")
        return path

    def _cache_root(self) -> str:
        return self.getenv("LOCALAPPDATA")


class UnixProbe(PlatformProbe):
    """Linux, macOS and WSL implementation."""

    def __init__(
        self,
        logger: SessionLogger,
        environ: Optional[Mapping[str, str]] = None,
        release: Optional[str] = None,
    ) -> None:
        super().__init__(logger, environ)
        self._release = (PLATFORM.release if release is None else release).lower()
        self.name = UNIX if PLATFORM.is_windows else PLATFORM.name

    def is_elevated(self) -> bool:
        try:
            return os.geteuid() == 0
        except AttributeError as exc:
            self._log.error("is_elevated", str(exc))
            return False

    def home_directory(self) -> str:
        home = self.getenv("HOME")
        if home:
            return home
        try:
            import pwd

            return pwd.getpwuid(os.getuid()).pw_dir
        except (ImportError, KeyError, AttributeError) as exc:
            self._log.error("home_directory", str(exc))
            return ""

    def _console_columns(self) -> int:
        stream = sys.stdout or sys.__stdout__
        if stream is None:
            raise OSError("stdout is not attached to a console")
        return os.get_terminal_size(stream.fileno()).columns

    def convert_path(self, path: str, direction: PathDirection) -> str:
        if direction is PathDirection.TO_WINDOWS:
            return path.replace("/", "\\")
        return path.replace("\\", "/")

    def _cache_root(self) -> str:
        xdg = self.getenv("XDG_CACHE_HOME")
        if xdg:
            return xdg
        home = self.getenv("HOME")
        return os.path.join(home, ".cache") if home else ""

    def is_wsl(self) -> bool:
        return "microsoft" in self._release

    def is_wsl2(self) -> bool:
        return self.is_wsl() and "wsl2" in self._release

    def in_wsl_shared_drive(self, cwd: str = "") -> bool:
        if not self.is_wsl2():
            return False
        if not cwd:
            try:
                cwd = os.getcwd()
            except OSError as exc:
                self._log.error("in_wsl_shared_drive", str(exc))
                return False
        return cwd.startswith("/mnt/")


def default_probe_class() -> Type[PlatformProbe]:
    """Return the probe implementation for the host OS."""
    if PLATFORM.is_windows:
        return WindowsProbe
    return UnixProbe


# ── Win32 calls ───────────────────────────────────────────────────────────────

SECURITY_NT_AUTHORITY = (0, 0, 0, 0, 0, 5)
SECURITY_BUILTIN_DOMAIN_RID = 0x20
DOMAIN_ALIAS_RID_ADMINS = 0x220

GENERIC_READ = 0x80000000
GENERIC_WRITE = 0x40000000
FILE_SHARE_READ = 0x1
FILE_SHARE_WRITE = 0x2
OPEN_EXISTING = 3


def _token_in_administrators() -> bool:
    import ctypes
    from ctypes import wintypes

    advapi32 = ctypes.WinDLL("advapi32", use_last_error=True)
    authority = (ctypes.c_ubyte * 6)(*SECURITY_NT_AUTHORITY)
    sid = ctypes.c_void_p()
    if not advapi32.AllocateAndInitializeSid(
        ctypes.byref(authority),
        2,
        SECURITY_BUILTIN_DOMAIN_RID,
        DOMAIN_ALIAS_RID_ADMINS,
        0, 0, 0, 0, 0, 0,
        ctypes.byref(sid),
    ):
        raise ctypes.WinError(ctypes.get_last_error())
    try:
        member = wintypes.BOOL()
        # A NULL token means "the calling thread's effective token"
        if not advapi32.CheckTokenMembership(None, sid, ctypes.byref(member)):
            raise ctypes.WinError(ctypes.get_last_error())
        return bool(member.value)
    finally:
        advapi32.FreeSid(sid)


def _console_buffer_columns() -> int:
    import ctypes
    from ctypes import wintypes

    class COORD(ctypes.Structure):
        _fields_ = [("X", wintypes.SHORT), ("Y", wintypes.SHORT)]

    class CONSOLE_SCREEN_BUFFER_INFO(ctypes.Structure):
        _fields_ = [
            ("dwSize", COORD),
            ("dwCursorPosition", COORD),
            ("wAttributes", wintypes.WORD),
            ("srWindow", wintypes.SMALL_RECT),
            ("dwMaximumWindowSize", COORD),
        ]

    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    kernel32.CreateFileW.restype = wintypes.HANDLE
    handle = kernel32.CreateFileW(
        "CONOUT$",
        GENERIC_READ | GENERIC_WRITE,
        FILE_SHARE_READ | FILE_SHARE_WRITE,
        None,
        OPEN_EXISTING,
        0,
        None,
    )
    if handle is None or handle == wintypes.HANDLE(-1).value:
        raise ctypes.WinError(ctypes.get_last_error())
    try:
        info = CONSOLE_SCREEN_BUFFER_INFO()
        if not kernel32.GetConsoleScreenBufferInfo(wintypes.HANDLE(handle), ctypes.byref(info)):
            raise ctypes.WinError(ctypes.get_last_error())
        return int(info.dwSize.X)
    finally:
        kernel32.CloseHandle(wintypes.HANDLE(handle))

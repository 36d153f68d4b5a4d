"""
Session logger — records every environment query and its outcome.

The logger is a lightweight singleton.  Call ``SessionLogger.get()`` to
obtain the instance, then ``.log(level, function, message)`` for results and
``.trace(start, function, *args)`` when a query returns.

Entries are kept in memory.  When a log directory is configured they are also
appended to ``<log_dir>/session_<timestamp>.jsonl``.
"""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from rich.markup import escape
from rich.table import Table
from rich import box

from shellenv.core.utils import err_console


class LogLevel(Enum):
    DEBUG = "debug"
    ERROR = "error"


@dataclass(frozen=True)
class LogEntry:
    """A single log line or completed trace span."""

    level: LogLevel
    function: str
    message: str = ""
    duration_ms: Optional[float] = None
    timestamp: str = field(default_factory=lambda: datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3])

    @property
    def is_trace(self) -> bool:
        return self.duration_ms is not None

    def __str__(self) -> str:
        if self.is_trace:
            return f"[TRACE] {self.function}({self.message}) - {self.duration_ms:.3f} ms"
        return f"[{self.level.name}] {self.function}: {self.message}"


class SessionLogger:
    """Append-only log for a single process run."""

    _instance: Optional["SessionLogger"] = None

    def __init__(self, log_dir: str = "") -> None:
        self._log_path = ""
        if log_dir:
            ts = datetime.now().strftime("%Y%m%d_%H%M%S")
            self._log_path = os.path.join(log_dir, f"session_{ts}.jsonl")
            try:
                os.makedirs(log_dir, exist_ok=True)
            except OSError:
                self._log_path = ""  # Fall back to memory only
        self._entries: list[LogEntry] = []

    # ── Singleton access ──────────────────────────────────────────────────

    @classmethod
    def get(cls, log_dir: str = "") -> "SessionLogger":
        """Return the global session logger (create on first call)."""
        if cls._instance is None:
            cls._instance = cls(log_dir)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Discard the singleton (for tests)."""
        cls._instance = None

    # ── Properties ────────────────────────────────────────────────────────

    @property
    def log_path(self) -> str:
        return self._log_path

    @property
    def entries(self) -> List[LogEntry]:
        """All entries logged in this session (in-memory copy)."""
        return list(self._entries)

    # ── Core API ──────────────────────────────────────────────────────────

    def log(self, level: LogLevel, function: str, message: str) -> None:
        """Record a Debug or Error line for *function*."""
        self._append(LogEntry(level=level, function=function, message=message))

    def debug(self, function: str, message: str) -> None:
        self.log(LogLevel.DEBUG, function, message)

    def error(self, function: str, message: str) -> None:
        self.log(LogLevel.ERROR, function, message)

    def trace(self, start: float, function: str, *args: object) -> None:
        """Record a completed span that began at *start* (``time.perf_counter()``)."""
        elapsed = (time.perf_counter() - start) * 1000
        label = ", ".join(str(a) for a in args)
        self._append(LogEntry(level=LogLevel.DEBUG, function=function, message=label, duration_ms=elapsed))

    def filter(
        self,
        level: Optional[LogLevel] = None,
        function: Optional[str] = None,
        traces: Optional[bool] = None,
    ) -> List[LogEntry]:
        """Return entries matching every given criterion."""
        result = self._entries
        if level is not None:
            result = [e for e in result if e.level is level]
        if function is not None:
            result = [e for e in result if e.function == function]
        if traces is not None:
            result = [e for e in result if e.is_trace == traces]
        return list(result)

    def _append(self, entry: LogEntry) -> None:
        self._entries.append(entry)
        if not self._log_path:
            return
        record = {
            "level": entry.level.value,
            "function": entry.function,
            "message": entry.message,
            "duration_ms": entry.duration_ms,
            "timestamp": entry.timestamp,
        }
        try:
            with open(self._log_path, "a", encoding="utf-8") as fh:
                fh.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError:
            pass  # Best-effort — a log failure never changes a query result

    def render(self) -> None:
        """Print the session log to stderr."""
        table = Table(box=box.SIMPLE, header_style="bold bright_cyan", expand=True)
        table.add_column("Time", style="dim", no_wrap=True)
        table.add_column("Level", no_wrap=True)
        table.add_column("Function", style="bold", no_wrap=True)
        table.add_column("Message")
        for entry in self._entries:
            if entry.is_trace:
                level, message = "[magenta]TRACE[/magenta]", f"{entry.message} ({entry.duration_ms:.3f} ms)"
            elif entry.level is LogLevel.ERROR:
                level, message = "[red]ERROR[/red]", entry.message
            else:
                level, message = "[green]DEBUG[/green]", entry.message
            table.add_row(entry.timestamp, level, entry.function, escape(message))
        err_console.print(table)

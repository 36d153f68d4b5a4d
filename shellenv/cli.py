"""
CLI entry-point for shellenv.

Prints the host facts a prompt would see, one query per subcommand:
``shellenv info``, ``shellenv registry HKLM\\...\\EditionID``, ``shellenv conn wifi`` etc.
Add ``--trace`` to dump the session log afterwards.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from shellenv import __app_name__, __version__
from shellenv.config import Flags
from shellenv.core.environment import ShellEnvironment
from shellenv.core.errors import ShellEnvError
from shellenv.core.utils import ConnectionType, PathDirection


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="shellenv",
        description=f"{__app_name__} — host environment facts for shell prompts.",
    )
    p.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--trace", action="store_true", help="Print the session log after the command")
    p.add_argument("--log-dir", default="", help="Also append the session log to a JSON-lines file here")

    sub = p.add_subparsers(dest="command", help="Fact to query (default: info).")

    # ── info ──────────────────────────────────────────────────────────────
    sub.add_parser("info", help="Show every host fact")

    # ── home ──────────────────────────────────────────────────────────────
    sub.add_parser("home", help="Resolved home directory")

    # ── width ─────────────────────────────────────────────────────────────
    sp = sub.add_parser("width", help="Terminal width in columns")
    sp.add_argument("-o", "--override", type=int, default=0, help="Width to report instead of asking the console")

    # ── writable ──────────────────────────────────────────────────────────
    sp = sub.add_parser("writable", help="Is a directory writable by its owner")
    sp.add_argument("path", help="Directory path")

    # ── registry ──────────────────────────────────────────────────────────
    sp = sub.add_parser("registry", aliases=["reg"], help="Read a Windows registry value")
    sp.add_argument("path", help=r"e.g. HKLM\Software\Microsoft\Windows NT\CurrentVersion\EditionID")

    # ── connection ────────────────────────────────────────────────────────
    sp = sub.add_parser("conn", aliases=["connection"], help="First active adapter of a type")
    sp.add_argument("type", choices=[t.value for t in ConnectionType], help="Adapter type")

    # ── path ──────────────────────────────────────────────────────────────
    sp = sub.add_parser("path", help="Convert path separators")
    sp.add_argument("path", help="Path to convert")
    sp.add_argument("--to", choices=[d.value for d in PathDirection], default=PathDirection.TO_LINUX.value)

    return p


def _info(env: ShellEnvironment) -> None:
    from shellenv.core.utils import print_facts

    try:
        width = str(env.terminal_width())
    except ShellEnvError as exc:
        width = f"unavailable ({exc})"

    facts = [
        ("Platform", env.platform()),
        ("Elevated", "yes" if env.is_elevated() else "no"),
        ("Home", env.home()),
        ("Cache path", env.cache_path()),
        ("Terminal width", width),
        ("WSL", "WSL2" if env.is_wsl2() else ("yes" if env.is_wsl() else "no")),
    ]
    for conn in env.connections():
        detail = conn.ssid or conn.name
        if conn.signal:
            detail += f" ({conn.signal}%)"
        facts.append((f"Connection: {conn.type.value}", detail))
    print_facts("Host Environment", facts)


def _dispatch(args: argparse.Namespace, env: ShellEnvironment) -> None:
    """Run the requested query and print its result."""
    from shellenv.core.utils import print_value  # noqa: local import for speed

    cmd = args.command or "info"

    if cmd == "info":
        _info(env)

    elif cmd == "home":
        print_value(env.home())

    elif cmd == "width":
        print_value(env.terminal_width())

    elif cmd == "writable":
        print_value("yes" if env.dir_is_writable(args.path) else "no")

    elif cmd in ("registry", "reg"):
        value = env.windows_registry_key_value(args.path)
        print_value(f"{value.value_type.value}: {value.string}")

    elif cmd in ("conn", "connection"):
        conn = env.connection(ConnectionType(args.type))
        parts = [conn.name]
        if conn.ssid:
            parts.append(f"ssid={conn.ssid}")
        if conn.signal:
            parts.append(f"signal={conn.signal}%")
        if conn.transmit_rate or conn.receive_rate:
            parts.append(f"tx={conn.transmit_rate}Mbps rx={conn.receive_rate}Mbps")
        print_value(" ".join(parts))

    elif cmd == "path":
        print_value(env.convert_path(args.path, PathDirection(args.to)))


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry-point called by the ``shellenv`` console script or ``python -m shellenv``."""
    from shellenv.core.utils import print_error

    parser = _build_parser()
    args = parser.parse_args(argv)

    base = Flags.from_environ()
    flags = Flags(
        terminal_width=getattr(args, "override", 0) or base.terminal_width,
        trace=args.trace or base.trace,
        log_dir=args.log_dir or base.log_dir,
    )
    env = ShellEnvironment(flags)

    code = 0
    try:
        _dispatch(args, env)
    except ShellEnvError as exc:
        print_error(str(exc))
        code = 1
    except KeyboardInterrupt:
        print("\nAborted.")
        code = 130
    finally:
        if flags.trace:
            env.logger.render()
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()

"""Yes/no questions asked on the terminal."""

from __future__ import annotations

import sys


def is_interactive() -> bool:
    """Whether standard input is a terminal."""
    stdin = sys.stdin
    if stdin is None:
        return False
    try:
        return stdin.isatty()
    except (ValueError, OSError):
        return False


def _read_yes() -> bool:
    try:
        line = sys.stdin.readline()
    except (ValueError, OSError):
        return False
    if not line.endswith("\n"):
        return False
    return line.strip().lower() in ("y", "yes")


def confirm_overwrite(resource_type: str, name: str) -> bool:
    """Ask whether an existing resource may be overwritten; False when not interactive."""
    if not is_interactive():
        return False
    print(f"警告: {resource_type} '{name}' は既に存在します")
    print("上書きしますか？ (y/N): ", end="", flush=True)
    return _read_yes()


def confirm(message: str) -> bool:
    """Ask a yes/no question; False when not interactive."""
    if not is_interactive():
        return False
    print(f"{message} (y/N): ", end="", flush=True)
    return _read_yes()
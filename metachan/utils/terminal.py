"""Terminal Utilities Module."""

import os
import sys
from functools import lru_cache

import colorama


@lru_cache(maxsize=1)
def supports_color() -> bool:
    """Check if the terminal supports ANSI color codes.

    Honours the `NO_COLOR` convention and requires stdout to be a TTY. On Windows,
    a handful of known ANSI-capable hosts are also detected.

    Returns:
        bool: True if the terminal supports color, False otherwise
    """
    if os.environ.get("NO_COLOR"):
        return False

    if not (hasattr(sys.stdout, "isatty") and sys.stdout.isatty()):
        return False

    if sys.platform == "win32":
        return (
            getattr(colorama, "fixed_windows_console", False)
            or "ANSICON" in os.environ
            or "WT_SESSION" in os.environ  # Windows Terminal
            or os.environ.get("TERM_PROGRAM") == "vscode"
        )

    return os.environ.get("TERM") != "dumb"

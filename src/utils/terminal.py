"""Terminal capability detection."""

import locale
import os
import sys
from functools import lru_cache

import colorama

__all__ = ["supports_color", "supports_utf8"]


def _stdout_is_tty() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _windows_renders_ansi() -> bool:
    """Whether a Windows console will interpret ANSI escapes."""
    if getattr(colorama, "fixed_windows_console", False):
        return True
    env = os.environ
    return (
        "ANSICON" in env
        or "WT_SESSION" in env
        or env.get("TERM_PROGRAM") == "vscode"
    )


@lru_cache(maxsize=1)
def supports_utf8() -> bool:
    """Return True when stdout is UTF encoded, so the banner can use box glyphs."""
    encoding = sys.stdout.encoding or locale.getpreferredencoding(False)
    return encoding.lower().startswith("utf")


@lru_cache(maxsize=1)
def supports_color() -> bool:
    """Decide whether console log lines get ANSI colors.

    ``NO_COLOR`` always wins. ``FORCE_COLOR`` turns colors on even for
    redirected output such as ``docker logs``.

    Returns:
        bool: True if colored output should be used.
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    if not _stdout_is_tty():
        return False
    if sys.platform == "win32":
        return _windows_renders_ansi()
    return os.environ.get("TERM") != "dumb"

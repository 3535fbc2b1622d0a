#!/usr/bin/env python3
"""
Auxiliary utility functions for Kenosis

Size formatting and parsing, path display helpers and home directory
lookups shared by the scanner, the ranking tables and the cleanup reports.
All sizes inside Kenosis are KiB integers; this module is the only place
they are turned into text.
"""

import logging
import math
import os
import pathlib
import pwd
import sys
from typing import Optional

logger = logging.getLogger(__name__)

_KIB_PER_MIB = 1024
_KIB_PER_GIB = 1024**2
_KIB_PER_TIB = 1024**3


def bytes_to_kb(size_bytes: int) -> int:
    """Convert a byte count into whole KiB, rounding up partial blocks

    Args:
        size_bytes: Size in bytes (negative values are treated as 0)

    Returns:
        Size in KiB, e.g. 1 byte -> 1, 1024 bytes -> 1, 1025 bytes -> 2
    """
    if size_bytes <= 0:
        return 0
    return math.ceil(size_bytes / 1024)


def format_kb(size_kb: int) -> str:
    """Format a KiB size into a human-readable string

    Args:
        size_kb: Size in KiB to format

    Returns:
        Formatted string like "1.2 TiB", "1.2 GiB", "345.0 MiB" or "12 KiB"
    """
    if size_kb >= _KIB_PER_TIB:
        return f"{size_kb / _KIB_PER_TIB:.1f} TiB"
    if size_kb >= _KIB_PER_GIB:
        return f"{size_kb / _KIB_PER_GIB:.1f} GiB"
    if size_kb >= _KIB_PER_MIB:
        return f"{size_kb / _KIB_PER_MIB:.1f} MiB"
    return f"{max(size_kb, 0)} KiB"


def parse_size(value: str) -> int:
    """Parse a human-readable size string like '10M' into KiB

    A bare number is taken as KiB. Accepts K, M, G and T suffixes with an
    optional trailing B or iB ("10MiB", "10MB", "10M").
    """
    text = value.strip().upper()
    for tail in ("IB", "B"):
        if len(text) > 1 and text.endswith(tail) and text[-len(tail) - 1].isalpha():
            text = text[: -len(tail)]
            break
    multipliers = {"K": 1, "M": _KIB_PER_MIB, "G": _KIB_PER_GIB, "T": _KIB_PER_TIB}
    for suffix, mult in multipliers.items():
        if text.endswith(suffix):
            return int(float(text[: -len(suffix)]) * mult)
    return int(float(text))


def format_path_for_display(path: str, home_path: Optional[str] = None) -> str:
    """Format file path for display by replacing home directory with ~

    Args:
        path: File path to format
        home_path: Home directory path (defaults to the invoking user's home)

    Returns:
        Path with home directory replaced by ~ if applicable
    """
    if home_path is None:
        home_path = str(invoking_user_home())

    if home_path in ("", "/"):
        return path
    if path == home_path or path.startswith(home_path + "/"):
        return "~" + path[len(home_path) :]
    return path


def truncate_path(path: str, max_length: int = 60) -> str:
    """Truncate long paths for display

    Args:
        path: Path to truncate
        max_length: Maximum length before truncation

    Returns:
        Truncated path with ... in the middle if too long
    """
    if len(path) <= max_length:
        return path

    available = max_length - 3
    start_len = available // 2
    end_len = available - start_len

    return f"{path[:start_len]}...{path[-end_len:]}"


def invoking_user_home() -> pathlib.Path:
    """Home directory of the user who started kenosis, looking through sudo

    Under sudo HOME points at root's home; SUDO_USER still names the
    original user, whose home is looked up in the password database.
    """
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user and sudo_user != "root":
        try:
            return pathlib.Path(pwd.getpwnam(sudo_user).pw_dir)
        except KeyError:
            logger.warning("Unknown SUDO_USER '%s', using %s", sudo_user, pathlib.Path.home())
    return pathlib.Path.home()


def default_home_root() -> pathlib.Path:
    """Directory holding every user's home: /Users on macOS, /home elsewhere"""
    return pathlib.Path("/Users" if sys.platform == "darwin" else "/home")

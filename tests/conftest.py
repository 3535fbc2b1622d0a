from __future__ import annotations

import io
import os
from pathlib import Path

import pytest
from rich.console import Console

from console_ui import ConsoleUI


def make_file(path: Path, size: int = 0, age_days: float = 0) -> Path:
    """Create a file of exactly *size* bytes, optionally backdated"""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    if age_days:
        stamp = path.stat().st_mtime - age_days * 86400
        os.utime(path, (stamp, stamp))
    return path


@pytest.fixture
def ui() -> ConsoleUI:
    console = Console(file=io.StringIO(), record=True, width=200, force_terminal=False, color_system=None)
    return ConsoleUI(console=console)


@pytest.fixture
def running_as_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0

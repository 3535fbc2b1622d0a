#!/usr/bin/env python3
"""
Kenosis Configuration

Settings for the kenosis tool, stored in a .kenosis directory in the user's
home. The file is only ever read; a missing or corrupt file yields the
defaults. Also resolves and validates the scan root.
"""

import json
import logging
import os
import pathlib
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from auxiliary import invoking_user_home
from ranker import DEFAULT_DISPLAY_LIMIT, MAX_DISPLAY_LIMIT, MIN_DISPLAY_LIMIT

logger = logging.getLogger(__name__)

MACOS_DATA_VOLUME = pathlib.Path("/System/Volumes/Data")


class KenosisError(Exception):
    """Base class for fatal kenosis errors"""

    hint: Optional[str] = None


class InvalidRootError(KenosisError):
    """Scan root does not exist or is not a directory"""


class RootAccessError(KenosisError):
    """Scan root exists but cannot be read"""

    hint = "Retry with sudo (or --elevated) to scan protected locations"


@dataclass
class KenosisConfig:
    """Configuration container for kenosis"""

    version: str = "1.0"
    display_count: int = DEFAULT_DISPLAY_LIMIT
    home_root: Optional[str] = None
    log_dir: Optional[str] = None
    rules_file: Optional[str] = None
    extra_ignore_paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KenosisConfig":
        """Create from dictionary, ignoring unknown keys"""
        return cls(
            version=str(data.get("version", "1.0")),
            display_count=clamp_display_count(data.get("display_count", DEFAULT_DISPLAY_LIMIT)),
            home_root=data.get("home_root"),
            log_dir=data.get("log_dir"),
            rules_file=data.get("rules_file"),
            extra_ignore_paths=[str(p) for p in data.get("extra_ignore_paths", [])],
        )


class ConfigManager:
    """Reads the kenosis configuration file"""

    def __init__(self, kenosis_dir: Optional[pathlib.Path] = None):
        """Initialize configuration manager

        Args:
            kenosis_dir: Override default .kenosis directory location
        """
        if kenosis_dir:
            self.kenosis_dir = kenosis_dir
        else:
            self.kenosis_dir = invoking_user_home() / ".kenosis"

        self.config_file = self.kenosis_dir / "config.json"

    def load(self) -> KenosisConfig:
        """Load configuration from file"""
        if not self.config_file.exists():
            return KenosisConfig()
        try:
            with self.config_file.open() as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top level is not an object")
            return KenosisConfig.from_dict(data)
        except (json.JSONDecodeError, ValueError, OSError) as e:
            logger.warning("Ignoring unreadable config %s: %s", self.config_file, e)
            return KenosisConfig()


def clamp_display_count(value: Any) -> int:
    """Coerce a requested display count into the supported range

    Non-numeric values fall back to the default. Never raises.
    """
    try:
        count = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid display count %r, using %d", value, DEFAULT_DISPLAY_LIMIT)
        return DEFAULT_DISPLAY_LIMIT

    clamped = max(MIN_DISPLAY_LIMIT, min(MAX_DISPLAY_LIMIT, count))
    if clamped != count:
        logger.warning("Display count %d out of range, using %d", count, clamped)
    return clamped


def default_analysis_root() -> pathlib.Path:
    """Data volume on macOS, filesystem root elsewhere"""
    if MACOS_DATA_VOLUME.is_dir():
        return MACOS_DATA_VOLUME
    return pathlib.Path("/")


def default_log_path(log_dir: Optional[str] = None) -> pathlib.Path:
    """Timestamped audit log file, e.g. ~/cleanup-20240131-142501.log"""
    directory = pathlib.Path(log_dir).expanduser() if log_dir else invoking_user_home()
    return directory / f"cleanup-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"


def resolve_root(path: Optional[str], default: pathlib.Path) -> pathlib.Path:
    """Validate the scan root and return it as an absolute path

    Raises:
        InvalidRootError: The path does not exist or is not a directory
        RootAccessError: The directory cannot be listed
    """
    root = pathlib.Path(os.path.abspath(os.path.expanduser(path))) if path else default
    if not root.exists():
        raise InvalidRootError(f"Scan root does not exist: {root}")
    if not root.is_dir():
        raise InvalidRootError(f"Scan root is not a directory: {root}")
    if not os.access(root, os.R_OK | os.X_OK):
        raise RootAccessError(f"Scan root is not readable: {root}")
    return root

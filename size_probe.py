#!/usr/bin/env python3
"""
Size Probe Module

Measures the apparent disk usage of a file or directory subtree in KiB.
Every size Kenosis reports (scan results, before/after deletion sizes)
comes from this one routine so the numbers are directly comparable.

Missing paths measure as None; anything that disappears or cannot be read
while walking counts as 0 for that entry. Filesystem errors never escape.
"""

import logging
import os
import stat
from typing import Optional, Union

from auxiliary import bytes_to_kb

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class SizeProbe:
    """Apparent-size measurement of files and directory trees"""

    def measure(self, path: PathLike) -> Optional[int]:
        """Return the size of *path* in KiB, or None if it does not exist

        Each file contributes its lstat size rounded up to whole KiB.
        Symlinks are measured as links, never followed.
        """
        try:
            st = os.lstat(path)
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.debug("Cannot stat %s: %s", path, e)
            return None

        if not stat.S_ISDIR(st.st_mode):
            return bytes_to_kb(st.st_size)

        total_kb = 0
        for _entry_path, size in self._iter_file_sizes(os.fspath(path)):
            total_kb += bytes_to_kb(size)
        return total_kb

    def measure_stale(self, path: PathLike, cutoff: float) -> Optional[int]:
        """Return KiB held by files under *path* last modified before *cutoff*"""
        if not os.path.lexists(path):
            return None
        total_kb = 0
        for full, size in self._iter_file_sizes(os.fspath(path)):
            try:
                if os.lstat(full).st_mtime < cutoff:
                    total_kb += bytes_to_kb(size)
            except OSError:
                pass
        return total_kb

    def has_entries(self, path: PathLike) -> bool:
        """Return True if the directory at *path* has at least one child"""
        try:
            with os.scandir(path) as it:
                return any(True for _ in it)
        except OSError:
            return False

    def count_entries(self, path: PathLike) -> int:
        """Count every file, link and directory below *path* (not *path* itself)"""
        count = 0
        for _dirpath, dirnames, filenames in os.walk(path, onerror=self._walk_error, followlinks=False):
            count += len(dirnames) + len(filenames)
        return count

    def _iter_file_sizes(self, root: str):
        for dirpath, _dirnames, filenames in os.walk(root, onerror=self._walk_error, followlinks=False):
            for name in filenames:
                full = os.path.join(dirpath, name)
                try:
                    yield full, os.lstat(full).st_size
                except OSError as e:
                    # Vanished or unreadable mid-walk
                    logger.debug("Cannot measure %s: %s", full, e)
                    yield full, 0

    @staticmethod
    def _walk_error(error: OSError):
        logger.debug("Skipping unreadable directory %s: %s", error.filename, error.strerror)

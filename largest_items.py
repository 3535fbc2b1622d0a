#!/usr/bin/env python3
"""
Largest Items Module

Finds the biggest directories (up to three levels below the root) or the
biggest individual files under a root, staying on the root's filesystem.
Results are MatchRecords without a pattern, ready for ranking.
"""

import logging
import os
import stat
from typing import Callable, Iterable, Optional

from aggregator import GroupAggregate
from auxiliary import bytes_to_kb
from pattern_scanner import MatchRecord

logger = logging.getLogger(__name__)

MAX_FOLDER_DEPTH = 3
LARGE_FILE_MIN_KB = 100 * 1024


def _walk_same_device(root: str, should_stop: Optional[Callable[[], bool]] = None):
    """os.walk that never crosses into another mounted filesystem"""
    try:
        root_dev = os.lstat(root).st_dev
    except OSError as e:
        logger.debug("Cannot stat %s: %s", root, e)
        return

    def on_error(error: OSError):
        logger.debug("Skipping %s: %s", error.filename, error.strerror)

    for dirpath, dirs, files in os.walk(root, topdown=True, onerror=on_error, followlinks=False):
        if should_stop and should_stop():
            return
        keep = []
        for d in dirs:
            try:
                st = os.lstat(os.path.join(dirpath, d))
            except OSError:
                continue
            if stat.S_ISDIR(st.st_mode) and st.st_dev == root_dev:
                keep.append(d)
        dirs[:] = keep
        yield dirpath, files


def find_largest_dirs(
    root: str, max_depth: int = MAX_FOLDER_DEPTH, should_stop: Optional[Callable[[], bool]] = None
) -> list[MatchRecord]:
    """Size every directory at most *max_depth* levels below *root*

    Each directory's size covers its whole subtree (on the same device),
    so parents always measure at least as much as their children.
    """
    root = os.path.abspath(root)
    totals: dict[str, int] = {}

    for dirpath, files in _walk_same_device(root, should_stop):
        rel = os.path.relpath(dirpath, root)
        parts = [] if rel == "." else rel.split(os.sep)
        ancestors = [os.path.join(root, *parts[:k]) for k in range(min(len(parts), max_depth) + 1)]
        for a in ancestors:
            totals.setdefault(a, 0)

        dir_kb = 0
        for name in files:
            try:
                dir_kb += bytes_to_kb(os.lstat(os.path.join(dirpath, name)).st_size)
            except OSError:
                continue
        if dir_kb:
            for a in ancestors:
                totals[a] += dir_kb

    records = [MatchRecord.create(path, size) for path, size in totals.items()]
    records.sort(key=lambda r: (-r.size_kb, r.path))
    return records


def find_largest_files(
    root: str, min_size_kb: int = LARGE_FILE_MIN_KB, should_stop: Optional[Callable[[], bool]] = None
) -> list[MatchRecord]:
    """Regular files of at least *min_size_kb* below *root*, biggest first"""
    root = os.path.abspath(root)
    records = []
    for dirpath, files in _walk_same_device(root, should_stop):
        for name in files:
            full = os.path.join(dirpath, name)
            try:
                st = os.lstat(full)
            except OSError:
                continue
            if not stat.S_ISREG(st.st_mode):
                continue
            size = bytes_to_kb(st.st_size)
            if size >= min_size_kb:
                records.append(MatchRecord.create(full, size))
    records.sort(key=lambda r: (-r.size_kb, r.path))
    return records


def as_groups(records: Iterable[MatchRecord]) -> list[GroupAggregate]:
    """One group per path, so plain listings can be ranked and tiered"""
    groups = []
    for record in records:
        group = GroupAggregate(key=record.path)
        group.add(record)
        groups.append(group)
    return groups

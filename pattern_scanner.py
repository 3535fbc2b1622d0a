#!/usr/bin/env python3
"""
Pattern Scanner Module

Walks a directory tree once and reports every entry matching the artifact
catalog: directory names and globs, multi-segment suffixes such as
vendor/bundle, and file globs. Fixed per-user locations (caches, trash) and
system locations are looked up directly instead of being searched for.

Each match is sized with SizeProbe; matches below their pattern's floor are
dropped. Unreadable directories are skipped, never fatal.
"""

import fnmatch
import logging
import os
import pathlib
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

from artifact_catalog import ArtifactPattern, PatternKind, TargetAction
from auxiliary import default_home_root, format_kb, invoking_user_home
from size_probe import SizeProbe

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class MatchRecord:
    """One sized match of a pattern (or a plain path for largest-item listings)"""

    path: str
    size_kb: int
    human_size: str
    pattern: Optional[ArtifactPattern] = None

    @classmethod
    def create(cls, path: str, size_kb: int, pattern: Optional[ArtifactPattern] = None) -> "MatchRecord":
        return cls(path=path, size_kb=size_kb, human_size=format_kb(size_kb), pattern=pattern)


def _is_within(path: pathlib.Path, root: pathlib.Path) -> bool:
    return path == root or root in path.parents


class PatternScanner:
    """Finds cleanable artifacts below a root directory"""

    def __init__(
        self,
        probe: Optional[SizeProbe] = None,
        owner_dirs: Optional[list[pathlib.Path]] = None,
        home_root: Optional[pathlib.Path] = None,
        user_home: Optional[pathlib.Path] = None,
        protected_names: Iterable[str] = (),
        ignore_paths: Iterable[str] = (),
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        """Initialize scanner

        Args:
            probe: Size probe to use (a fresh SizeProbe by default)
            owner_dirs: Explicit home directories for fixed per-user patterns
            home_root: Directory holding all user homes, used when elevated
            user_home: Home of the invoking user, used when not elevated
            protected_names: File name globs that are never reported
            ignore_paths: Absolute paths that are never reported or entered
            progress_callback: Called with (directories_scanned, matches_found)
        """
        self.probe = probe or SizeProbe()
        self.owner_dirs = owner_dirs
        self.home_root = home_root or default_home_root()
        self.user_home = user_home or invoking_user_home()
        self.protected_names = tuple(protected_names)
        self.ignore_paths = {os.path.abspath(p) for p in ignore_paths}
        self.progress_callback = progress_callback
        self.shutdown_requested: Optional[Callable[[], bool]] = None

    # -- owners --------------------------------------------------------------

    def owner_directories(self, elevated: bool) -> list[pathlib.Path]:
        """Home directories whose fixed locations should be checked"""
        if self.owner_dirs is not None:
            return list(self.owner_dirs)
        if not elevated:
            return [self.user_home]
        try:
            return sorted(
                d for d in self.home_root.iterdir() if d.is_dir() and not d.is_symlink() and d.name != "Shared"
            )
        except OSError as e:
            logger.warning("Cannot list user homes in %s: %s", self.home_root, e)
            return [self.user_home]

    # -- scanning ------------------------------------------------------------

    def scan(
        self, root: pathlib.Path, patterns: Iterable[ArtifactPattern], elevated: bool = False
    ) -> Iterator[MatchRecord]:
        """Yield a MatchRecord for every sized match below *root*

        Each call walks the filesystem again; the generator ends once all
        patterns have been checked against all reachable paths.
        """
        root = pathlib.Path(os.path.abspath(root))
        patterns = [p for p in patterns if elevated or not p.requires_elevated]

        fixed = [p for p in patterns if p.kind is PatternKind.FIXED]
        system = [p for p in patterns if p.kind is PatternKind.SYSTEM]
        suffixes = [p for p in patterns if p.kind is PatternKind.RELATIVE_SUFFIX]
        dir_names = [p for p in patterns if p.kind is PatternKind.DIR_NAME]
        file_globs = [p for p in patterns if p.kind is PatternKind.FILE_GLOB]

        located: set[str] = set()

        for pattern, location in self._fixed_locations(root, fixed, system, elevated):
            located.add(str(location))
            record = self._measure_location(location, pattern)
            if record:
                yield record

        if suffixes or dir_names or file_globs:
            yield from self._walk(root, suffixes, dir_names, file_globs, located)

    def _fixed_locations(
        self,
        root: pathlib.Path,
        fixed: list[ArtifactPattern],
        system: list[ArtifactPattern],
        elevated: bool,
    ) -> Iterator[tuple[ArtifactPattern, pathlib.Path]]:
        if fixed:
            for owner in self.owner_directories(elevated):
                for pattern in fixed:
                    location = pathlib.Path(os.path.abspath(owner / pattern.name))
                    if _is_within(location, root):
                        yield pattern, location
        for pattern in system:
            yield pattern, pathlib.Path(pattern.name)

    def _measure_location(self, location: pathlib.Path, pattern: ArtifactPattern) -> Optional[MatchRecord]:
        if self._should_stop() or str(location) in self.ignore_paths:
            return None
        if not location.is_dir() or location.is_symlink():
            return None

        if pattern.action is TargetAction.PRUNE_OLD:
            cutoff = time.time() - (pattern.older_than_days or 0) * SECONDS_PER_DAY
            size = self.probe.measure_stale(location, cutoff)
            if not size:
                return None
        else:
            if not self.probe.has_entries(location):
                return None
            size = self.probe.measure(location)
            if size is None:
                return None

        if size < pattern.min_size_kb:
            return None
        return MatchRecord.create(str(location), size, pattern)

    def _walk(
        self,
        root: pathlib.Path,
        suffixes: list[ArtifactPattern],
        dir_names: list[ArtifactPattern],
        file_globs: list[ArtifactPattern],
        located: set[str],
    ) -> Iterator[MatchRecord]:
        skip = located | self.ignore_paths
        dirs_scanned = 0
        matches = 0

        for dirpath, dirs, files in os.walk(root, topdown=True, onerror=self._walk_error, followlinks=False):
            if self._should_stop():
                logger.info("Scan interrupted after %d directories", dirs_scanned)
                return

            dirs_scanned += 1
            if self.progress_callback and dirs_scanned % 200 == 0:
                self.progress_callback(dirs_scanned, matches)

            descend: list[str] = []
            for d in sorted(dirs):
                full = os.path.join(dirpath, d)
                if full in skip:
                    continue
                if os.path.islink(full):
                    continue

                matched, record = self._match_dir(d, full, suffixes, dir_names)
                if record:
                    matches += 1
                    yield record
                if not matched:
                    descend.append(d)

            # Matched directories are never entered, so nested artifacts are not counted twice
            dirs[:] = descend

            for f in sorted(files):
                full = os.path.join(dirpath, f)
                if full in skip or self._is_protected(f):
                    continue
                for pattern in file_globs:
                    if pattern.matches_name(f):
                        record = self._measure_match(full, pattern)
                        if record:
                            matches += 1
                            yield record
                        break

        if self.progress_callback:
            self.progress_callback(dirs_scanned, matches)

    def _match_dir(
        self,
        name: str,
        full: str,
        suffixes: list[ArtifactPattern],
        dir_names: list[ArtifactPattern],
    ) -> tuple[bool, Optional[MatchRecord]]:
        """Return (matched, record); record is None when under the floor or vanished"""
        for pattern in suffixes:
            if not pattern.matches_name(name):
                continue
            target = os.path.join(full, *pattern.segments[1:])
            if os.path.isdir(target) and not os.path.islink(target):
                return True, self._measure_match(target, pattern)

        for pattern in dir_names:
            if pattern.matches_name(name):
                return True, self._measure_match(full, pattern)

        return False, None

    def _measure_match(self, path: str, pattern: ArtifactPattern) -> Optional[MatchRecord]:
        size = self.probe.measure(path)
        if size is None:
            logger.debug("Match vanished before sizing: %s", path)
            return None
        if size < pattern.min_size_kb:
            return None
        return MatchRecord.create(path, size, pattern)

    def _is_protected(self, name: str) -> bool:
        return any(fnmatch.fnmatchcase(name, pat) for pat in self.protected_names)

    def _should_stop(self) -> bool:
        return bool(self.shutdown_requested and self.shutdown_requested())

    @staticmethod
    def _walk_error(error: OSError):
        logger.debug("Skipping %s: %s", error.filename, error.strerror)

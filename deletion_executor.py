#!/usr/bin/env python3
"""
Deletion Executor Module

Removes approved cleanup targets and reports the space reclaimed. Every
target is measured before and after with the same SizeProbe, and the freed
amount is floored at zero, so a log that grew during the operation never
produces a negative number.

Individual failures (permission denied, busy files) are collected per
target and never abort the run. Dry-run mode goes through exactly the same
measuring and reporting steps without touching the filesystem.
"""

import errno
import logging
import os
import pathlib
import shutil
import stat
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from artifact_catalog import TargetAction
from pattern_scanner import SECONDS_PER_DAY, MatchRecord
from size_probe import SizeProbe

logger = logging.getLogger(__name__)
audit = logging.getLogger("kenosis.audit")

_RETRYABLE = (os.unlink, os.remove, os.rmdir)


def _holds_recorded_failure(path, exc: BaseException, failures: list[tuple[str, str]]) -> bool:
    """True if *path* is only non-empty because a child already failed"""
    if not isinstance(exc, OSError) or exc.errno != errno.ENOTEMPTY:
        return False
    prefix = os.path.join(os.fspath(path), "")
    return any(failed.startswith(prefix) for failed, _message in failures)


class CategoryStatus(Enum):
    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed with warnings"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SpaceFreedReport:
    before_kb: int
    after_kb: int

    @property
    def freed_kb(self) -> int:
        return max(0, self.before_kb - self.after_kb)


@dataclass(frozen=True)
class CleanupTarget:
    """A path to clean and how to clean it"""

    path: pathlib.Path
    action: TargetAction = TargetAction.REMOVE
    label: str = ""
    older_than_days: Optional[int] = None

    @classmethod
    def from_record(cls, record: MatchRecord) -> "CleanupTarget":
        pattern = record.pattern
        if pattern is None:
            return cls(path=pathlib.Path(record.path), label=os.path.basename(record.path))
        return cls(
            path=pathlib.Path(record.path),
            action=pattern.action,
            label=pattern.group_key or pattern.name,
            older_than_days=pattern.older_than_days,
        )


@dataclass
class CleanupCategory:
    """A named batch of targets confirmed and executed together"""

    name: str
    description: str
    targets: list[CleanupTarget] = field(default_factory=list)
    details: list[str] = field(default_factory=list)
    estimated_kb: int = 0


@dataclass
class DeletionOutcome:
    """Result of cleaning a single target"""

    target: CleanupTarget
    report: SpaceFreedReport
    dry_run: bool = False
    already_clean: bool = False
    removed: int = 0
    residual: Optional[int] = None
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def verified_empty(self) -> bool:
        return self.residual == 0

    @property
    def success(self) -> bool:
        if self.dry_run or self.already_clean:
            return True
        if self.target.action is TargetAction.TRASH:
            # Size accounting may lag the removal; an empty trash is a success
            return self.verified_empty
        return not self.failures

    @property
    def made_progress(self) -> bool:
        return self.removed > 0 or self.report.freed_kb > 0

    @property
    def failed(self) -> bool:
        """Problems remain and nothing at all was reclaimed"""
        return not self.success and not self.made_progress


@dataclass
class CategoryReport:
    """Aggregated outcome of one category"""

    category: CleanupCategory
    approved: bool = True
    dry_run: bool = False
    interrupted: bool = False
    outcomes: list[DeletionOutcome] = field(default_factory=list)

    @property
    def before_kb(self) -> int:
        return sum(o.report.before_kb for o in self.outcomes)

    @property
    def after_kb(self) -> int:
        return sum(o.report.after_kb for o in self.outcomes)

    @property
    def freed_kb(self) -> int:
        return sum(o.report.freed_kb for o in self.outcomes)

    @property
    def failures(self) -> list[tuple[str, str]]:
        return [failure for o in self.outcomes for failure in o.failures]

    @property
    def failed_targets(self) -> list[DeletionOutcome]:
        return [o for o in self.outcomes if o.failed]

    @property
    def status(self) -> CategoryStatus:
        if not self.approved:
            return CategoryStatus.SKIPPED
        if all(o.success for o in self.outcomes):
            return CategoryStatus.COMPLETED
        if len(self.failed_targets) == len(self.outcomes):
            return CategoryStatus.FAILED
        return CategoryStatus.COMPLETED_WITH_WARNINGS


class DeletionExecutor:
    """Executes cleanup targets with before/after measurement"""

    def __init__(
        self,
        probe: Optional[SizeProbe] = None,
        dry_run: bool = False,
        elevated: bool = False,
        progress_callback: Optional[Callable[[DeletionOutcome], None]] = None,
    ):
        """Initialize executor

        Args:
            probe: Size probe shared with the scanner
            dry_run: Measure and report without removing anything
            elevated: Retry permission failures after relaxing the parent directory
            progress_callback: Called after each target of a category completes
        """
        self.probe = probe or SizeProbe()
        self.dry_run = dry_run
        self.elevated = elevated
        self.progress_callback = progress_callback
        self.shutdown_requested: Optional[Callable[[], bool]] = None

    # -- single target -------------------------------------------------------

    def execute(self, target: CleanupTarget) -> DeletionOutcome:
        """Clean one target and report before/after sizes"""
        path = target.path
        cutoff = None
        if target.action is TargetAction.PRUNE_OLD:
            cutoff = time.time() - (target.older_than_days or 0) * SECONDS_PER_DAY

        before = self._measure(path, cutoff)
        if before is None:
            audit.info("Already clean (not found): %s", path)
            return DeletionOutcome(
                target=target, report=SpaceFreedReport(0, 0), dry_run=self.dry_run, already_clean=True
            )

        if target.action in (TargetAction.EMPTY, TargetAction.TRASH) and not self.probe.has_entries(path):
            audit.info("Already clean (empty): %s", path)
            return DeletionOutcome(
                target=target,
                report=SpaceFreedReport(before, before),
                dry_run=self.dry_run,
                already_clean=True,
                residual=0,
            )

        outcome = DeletionOutcome(target=target, report=SpaceFreedReport(before, before), dry_run=self.dry_run)

        if self.dry_run:
            audit.info("[DRY-RUN] Would clean: %s (%s)", path, target.action.value)
        else:
            audit.info("Cleaning: %s (%s)", path, target.action.value)
            if target.action is TargetAction.REMOVE:
                outcome.removed = 1 if self._remove_path(str(path), outcome.failures) else 0
            elif target.action is TargetAction.EMPTY:
                outcome.removed = self._empty_dir(path, outcome.failures)
            elif target.action is TargetAction.TRASH:
                self._relax_permissions(path)
                outcome.removed = self._empty_dir(path, outcome.failures)
            elif target.action is TargetAction.PRUNE_OLD:
                outcome.removed = self._prune_old(path, cutoff, outcome.failures)

        after = self._measure(path, cutoff)
        outcome.report = SpaceFreedReport(before, after or 0)

        if target.action is TargetAction.TRASH:
            outcome.residual = self.probe.count_entries(path) if path.exists() else 0

        for failed_path, message in outcome.failures:
            audit.info("Failed to remove %s: %s", failed_path, message)
        return outcome

    # -- categories ----------------------------------------------------------

    def execute_category(self, category: CleanupCategory) -> CategoryReport:
        """Clean every target of a category one after another"""
        report = CategoryReport(category=category, dry_run=self.dry_run)
        for target in category.targets:
            if self._should_stop():
                report.interrupted = True
                break
            outcome = self.execute(target)
            report.outcomes.append(outcome)
            if self.progress_callback:
                self.progress_callback(outcome)

        audit.info(
            "%s: %s, %d KB freed, %d failure(s)",
            category.name,
            report.status.value,
            report.freed_kb,
            len(report.failures),
        )
        return report

    # -- helpers -------------------------------------------------------------

    def _measure(self, path: pathlib.Path, cutoff: Optional[float]) -> Optional[int]:
        if cutoff is not None:
            return self.probe.measure_stale(path, cutoff)
        return self.probe.measure(path)

    def _remove_path(self, path: str, failures: list[tuple[str, str]]) -> bool:
        """Remove a file, link or directory tree; return True if it is gone"""
        handler = self._error_handler(failures)
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path, onexc=handler)
            else:
                os.unlink(path)
        except FileNotFoundError:
            return True
        except OSError as e:
            handler(os.unlink, path, e)
        return not os.path.lexists(path)

    def _empty_dir(self, path: pathlib.Path, failures: list[tuple[str, str]]) -> int:
        """Remove every child of *path*, keeping *path* itself"""
        removed = 0
        try:
            with os.scandir(path) as it:
                children = [entry.path for entry in it]
        except FileNotFoundError:
            return 0
        except OSError as e:
            failures.append((str(path), str(e)))
            return 0

        for child in sorted(children):
            if self._should_stop():
                break
            if self._remove_path(child, failures):
                removed += 1
        return removed

    def _prune_old(self, path: pathlib.Path, cutoff: float, failures: list[tuple[str, str]]) -> int:
        """Remove files below *path* last modified before *cutoff*"""
        removed = 0
        handler = self._error_handler(failures)
        for dirpath, _dirnames, filenames in os.walk(path, topdown=False, followlinks=False):
            for name in filenames:
                full = os.path.join(dirpath, name)
                try:
                    if os.lstat(full).st_mtime >= cutoff:
                        continue
                    os.unlink(full)
                    removed += 1
                except FileNotFoundError:
                    continue
                except OSError as e:
                    handler(os.unlink, full, e)
                    if not os.path.lexists(full):
                        removed += 1
        return removed

    def _relax_permissions(self, path: pathlib.Path):
        """Grant the owner write access below *path* (trash items are often read-only)"""
        self._add_owner_bits(str(path), stat.S_IRWXU)
        for dirpath, dirnames, filenames in os.walk(path, topdown=True, followlinks=False):
            for name in dirnames:
                full = os.path.join(dirpath, name)
                if not os.path.islink(full):
                    self._add_owner_bits(full, stat.S_IRWXU)
            for name in filenames:
                full = os.path.join(dirpath, name)
                if not os.path.islink(full):
                    self._add_owner_bits(full, stat.S_IWUSR | stat.S_IRUSR)

    @staticmethod
    def _add_owner_bits(path: str, bits: int):
        try:
            mode = os.lstat(path).st_mode
            if stat.S_IMODE(mode) & bits != bits:
                os.chmod(path, stat.S_IMODE(mode) | bits)
        except OSError as e:
            logger.debug("Cannot relax permissions on %s: %s", path, e)

    def _error_handler(self, failures: list[tuple[str, str]]):
        def handler(func, path, exc):
            if isinstance(exc, FileNotFoundError):
                return
            if func is os.rmdir and _holds_recorded_failure(path, exc, failures):
                return
            if self.elevated and isinstance(exc, PermissionError) and self._retry_relaxed(func, path):
                return
            message = (exc.strerror if isinstance(exc, OSError) else None) or str(exc)
            failures.append((str(path), message))

        return handler

    def _retry_relaxed(self, func, path) -> bool:
        if func not in _RETRYABLE:
            return False
        self._add_owner_bits(os.path.dirname(os.fspath(path)), stat.S_IRWXU)
        try:
            func(path)
            return True
        except OSError as e:
            logger.debug("Retry failed for %s: %s", path, e)
            return False

    def _should_stop(self) -> bool:
        return bool(self.shutdown_requested and self.shutdown_requested())

#!/usr/bin/env python3
"""
Kenosis — Ancient Greek κένωσις (emptying)

A disk space analysis and cleanup tool. Finds the largest folders or files
under a root, detects regenerable artifacts (dependency folders, build
caches, trash, old logs), ranks them by size and, on request, deletes them
category by category after confirmation, reporting the space reclaimed.

Usage:
    kenosis analyze [PATH]                 # Largest folders + cleanable artifacts
    kenosis analyze / --mode files         # Largest files (>= 100 MiB)
    kenosis clean                          # Interactive cleanup of your home
    kenosis clean ~/code --dry-run         # Show what would be removed
    kenosis clean --force --log            # No prompts, write an audit log
"""

import argparse
import logging
import os
import pathlib
import signal
import sys
from collections import Counter
from typing import Optional

from rich.logging import RichHandler

from aggregator import GroupAggregate, aggregate, total_members, total_size_kb
from artifact_catalog import RULES_FILE, Catalog, load_catalog
from audit_log import AuditLog
from auxiliary import default_home_root, format_kb, format_path_for_display, invoking_user_home, parse_size
from confirmation_gate import ConfirmationGate
from console_ui import ConsoleUI
from deletion_executor import (
    CategoryReport,
    CategoryStatus,
    CleanupCategory,
    CleanupTarget,
    DeletionExecutor,
)
from kenosis_config import (
    ConfigManager,
    KenosisConfig,
    KenosisError,
    clamp_display_count,
    default_analysis_root,
    default_log_path,
    resolve_root,
)
from largest_items import LARGE_FILE_MIN_KB, as_groups, find_largest_dirs, find_largest_files
from pattern_scanner import MatchRecord, PatternScanner
from progress_reporter import ProgressReporter
from ranker import rank
from size_probe import SizeProbe

logger = logging.getLogger("kenosis")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def is_root_user() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


def setup_logging(console, verbose: bool):
    """Route diagnostics through Rich; debug detail only with --verbose"""
    handler = RichHandler(console=console, show_path=False, show_time=False)
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


# ---------------------------------------------------------------------------
# Kenosis
# ---------------------------------------------------------------------------


class Kenosis:
    """Main application class for the Kenosis disk cleanup tool."""

    def __init__(
        self,
        args: argparse.Namespace,
        ui: Optional[ConsoleUI] = None,
        config: Optional[KenosisConfig] = None,
        catalog: Optional[Catalog] = None,
    ):
        self.args = args
        self.ui = ui or ConsoleUI()
        self._shutdown_requested = False

        self.config = config or ConfigManager().load()
        if catalog is None:
            rules_file = pathlib.Path(self.config.rules_file).expanduser() if self.config.rules_file else RULES_FILE
            catalog = load_catalog(rules_file)
        self.catalog = catalog

        elevated = getattr(args, "elevated", None)
        self.elevated = is_root_user() if elevated is None else elevated

        count = getattr(args, "count", None)
        self.display_count = clamp_display_count(self.config.display_count if count is None else count)

        self.probe = SizeProbe()
        self.progress = ProgressReporter(self.ui)

    # -- signal handling ----------------------------------------------------

    def install_signal_handlers(self):
        signal.signal(signal.SIGINT, self._signal_handler)
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        if self._shutdown_requested:
            sys.exit(EXIT_INTERRUPTED)
        self._shutdown_requested = True
        self.ui.print_warning("\nShutdown requested... press Ctrl+C again to force quit.")

    def shutdown_requested(self) -> bool:
        return self._shutdown_requested

    # -- scanning ------------------------------------------------------------

    def _make_scanner(self) -> PatternScanner:
        home_root = pathlib.Path(self.config.home_root) if self.config.home_root else default_home_root()
        return PatternScanner(
            probe=self.probe,
            home_root=home_root,
            protected_names=self.catalog.protected_names,
            ignore_paths=self.config.extra_ignore_paths,
        )

    def collect(self, root: pathlib.Path) -> list[MatchRecord]:
        """Scan *root* for cleanable artifacts in a background worker"""
        scanner = self._make_scanner()

        def work(cancel) -> list[MatchRecord]:
            scanner.shutdown_requested = lambda: cancel.is_set() or self._shutdown_requested
            return list(scanner.scan(root, self.catalog.patterns, elevated=self.elevated))

        records = self.progress.run(work, "Collecting cleanable items", cancel_requested=self.shutdown_requested)
        logger.debug("Collected %d cleanable items under %s", len(records), root)
        return records

    def category_counts(self, records: list[MatchRecord]) -> dict[str, int]:
        """Number of matches per category title"""
        counts: Counter[str] = Counter()
        for record in records:
            key = record.pattern.category if record.pattern else "other"
            counts[self.catalog.category(key).title] += 1
        return dict(counts)

    # -- categories ----------------------------------------------------------

    def build_categories(self, records: list[MatchRecord]) -> list[CleanupCategory]:
        """One cleanup category per catalog category, in presentation order"""
        by_key: dict[str, list[MatchRecord]] = {}
        for record in records:
            key = record.pattern.category if record.pattern else "other"
            by_key.setdefault(key, []).append(record)

        categories = []
        for key in sorted(by_key, key=lambda k: (self.catalog.category(k).order, k)):
            info = self.catalog.category(key)
            items = sorted(by_key[key], key=lambda r: (-r.size_kb, r.path))
            categories.append(
                CleanupCategory(
                    name=info.title,
                    description=info.description,
                    targets=[CleanupTarget.from_record(r) for r in items],
                    details=list(info.details),
                    estimated_kb=sum(r.size_kb for r in items),
                )
            )
        return categories

    def build_group_categories(self, groups: list[GroupAggregate]) -> list[CleanupCategory]:
        """One cleanup category per logical group, largest first"""
        categories = []
        for group in sorted(groups, key=lambda g: (-g.total_size_kb, g.key)):
            records = sorted(group.records, key=lambda r: (-r.size_kb, r.path))
            categories.append(
                CleanupCategory(
                    name=group.key,
                    description=f"Remove {group.member_count} item(s) grouped as {group.key}",
                    targets=[CleanupTarget.from_record(r) for r in records],
                    estimated_kb=group.total_size_kb,
                )
            )
        return categories

    # -- commands ------------------------------------------------------------

    def cmd_analyze(self, root: pathlib.Path) -> int:
        mode = getattr(self.args, "mode", "folders")
        self.ui.print_header("Kenosis", f"Disk space analysis of {format_path_for_display(str(root))}")
        self.ui.show_configuration(
            {"Mode": mode, "Items": self.display_count, "Elevated": "yes" if self.elevated else "no"}
        )

        if mode == "files":
            min_size_kb = getattr(self.args, "min_size", None) or LARGE_FILE_MIN_KB
            records = self.progress.run(
                lambda cancel: find_largest_files(str(root), min_size_kb=min_size_kb, should_stop=cancel.is_set),
                "Scanning files",
                cancel_requested=self.shutdown_requested,
            )
            title = "Largest files"
        else:
            records = self.progress.run(
                lambda cancel: find_largest_dirs(str(root), should_stop=cancel.is_set),
                "Scanning directories",
                cancel_requested=self.shutdown_requested,
            )
            title = "Largest folders"

        entries = rank(as_groups(records), self.display_count)
        self.ui.show_ranked_table(entries, f"{title} (top {len(entries)})", show_members=False)
        if self._shutdown_requested:
            return EXIT_INTERRUPTED

        if getattr(self.args, "no_cleanables", False):
            return EXIT_OK

        self.ui.console.print()
        cleanables = self.collect(root)
        if not cleanables:
            self.ui.print_success("No cleanable artifacts found.")
            return EXIT_INTERRUPTED if self._shutdown_requested else EXIT_OK

        groups = aggregate(cleanables, self.catalog.group_key_rules)
        self.ui.show_ranked_table(rank(groups, self.display_count), "Cleanable items")
        self.ui.show_counts(self.category_counts(cleanables))
        self.ui.print_info(f"Total reclaimable: {format_kb(total_size_kb(groups))}")
        self.ui.print_info("Run 'kenosis clean' to remove them.")
        return EXIT_INTERRUPTED if self._shutdown_requested else EXIT_OK

    def cmd_clean(self, root: pathlib.Path) -> int:
        dry_run = getattr(self.args, "dry_run", False)
        subtitle = f"Cleaning {format_path_for_display(str(root))}"
        if dry_run:
            subtitle += " (dry run)"
        self.ui.print_header("Kenosis", subtitle)

        records = self.collect(root)
        if self._shutdown_requested:
            self.ui.print_warning("Scan interrupted, nothing was removed.")
            return EXIT_INTERRUPTED
        if not records:
            self.ui.print_success("System is clean!")
            return EXIT_OK

        groups = aggregate(records, self.catalog.group_key_rules)
        self.ui.show_ranked_table(rank(groups, self.display_count), "Cleanable items")
        self.ui.print_info(f"Total reclaimable: {format_kb(total_size_kb(groups))} in {total_members(groups)} item(s)")

        if getattr(self.args, "per_group", False):
            categories = self.build_group_categories(groups)
        else:
            categories = self.build_categories(records)

        audit_path = None
        if getattr(self.args, "log_file", None):
            audit_path = pathlib.Path(self.args.log_file).expanduser()
        elif getattr(self.args, "log", False):
            audit_path = default_log_path(self.config.log_dir)

        with AuditLog(audit_path) as audit:
            if audit.enabled:
                self.ui.print_info(f"Logging to {format_path_for_display(str(audit_path))}")
            audit.write("Cleanup started: root=%s dry_run=%s elevated=%s", root, dry_run, self.elevated)
            reports = self.run_categories(categories, dry_run)
            audit.write("Cleanup finished: %s freed", format_kb(sum(r.freed_kb for r in reports)))

        self.summary(reports, dry_run)
        return EXIT_INTERRUPTED if self._shutdown_requested else EXIT_OK

    def run_categories(self, categories: list[CleanupCategory], dry_run: bool) -> list[CategoryReport]:
        """Confirm and execute categories strictly one after another"""
        gate = ConfirmationGate.from_flags(self.ui, dry_run=dry_run, force=getattr(self.args, "force", False))
        executor = DeletionExecutor(
            probe=self.probe, dry_run=dry_run, elevated=self.elevated, progress_callback=self.ui.show_outcome
        )
        executor.shutdown_requested = self.shutdown_requested

        reports = []
        for category in categories:
            if self._shutdown_requested:
                break
            decision = gate.confirm(
                category.name,
                category.description,
                [str(t.path) for t in category.targets],
                f"{format_kb(category.estimated_kb)} ({len(category.targets)} items)",
                dry_run=dry_run,
                details=category.details,
            )
            if not decision.approved:
                report = CategoryReport(category=category, approved=False, dry_run=dry_run)
            else:
                report = executor.execute_category(category)
            self.ui.show_category_report(report)
            reports.append(report)
        return reports

    def summary(self, reports: list[CategoryReport], dry_run: bool):
        """Show final execution results."""
        self.ui.console.print()
        self.ui.print_separator()
        if dry_run:
            estimate = sum(r.before_kb for r in reports if r.approved)
            self.ui.print_info(f"Dry run complete: about {format_kb(estimate)} could be freed")
            return

        self.ui.print_info("Cleanup Complete")
        for report in reports:
            self.ui.print_plain(f"  {report.category.name}: {report.status.value}, freed {format_kb(report.freed_kb)}")

        freed = sum(r.freed_kb for r in reports)
        self.ui.print_success(f"  Total space freed: {format_kb(freed)}")

        failures = [f for r in reports for f in r.failures]
        if failures:
            self.ui.print_warning(f"  {len(failures)} item(s) could not be removed (see above)")
        if any(r.status is CategoryStatus.FAILED for r in reports) and not self.elevated:
            self.ui.print_warning("  Some locations need elevated privileges; retry with sudo.")

    # -- main entry point ----------------------------------------------------

    def run(self) -> int:
        self.install_signal_handlers()
        command = getattr(self.args, "command", None) or "analyze"
        default = default_analysis_root() if command == "analyze" else invoking_user_home()

        try:
            root = resolve_root(getattr(self.args, "path", None), default)
        except KenosisError as e:
            self.ui.print_error(str(e))
            if e.hint:
                self.ui.print_info(e.hint)
            return EXIT_FATAL

        try:
            if command == "clean":
                return self.cmd_clean(root)
            return self.cmd_analyze(root)
        except KeyboardInterrupt:
            self.ui.print_warning("\nInterrupted.")
            return EXIT_INTERRUPTED


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kenosis",
        description="Kenosis — disk space analysis and cleanup tool",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--count", type=str, default=None, help="Number of items to display (10-500, default from config or 50)"
    )
    common.add_argument(
        "--elevated",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include every user's home and system locations (default: on when running as root)",
    )
    common.add_argument("-v", "--verbose", action="store_true", help="Show diagnostic messages")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    analyze = subparsers.add_parser("analyze", parents=[common], help="Show the largest folders or files")
    analyze.add_argument("path", nargs="?", help="Directory to analyze (default: data volume or /)")
    analyze.add_argument("--mode", choices=["folders", "files"], default="folders", help="What to list")
    analyze.add_argument(
        "--min-size",
        type=parse_size,
        default=None,
        help="Smallest file listed in files mode, e.g. 500M or 2G (default: 100M)",
    )
    analyze.add_argument("--no-cleanables", action="store_true", help="Skip the cleanable artifacts section")

    clean = subparsers.add_parser("clean", parents=[common], help="Remove cleanable artifacts by category")
    clean.add_argument("path", nargs="?", help="Directory to clean (default: your home directory)")
    clean.add_argument("--dry-run", action="store_true", help="Show what would be removed without deleting")
    clean.add_argument("--force", action="store_true", help="Skip all confirmation prompts")
    clean.add_argument("--per-group", action="store_true", help="Confirm each group (e.g. node_modules) separately")
    clean.add_argument("--log", action="store_true", help="Write an audit log to ~/cleanup-<timestamp>.log")
    clean.add_argument("--log-file", type=str, default=None, help="Write the audit log to this file")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return EXIT_OK

    ui = ConsoleUI()
    setup_logging(ui.console, getattr(args, "verbose", False))
    try:
        app = Kenosis(args, ui=ui)
    except (ValueError, OSError) as e:
        ui.print_error(f"Cannot load cleanup rules: {e}")
        return EXIT_FATAL
    return app.run()


if __name__ == "__main__":
    sys.exit(main())

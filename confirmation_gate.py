#!/usr/bin/env python3
"""
Confirmation Gate Module

Asks the operator before each cleanup category (or group) is executed.
The gate only decides; it never touches the filesystem.

Modes:
    INTERACTIVE      "Continue with this category?" defaulting to no
    DRY_RUN          "Show next category?" defaulting to yes
    FORCED           approves everything without asking
    NON_INTERACTIVE  no terminal attached: takes the prompt default
                     without blocking (destructive categories are declined)
"""

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from console_ui import ConsoleUI

audit = logging.getLogger("kenosis.audit")

PREVIEW_ALL_LIMIT = 10
PREVIEW_HEAD = 5


class GateMode(Enum):
    INTERACTIVE = "interactive"
    DRY_RUN = "dry-run"
    FORCED = "forced"
    NON_INTERACTIVE = "non-interactive"


@dataclass(frozen=True)
class CleanupDecision:
    subject: str
    approved: bool


def preview_lines(items: Sequence[str]) -> list[str]:
    """Every item when there are at most ten, else the first five and a count"""
    if len(items) <= PREVIEW_ALL_LIMIT:
        return list(items)
    remaining = len(items) - PREVIEW_HEAD
    return list(items[:PREVIEW_HEAD]) + [f"... and {remaining} more items"]


class ConfirmationGate:
    """Per-category operator confirmation"""

    def __init__(self, ui: ConsoleUI, mode: GateMode = GateMode.INTERACTIVE):
        self.ui = ui
        self.mode = mode

    @classmethod
    def from_flags(
        cls, ui: ConsoleUI, dry_run: bool = False, force: bool = False, interactive: Optional[bool] = None
    ) -> "ConfirmationGate":
        if interactive is None:
            interactive = sys.stdin.isatty()
        if force:
            return cls(ui, GateMode.FORCED)
        if not interactive:
            return cls(ui, GateMode.NON_INTERACTIVE)
        if dry_run:
            return cls(ui, GateMode.DRY_RUN)
        return cls(ui, GateMode.INTERACTIVE)

    def confirm(
        self,
        subject: str,
        description: str,
        preview_items: Sequence[str] = (),
        size_summary: Optional[str] = None,
        dry_run: bool = False,
        details: Sequence[str] = (),
    ) -> CleanupDecision:
        """Present a category and return the operator's decision

        Args:
            subject: Category or group name
            description: One-line summary of what will be removed
            preview_items: Paths or detail lines; long lists are abbreviated
            size_summary: Estimated space to free, already formatted
            dry_run: Nothing will be deleted (changes the prompt and its default)
            details: Lines describing what the category covers
        """
        dry_run = dry_run or self.mode is GateMode.DRY_RUN
        self.ui.show_category_preview(
            subject, description, preview_lines(preview_items), size_summary, dry_run, details=details
        )

        if self.mode is GateMode.FORCED:
            approved = True
        elif dry_run:
            approved = self._ask("Show next category?", default=True)
        else:
            approved = self._ask("Continue with this category?", default=False)

        if dry_run:
            return CleanupDecision(subject, approved)

        if approved:
            self.ui.print_success(f"  ✓ Proceeding with {subject} cleanup...")
            audit.info("Proceeding with cleanup: %s", subject)
        else:
            self.ui.print_warning(f"  Skipping {subject}...")
            audit.info("Skipped category: %s", subject)
        return CleanupDecision(subject, approved)

    def _ask(self, question: str, default: bool) -> bool:
        if self.mode is GateMode.NON_INTERACTIVE:
            return default
        try:
            return self.ui.confirm(question, default=default)
        except EOFError:
            return default

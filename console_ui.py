#!/usr/bin/env python3
"""
Console UI Module using Rich

Colored messages, header panels, tier-coloured ranking tables, category
previews, progress bars and yes/no prompts for kenosis.
"""

from typing import Any, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.prompt import Confirm
from rich.table import Table

from auxiliary import format_kb, format_path_for_display, truncate_path
from deletion_executor import CategoryReport, CategoryStatus, DeletionOutcome
from ranker import RankedEntry, Tier

TIER_STYLES = {
    Tier.URGENT: "red bold",
    Tier.MODERATE: "yellow",
    Tier.INFORMATIONAL: "blue",
}

ITEM_WIDTH = 80

STATUS_STYLES = {
    CategoryStatus.COMPLETED: "green",
    CategoryStatus.COMPLETED_WITH_WARNINGS: "yellow",
    CategoryStatus.FAILED: "red bold",
    CategoryStatus.SKIPPED: "white dim",
}


class ConsoleUI:
    """Console UI handler using Rich"""

    def __init__(self, force_terminal: Optional[bool] = None, console: Optional[Console] = None):
        """Initialize console with optional terminal forcing or an explicit console"""
        self.console = console or Console(force_terminal=force_terminal, highlight=False)

    # Basic styled output methods
    def print_success(self, message: str):
        """Print success message in green"""
        self.console.print(message, style="green")

    def print_error(self, message: str):
        """Print error message in red"""
        self.console.print(message, style="red bold")

    def print_warning(self, message: str):
        """Print warning message in yellow"""
        self.console.print(message, style="yellow")

    def print_info(self, message: str):
        """Print info message in cyan"""
        self.console.print(message, style="cyan")

    def print_plain(self, message: str):
        """Print message in plain white"""
        self.console.print(message, style="white")

    def print_header(self, title: str, subtitle: Optional[str] = None):
        """Print a header with optional subtitle"""
        if subtitle:
            header_text = f"[bold]{title}[/bold]\n[dim]{subtitle}[/dim]"
        else:
            header_text = f"[bold]{title}[/bold]"

        panel = Panel(header_text, box=box.ROUNDED, padding=(0, 1))
        self.console.print(panel)

    # Configuration display
    def show_configuration(self, config: dict[str, Any]):
        """Display run settings in a two-column table"""
        table = Table(show_header=False, box=box.SIMPLE)
        table.add_column("Setting", style="cyan dim", min_width=20, justify="right")
        table.add_column("Value", style="cyan", min_width=30)

        for key, value in config.items():
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            table.add_row(key, str(value))

        self.console.print(table)

    # Progress bars
    def create_percent_progress(self) -> Progress:
        """Progress bar driven by an externally computed percentage (total=100)"""
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )

    # Ranked listings
    def show_ranked_table(self, entries: Sequence[RankedEntry], title: str, show_members: bool = True):
        """Ranked groups, each row coloured by its tier"""
        if not entries:
            self.print_info(f"{title}: nothing found")
            return

        table = Table(title=title, box=box.ROUNDED, show_lines=False)
        table.add_column("#", justify="right", style="dim", width=4)
        table.add_column("Size", justify="right", min_width=10)
        table.add_column("Item", min_width=30)
        if show_members:
            table.add_column("Count", justify="right", style="dim", min_width=6)

        for entry in entries:
            group = entry.group
            item = truncate_path(format_path_for_display(group.key), ITEM_WIDTH)
            row = [str(entry.rank), format_kb(group.total_size_kb), escape(item)]
            if show_members:
                row.append(str(group.member_count))
            table.add_row(*row, style=TIER_STYLES[entry.tier])

        self.console.print(table)

    def show_counts(self, counts: dict[str, int], title: str = "Cleanable items found"):
        """Per-kind totals, largest first"""
        if not counts:
            return
        self.console.print(f"\n[bold]{title}:[/bold]")
        for name, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
            self.console.print(f"  [cyan]{name}[/cyan]: {count}")

    # Cleanup flow
    def show_category_preview(
        self,
        subject: str,
        description: str,
        items: Sequence[str],
        size_summary: Optional[str],
        dry_run: bool,
        details: Sequence[str] = (),
    ):
        """Show what a category will remove before asking for confirmation"""
        self.console.print()
        self.console.print(Panel(f"[bold]Category: {subject}[/bold]", box=box.HEAVY, style="magenta"))
        self.console.print("[cyan]Description:[/cyan]")
        self.console.print(f"  {description}")

        if details:
            self.console.print("[cyan]What will be cleaned:[/cyan]")
            for line in details:
                self.console.print(f"  {line}")

        if items:
            self.console.print("[cyan]Items that will be removed:[/cyan]")
            for item in items:
                self.console.print(f"  • {escape(format_path_for_display(item))}")

        if size_summary:
            self.console.print("[cyan]Estimated space to free:[/cyan]")
            self.console.print(f"  {size_summary}")

        if dry_run:
            self.console.print("[bold cyan]DRY-RUN: No files will be deleted[/bold cyan]")
        else:
            self.console.print("[bold yellow]This will permanently delete the items listed above.[/bold yellow]")

    def show_outcome(self, outcome: DeletionOutcome):
        """One line per cleaned target"""
        path = escape(format_path_for_display(str(outcome.target.path)))
        freed = outcome.report.freed_kb

        if outcome.already_clean:
            self.console.print(f"  [white dim]{path}: already clean[/white dim]")
        elif outcome.dry_run:
            self.console.print(f"  [cyan][DRY-RUN] Would free {format_kb(outcome.report.before_kb)}: {path}[/cyan]")
        elif not outcome.success:
            self.console.print(
                f"  [yellow]{path}: freed {format_kb(freed)}, "
                f"{len(outcome.failures)} item(s) not removed[/yellow]"
            )
        elif freed == 0 and outcome.verified_empty:
            self.console.print(f"  [green]✓ {path}: freed 0 KiB (verified empty)[/green]")
        else:
            self.console.print(f"  [green]✓ {path}: freed {format_kb(freed)}[/green]")

    def show_category_report(self, report: CategoryReport):
        """Category totals, status and the failures of that category"""
        status = report.status
        style = STATUS_STYLES[status]
        name = report.category.name

        if status is CategoryStatus.SKIPPED:
            self.console.print(f"[{style}]{name}: skipped[/{style}]")
            return

        if report.dry_run:
            self.console.print(
                f"[cyan]{name}: would free about {format_kb(report.before_kb)} "
                f"({len(report.outcomes)} location(s))[/cyan]"
            )
        else:
            self.console.print(
                f"[{style}]{name}: {status.value}, freed {format_kb(report.freed_kb)} "
                f"({format_kb(report.before_kb)} -> {format_kb(report.after_kb)})[/{style}]"
            )
        if report.interrupted:
            self.print_warning(f"{name}: interrupted before all targets were processed")
        self.show_failures(report.failures)

    def show_failures(self, failures: Sequence[tuple[str, str]], limit: int = 20):
        """List (path, error) pairs, abbreviated after *limit* entries"""
        if not failures:
            return
        self.print_error(f"Failed to remove {len(failures)} item(s):")
        for path, error in failures[:limit]:
            self.console.print(f"[red dim]  • {escape(format_path_for_display(path))}: {escape(error)}[/red dim]")
        if len(failures) > limit:
            self.console.print(f"[red dim]  • ... and {len(failures) - limit} more[/red dim]")

    # Interactive prompts
    def confirm(self, question: str, default: bool = False) -> bool:
        """Ask for yes/no confirmation"""
        return Confirm.ask(question, default=default, console=self.console)

    def print_separator(self, char: str = "─", length: int = 50):
        """Print a separator line"""
        self.console.print(char * length, style="dim")

"""Display and formatting service for worktree information"""
import json
import sys
from typing import Any, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from worktree_keeper.constants import COLUMNS, STYLE_FAIL, STYLE_OK, STYLE_STEP, STYLE_WARN
from worktree_keeper.formatters import (
    format_branch,
    format_changes,
    format_date,
    format_last_commit,
    format_path,
    format_remediation,
    format_step,
    format_sync,
    format_unmerged,
    get_row_style,
)
from worktree_keeper.models.cleanup import CleanupResult, CreateResult
from worktree_keeper.models.outcome import OperationOutcome
from worktree_keeper.models.worktree import WorktreeStatus, WorktreeSummary
from worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)


class DisplayService:
    def __init__(self, verbose: bool = False, debug: bool = False, console: Optional[Console] = None):
        self.verbose = verbose
        self.debug_mode = debug
        self.console = console or Console()

    def emit_json(self, data: Any) -> None:
        """Write machine-readable output to stdout."""
        sys.stdout.write(json.dumps(data, indent=2) + "\n")
        sys.stdout.flush()

    def display_worktree_table(
            self,
            summaries: List[WorktreeSummary],
            protected_branches: List[str],
        ) -> None:
        """Display a table of worktrees."""
        if not summaries:
            self.console.print("No worktrees found")
            return

        root = summaries[0].worktree.path
        table = Table()
        for col in COLUMNS:
            if col.width:
                table.add_column(col.label, max_width=col.width)
            else:
                table.add_column(col.label)

        for summary in summaries:
            wt = summary.worktree
            path = format_path(wt.path, root)
            if wt.is_main:
                path += " (main)"
            table.add_row(
                path,
                format_branch(wt.branch),
                format_changes(summary.has_uncommitted_changes, summary.change_count),
                format_unmerged(summary.unmerged_commits),
                format_sync(summary.ahead, summary.behind),
                format_last_commit(summary.last_commit),
                style=get_row_style(summary, protected_branches) or None,
            )

        self.console.print(table)
        linked = len(summaries) - 1
        self.console.print(f"\nTotal: {linked} linked worktree(s)")

    def display_worktree_cards(self, summaries: List[WorktreeSummary]) -> None:
        """Display one panel per worktree (list --verbose)."""
        for summary in summaries:
            wt = summary.worktree
            lines = [
                f"Branch:    {format_branch(wt.branch)}",
                f"HEAD:      {wt.head_commit[:10] or '-'}",
                f"Exists:    {'yes' if summary.exists else 'no (orphaned)'}",
                f"Changes:   {format_changes(summary.has_uncommitted_changes, summary.change_count)}",
                f"Unmerged:  {format_unmerged(summary.unmerged_commits)}"
                + (f" vs {wt.base_branch}" if wt.base_branch else ""),
                f"Sync:      {format_sync(summary.ahead, summary.behind)}",
                f"Locked:    {'yes' if summary.is_locked else 'no'}",
                f"Last:      {summary.last_commit.summary or '-'}",
                f"Date:      {format_date(summary.last_commit.date)}",
            ]
            title = wt.path + (" (main)" if wt.is_main else "")
            self.console.print(Panel("\n".join(lines), title=title, title_align="left"))

    def display_status(self, status: WorktreeStatus) -> None:
        """Display the deep status of one worktree."""
        self.console.print(f"\n[bold]STATUS[/bold]  {status.path}\n")
        if not status.exists:
            self._fail("Worktree directory does not exist")
            return
        self._ok("Directory exists")
        if not status.is_valid_worktree:
            self._fail("Not a valid git worktree")
            return
        self._ok("Valid git worktree")

        wt = status.worktree
        safety = status.safety
        self.console.print(f"\n[{STYLE_STEP}]Git Status:[/{STYLE_STEP}]")
        self.console.print(f"  Branch: {format_branch(wt.branch if wt else None)}")
        self.console.print(f"  HEAD:   {(wt.head_commit[:10] if wt else '') or '-'}")
        if safety.has_uncommitted_changes:
            self._warn(f"{safety.change_count} uncommitted change(s)")
        else:
            self._ok("Working tree clean")
        if status.upstream:
            self.console.print(f"  Upstream: {status.upstream} ({format_sync(status.ahead, status.behind)})")
        else:
            self.console.print("  Upstream: none")
        if safety.base_branch:
            self.console.print(f"  Unmerged vs {safety.base_branch}: {safety.unmerged_commit_count}")

        self.console.print(f"\n[{STYLE_STEP}]Activity:[/{STYLE_STEP}]")
        if safety.is_locked:
            self._warn(f"Locked: {safety.lock_reason}")
        else:
            self._ok("No locks")
        for warning in safety.open_handle_warnings:
            self._warn(warning)

        self.console.print(f"\n[{STYLE_STEP}]Last Commit:[/{STYLE_STEP}]")
        self.console.print(f"  {status.last_commit.summary or '-'}")
        self.console.print(f"  {status.last_commit.author or '-'}, {format_date(status.last_commit.date)}")

        deps = status.dependencies
        self.console.print(f"\n[{STYLE_STEP}]Dependencies:[/{STYLE_STEP}] {deps.ecosystem} (installed: {deps.installed})")

        if status.ready_for_cleanup:
            self.console.print(f"\n[{STYLE_OK}]Ready for cleanup[/{STYLE_OK}]")
        else:
            self.console.print(f"\n[{STYLE_WARN}]Not ready for cleanup (uncommitted or unmerged work)[/{STYLE_WARN}]")

    def display_create(self, result: CreateResult) -> None:
        """Display the result of creating a worktree."""
        wt = result.worktree
        self._ok(f"Worktree created: {wt.path}")
        self.console.print(f"  Branch: {wt.branch}")
        self.console.print(f"  Base:   {wt.base_branch}")
        if result.install_plan is None:
            self.console.print("  Dependencies: none detected")
        else:
            self.console.print(f"  Dependencies: {result.install_plan.ecosystem} ({' '.join(result.install_plan.command)})")
        for warning in result.warnings:
            self._warn(warning)
        self.console.print(f"\nNext: cd {wt.path}")

    def display_cleanup(self, result: CleanupResult) -> None:
        """Display the ordered steps of a cleanup and its final outcome."""
        header = "DRY RUN: " if result.dry_run else ""
        self.console.print(f"\n[bold]{header}Cleanup[/bold] {result.path}")
        for step in result.steps:
            if step.step == "dry run":
                continue
            self.console.print(format_step(step))
            for warning in step.warnings:
                self._warn(warning)

        if result.plan and result.dry_run and result.blocking is None:
            self.console.print(f"\n[{STYLE_STEP}]Would perform:[/{STYLE_STEP}]")
            for line in result.plan:
                self.console.print(f"  {line}")

        outcome = result.outcome
        if outcome.ok:
            self.console.print(f"\n[{STYLE_OK}]{outcome.messages[0]}[/{STYLE_OK}]")
        else:
            self.display_error(outcome)

    def display_error(self, outcome: OperationOutcome) -> None:
        """Display a failed outcome with its remediation steps."""
        self.console.print(
            f"\n[{STYLE_FAIL}]Error ({outcome.status.label}):[/{STYLE_FAIL}] " + "; ".join(outcome.messages)
        )
        if outcome.remediation:
            self.console.print("Remediation:")
            self.console.print(format_remediation(outcome.remediation))

    def _ok(self, message: str) -> None:
        self.console.print(f"[{STYLE_OK}]✓[/{STYLE_OK}] {message}")

    def _warn(self, message: str) -> None:
        self.console.print(f"[{STYLE_WARN}]⚠[/{STYLE_WARN}] {message}")

    def _fail(self, message: str) -> None:
        self.console.print(f"[{STYLE_FAIL}]✗[/{STYLE_FAIL}] {message}")

"""Outcome and style formatting utilities."""

from typing import List

from worktree_keeper.constants import (
    STYLE_FAIL,
    STYLE_OK,
    STYLE_PROTECTED,
    STYLE_WARN,
)
from worktree_keeper.models.outcome import ExitStatus, OperationOutcome
from worktree_keeper.models.worktree import WorktreeSummary


def format_step(outcome: OperationOutcome) -> str:
    """
    Format a step outcome as a Rich-markup line.

    Args:
        outcome: Step outcome

    Returns:
        e.g. "[green]✓[/green] safety check: 0 uncommitted change(s)"
    """
    if outcome.ok:
        mark = f"[{STYLE_OK}]✓[/{STYLE_OK}]"
    elif outcome.status is ExitStatus.TIMEOUT:
        mark = f"[{STYLE_WARN}]⏱[/{STYLE_WARN}]"
    else:
        mark = f"[{STYLE_FAIL}]✗[/{STYLE_FAIL}]"
    text = "; ".join(outcome.messages)
    return f"{mark} {outcome.step}: {text}" if text else f"{mark} {outcome.step}"


def format_remediation(steps: List[str]) -> str:
    """
    Format remediation steps as a numbered list.

    Example:
        "  1. Commit or stash your changes first\\n  2. Use --force ..."
    """
    return "\n".join(f"  {i}. {step}" for i, step in enumerate(steps, 1))


def get_row_style(summary: WorktreeSummary, protected_branches: List[str]) -> str:
    """
    Determine the table row style for a worktree.

    Returns:
        Rich style name; empty string for the default style
    """
    if not summary.exists or summary.is_locked:
        return STYLE_FAIL
    if summary.has_uncommitted_changes:
        return STYLE_WARN
    if summary.worktree.is_main or summary.worktree.branch in protected_branches:
        return STYLE_PROTECTED
    return ""

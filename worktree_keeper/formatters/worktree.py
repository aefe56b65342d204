"""Worktree field formatting utilities."""

import os
from typing import Optional

from worktree_keeper.constants import (
    MAX_PATH_DISPLAY,
    SYMBOL_DETACHED,
    SYMBOL_NO,
    SYMBOL_UNKNOWN,
    SYMBOL_YES,
)
from worktree_keeper.models.worktree import CommitInfo
from worktree_keeper.formatters.date import format_date


def format_path(path: str, root: Optional[str] = None, max_length: int = MAX_PATH_DISPLAY) -> str:
    """
    Format a worktree path for table display.

    Paths under ``root`` are shown relative to it; long paths keep their tail.

    Args:
        path: Absolute worktree path
        root: Project root, if known
        max_length: Maximum displayed length

    Returns:
        Display path
    """
    display = path
    if root and path != root and path.startswith(root.rstrip(os.sep) + os.sep):
        display = os.path.relpath(path, root)
    if len(display) > max_length:
        display = "..." + display[-(max_length - 3):]
    return display


def format_branch(branch: Optional[str]) -> str:
    """Branch name, or the detached marker."""
    return branch if branch else SYMBOL_DETACHED


def format_changes(has_changes: Optional[bool], count: int = 0) -> str:
    """
    Format the uncommitted-changes indicator.

    Returns:
        "N" when clean, "Y (n)" when dirty, "?" when unknown
    """
    if has_changes is None:
        return SYMBOL_UNKNOWN
    if not has_changes:
        return SYMBOL_NO
    return f"{SYMBOL_YES} ({count})" if count else SYMBOL_YES


def format_unmerged(count: Optional[int]) -> str:
    return SYMBOL_UNKNOWN if count is None else str(count)


def format_sync(ahead: int, behind: int) -> str:
    """
    Format ahead/behind counts against the upstream.

    Returns:
        e.g. "↑2 ↓1", or "synced" when both are zero
    """
    parts = []
    if ahead:
        parts.append(f"↑{ahead}")
    if behind:
        parts.append(f"↓{behind}")
    return " ".join(parts) if parts else "synced"


def format_last_commit(commit: CommitInfo, max_length: int = 40) -> str:
    """Date and subject of the last commit."""
    if not commit.summary:
        return "-"
    summary = commit.summary
    if len(summary) > max_length:
        summary = summary[: max_length - 3] + "..."
    return f"{format_date(commit.date)} {summary}"

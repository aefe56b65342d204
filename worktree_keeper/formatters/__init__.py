"""Formatting utilities for worktree-keeper.

This package provides formatting functions for displaying worktree information,
organized into logical modules:
- date: Date formatting
- worktree: Path, branch, change and sync formatting
- outcome: Step outcome, remediation and row style formatting
"""

# Date formatters
from .date import format_date

# Worktree formatters
from .worktree import (
    format_path,
    format_branch,
    format_changes,
    format_unmerged,
    format_sync,
    format_last_commit,
)

# Outcome formatters
from .outcome import (
    format_step,
    format_remediation,
    get_row_style,
)

__all__ = [
    # Date
    "format_date",
    # Worktree
    "format_path",
    "format_branch",
    "format_changes",
    "format_unmerged",
    "format_sync",
    "format_last_commit",
    # Outcome
    "format_step",
    "format_remediation",
    "get_row_style",
]

"""Data models for worktree-keeper."""

from .disposition import BranchDisposition
from .outcome import ExitStatus, OperationOutcome
from .worktree import (
    ActivityReport,
    CommitInfo,
    DependencyState,
    SafetyReport,
    Worktree,
    WorktreeState,
    WorktreeStatus,
    WorktreeSummary,
)
from .cleanup import CleanupResult, CreateResult

__all__ = [
    "BranchDisposition",
    "ExitStatus",
    "OperationOutcome",
    "ActivityReport",
    "CommitInfo",
    "DependencyState",
    "SafetyReport",
    "Worktree",
    "WorktreeState",
    "WorktreeStatus",
    "WorktreeSummary",
    "CleanupResult",
    "CreateResult",
]

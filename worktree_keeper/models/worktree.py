"""Worktree data models."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional


class WorktreeState(Enum):
    """Lifecycle state of a worktree identity (its path)."""
    CREATED = "created"
    ACTIVE = "active"
    REMOVED = "removed"


@dataclass
class Worktree:
    """A registered git worktree. Identity is the absolute path."""

    path: str
    branch: Optional[str]  # None when HEAD is detached
    head_commit: str
    base_branch: Optional[str] = None
    created_from: Optional[str] = None
    is_main: bool = False  # Is this the main working tree?
    is_orphaned: bool = False  # Registered but directory missing?
    is_locked: bool = False
    lock_reason: Optional[str] = None

    def __str__(self) -> str:
        """String representation of worktree."""
        status = "orphaned" if self.is_orphaned else "active"
        main_marker = " (main)" if self.is_main else ""
        return f"{self.branch or '(detached)'} @ {self.path}{main_marker} [{status}]"

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "branch": self.branch,
            "head_commit": self.head_commit,
            "base_branch": self.base_branch,
            "created_from": self.created_from,
            "is_main": self.is_main,
        }


@dataclass
class ActivityReport:
    """Lock and open-handle findings for a worktree path."""

    is_locked: bool = False
    lock_reason: Optional[str] = None
    lock_markers: List[str] = field(default_factory=list)
    open_handles: List[str] = field(default_factory=list)
    open_handle_warnings: List[str] = field(default_factory=list)
    handle_detection_available: bool = True


@dataclass
class SafetyReport:
    """Removability of a worktree. Recomputed on every request, never cached."""

    has_uncommitted_changes: bool
    unmerged_commit_count: int
    is_locked: bool = False
    open_handle_warnings: List[str] = field(default_factory=list)
    change_count: int = 0
    base_branch: Optional[str] = None
    lock_reason: Optional[str] = None
    lock_markers: List[str] = field(default_factory=list)
    open_handles: List[str] = field(default_factory=list)
    handle_detection_available: bool = True

    def with_activity(self, activity: ActivityReport) -> "SafetyReport":
        """Return a copy merged with lock/handle findings."""
        return replace(
            self,
            is_locked=self.is_locked or activity.is_locked,
            lock_reason=activity.lock_reason or self.lock_reason,
            lock_markers=list(activity.lock_markers),
            open_handles=list(activity.open_handles),
            open_handle_warnings=list(activity.open_handle_warnings),
            handle_detection_available=activity.handle_detection_available,
        )

    def to_dict(self) -> dict:
        return {
            "has_uncommitted_changes": self.has_uncommitted_changes,
            "change_count": self.change_count,
            "unmerged_commits": self.unmerged_commit_count,
            "base_branch": self.base_branch,
            "is_locked": self.is_locked,
            "lock_reason": self.lock_reason,
            "lock_markers": list(self.lock_markers),
            "open_handle_warnings": list(self.open_handle_warnings),
        }


@dataclass
class CommitInfo:
    """Summary of the last commit in a worktree."""

    summary: str = ""
    date: str = ""  # ISO-8601 committer date
    author: str = ""


@dataclass
class DependencyState:
    """Whether a worktree's dependencies look installed."""

    ecosystem: str = "none"
    installed: str = "unknown"  # "true", "false" or "unknown"

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.ecosystem, "installed": self.installed}


@dataclass
class WorktreeSummary:
    """One row of the worktree listing."""

    worktree: Worktree
    exists: bool
    has_uncommitted_changes: Optional[bool]  # None = couldn't check
    unmerged_commits: Optional[int]
    is_locked: bool
    change_count: int = 0
    open_handle_warnings: List[str] = field(default_factory=list)
    ahead: int = 0
    behind: int = 0
    last_commit: CommitInfo = field(default_factory=CommitInfo)

    def to_dict(self) -> dict:
        data = self.worktree.to_dict()
        data.update({
            "exists": self.exists,
            "has_uncommitted_changes": self.has_uncommitted_changes,
            "change_count": self.change_count,
            "unmerged_commits": self.unmerged_commits,
            "is_locked": self.is_locked,
            "open_handle_warnings": list(self.open_handle_warnings),
            "ahead": self.ahead,
            "behind": self.behind,
            "last_commit": self.last_commit.summary,
            "last_commit_date": self.last_commit.date,
        })
        return data


@dataclass
class WorktreeStatus:
    """Deep read of a single worktree."""

    path: str
    exists: bool
    is_valid_worktree: bool
    worktree: Optional[Worktree] = None
    state: Optional[WorktreeState] = None
    safety: Optional[SafetyReport] = None
    upstream: Optional[str] = None
    ahead: int = 0
    behind: int = 0
    last_commit: CommitInfo = field(default_factory=CommitInfo)
    dependencies: DependencyState = field(default_factory=DependencyState)

    @property
    def ready_for_cleanup(self) -> bool:
        return bool(
            self.safety
            and not self.safety.has_uncommitted_changes
            and self.safety.unmerged_commit_count == 0
        )

    def to_dict(self) -> dict:
        worktree = self.worktree
        safety = self.safety
        return {
            "path": self.path,
            "exists": self.exists,
            "is_valid_worktree": self.is_valid_worktree,
            "state": self.state.value if self.state else None,
            "branch": worktree.branch if worktree else None,
            "head_commit": worktree.head_commit if worktree else None,
            "base_branch": safety.base_branch if safety else None,
            "created_from": worktree.created_from if worktree else None,
            "is_main": worktree.is_main if worktree else False,
            "has_uncommitted_changes": safety.has_uncommitted_changes if safety else None,
            "change_count": safety.change_count if safety else 0,
            "unmerged_commits": safety.unmerged_commit_count if safety else 0,
            "is_locked": safety.is_locked if safety else False,
            "lock_reason": safety.lock_reason if safety else None,
            "open_handle_warnings": list(safety.open_handle_warnings) if safety else [],
            "upstream": self.upstream,
            "ahead": self.ahead,
            "behind": self.behind,
            "last_commit": self.last_commit.summary,
            "last_commit_date": self.last_commit.date,
            "last_commit_author": self.last_commit.author,
            "dependencies": self.dependencies.to_dict(),
        }

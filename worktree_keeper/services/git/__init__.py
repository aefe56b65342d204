"""Git-related services for worktree-keeper."""

from .worktrees import WorktreeService, derive_names, normalize_description, parse_worktree_porcelain

__all__ = [
    "WorktreeService",
    "derive_names",
    "normalize_description",
    "parse_worktree_porcelain",
]

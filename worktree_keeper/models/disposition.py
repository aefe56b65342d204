"""Branch disposition model"""
from enum import Enum


class BranchDisposition(Enum):
    """Fate of a worktree's branch during cleanup."""
    KEEP = "keep"
    DELETE_LOCAL = "delete-local"
    DELETE_LOCAL_AND_REMOTE = "delete-local-and-remote"
    PROTECTED_SKIP = "protected-skip"  # Computed only, never supplied by callers

    @property
    def deletes_local(self) -> bool:
        return self in (BranchDisposition.DELETE_LOCAL, BranchDisposition.DELETE_LOCAL_AND_REMOTE)

    @property
    def deletes_remote(self) -> bool:
        return self is BranchDisposition.DELETE_LOCAL_AND_REMOTE

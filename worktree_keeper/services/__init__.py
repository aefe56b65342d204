"""Services used by the worktree lifecycle orchestrator."""

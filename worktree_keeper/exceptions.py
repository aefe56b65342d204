"""Custom exceptions for worktree-keeper"""

from typing import List, Optional

from worktree_keeper.models.outcome import ExitStatus


class WorktreeKeeperError(Exception):
    """Base exception for all worktree-keeper errors.

    Each error knows the exit status it maps to and carries an ordered list of
    suggested recovery steps.
    """

    exit_status = ExitStatus.INPUT_ERROR
    default_remediation: List[str] = ["Re-run with --debug and inspect the log for details"]

    def __init__(self, message: str, remediation: Optional[List[str]] = None):
        self.message = message
        self.remediation = list(remediation) if remediation else list(self.default_remediation)
        super().__init__(message)


class InputError(WorktreeKeeperError):
    """Malformed arguments or missing VCS context. Not retryable."""

    default_remediation = ["Check the arguments and run the command from inside the repository"]


class WorktreeInUseError(InputError):
    """The caller's working directory is inside the worktree being removed."""

    def __init__(self, path: str, cwd: str, project_root: Optional[str] = None):
        self.path = path
        self.cwd = cwd
        target = project_root or "the project root"
        super().__init__(
            f"Current directory {cwd} is inside worktree {path}; "
            "removing it would leave the shell in a deleted directory",
            remediation=[
                f"Change directory out of the worktree first: cd {target}",
                "Then re-run the cleanup from there",
            ],
        )


class GitOperationError(InputError):
    """Exception raised for errors in Git operations."""

    def __init__(
        self,
        operation: str,
        target: Optional[str] = None,
        message: Optional[str] = None,
        remediation: Optional[List[str]] = None,
    ):
        self.operation = operation
        self.target = target

        error_msg = f"Git operation '{operation}' failed"
        if target:
            error_msg += f" for '{target}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg, remediation or [
            f"Run 'git {operation}' manually to see the full error",
            "Check 'git worktree list' and 'git status' for the repository state",
        ])


class SafetyBlockedError(WorktreeKeeperError):
    """Dirty working tree or active lock without force."""

    exit_status = ExitStatus.SAFETY_BLOCKED
    default_remediation = [
        "Commit or stash your changes first",
        "Use --force to remove anyway (changes will be lost)",
    ]


class DispositionRequiredError(WorktreeKeeperError):
    """Non-protected branch without explicit keep/delete intent."""

    exit_status = ExitStatus.DISPOSITION_REQUIRED

    def __init__(self, branch: str, path: Optional[str] = None):
        self.branch = branch
        target = path or "<worktree-path>"
        super().__init__(
            f"Branch disposition required for non-protected branch '{branch}'",
            remediation=[
                f"Keep the branch for future work or review: worktree-keeper cleanup {target} --keep-branch",
                f"Delete the branch (local and remote) after merge: worktree-keeper cleanup {target} --delete-branch",
            ],
        )


class OperationTimeoutError(WorktreeKeeperError):
    """A bounded operation exceeded its wall-clock limit."""

    exit_status = ExitStatus.TIMEOUT

    def __init__(self, operation: str, limit: float, remediation: Optional[List[str]] = None):
        self.operation = operation
        self.limit = limit
        super().__init__(
            f"'{operation}' timed out after {limit:g} seconds",
            remediation or [
                "Retry with a larger explicit limit",
                "Inspect the target manually; the operation may be hung or still progressing",
            ],
        )

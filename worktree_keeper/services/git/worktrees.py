"""Worktree operations service for worktree-keeper.

Thin query/command layer over git. It holds no policy: protection, safety and
disposition decisions live in the other services.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import git

from worktree_keeper.config import Config
from worktree_keeper.exceptions import GitOperationError, InputError, WorktreeInUseError
from worktree_keeper.models.outcome import ExitStatus, OperationOutcome
from worktree_keeper.models.worktree import CommitInfo, Worktree
from worktree_keeper.services.executor import BoundedCommand, LimitKind, TimeoutBoundedExecutor
from worktree_keeper.utils.logging import get_logger
from worktree_keeper.utils.paths import is_within, resolve_path

logger = get_logger(__name__)

TASK_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._#-]*$")


def normalize_description(description: str) -> str:
    """Lowercase, spaces to hyphens, keep only [a-z0-9-]."""
    lowered = description.strip().lower().replace(" ", "-")
    return re.sub(r"[^a-z0-9-]", "", lowered)


def derive_names(task_id: str, description: str, config: Config) -> Tuple[str, str]:
    """Derive the worktree directory name and branch name for a task.

    Returns:
        Tuple of (worktree_name, branch_name), e.g.
        ("PROJ-123-auth", "feature/PROJ-123-auth")
    """
    task_id = (task_id or "").strip()
    if not task_id:
        raise InputError("Task ID is required", ["Pass a task identifier such as PROJ-123"])
    if not TASK_ID_PATTERN.match(task_id):
        raise InputError(
            f"Invalid task ID '{task_id}'",
            ["Use letters, digits, '.', '_', '#' or '-' (starting with a letter or digit)"],
        )
    normalized = normalize_description(description or "")
    if not normalized:
        raise InputError(
            "Description is required",
            ["Pass a short description such as 'auth-feature'"],
        )
    name = f"{task_id}-{normalized}"
    return name, f"{config.branch_prefix}{name}"


def _git_error_message(e: git.exc.GitCommandError) -> str:
    """Extract detailed error information from GitCommandError."""
    stderr = (e.stderr if hasattr(e, "stderr") and e.stderr else str(e)).strip()
    status = e.status if hasattr(e, "status") else "unknown"
    if stderr:
        return f"exit {status}: {stderr}"
    return f"exit code {status}"


class WorktreeService:
    """Service for querying and changing git worktrees."""

    def __init__(
        self,
        repo_path: str,
        config: Union[Config, dict, None] = None,
        executor: Optional[TimeoutBoundedExecutor] = None,
    ):
        """Initialize the worktree service.

        Args:
            repo_path: Path inside the git repository (main checkout or any worktree)
            config: Configuration dict or Config object
            executor: Executor for bounded removal and network commands
        """
        if config is None:
            config = Config()
        elif isinstance(config, dict):
            config = Config.from_dict(config)
        self.repo_path = repo_path
        self.config = config
        self.remote_name = config.remote_name
        self.executor = executor or TimeoutBoundedExecutor(config)

    def _get_repo(self) -> git.Repo:
        """Get a fresh git.Repo instance.

        Raises:
            InputError: if repo_path is not inside a git repository
        """
        try:
            return git.Repo(self.repo_path, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            raise InputError(
                f"Not in a git repository: {self.repo_path}",
                ["Run the command from inside the repository checkout"],
            )

    def _git_in(self, path: str, *args: str) -> str:
        """Run a git command with ``-C path`` and return its stdout."""
        repo = self._get_repo()
        return repo.git.execute(["git", "-C", path, *args])

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_worktrees(self) -> List[Worktree]:
        """Get detailed information about all registered worktrees.

        Raises:
            GitOperationError: if ``git worktree list`` fails
        """
        try:
            output = self._get_repo().git.worktree("list", "--porcelain")
        except git.exc.GitCommandError as e:
            raise GitOperationError("worktree list", message=_git_error_message(e))

        worktrees = parse_worktree_porcelain(output)
        logger.debug(f"Found {len(worktrees)} worktrees")
        for wt in worktrees:
            logger.debug(f"  {wt}")
        return worktrees

    def find_worktree(self, path: str) -> Optional[Worktree]:
        """Find the registered worktree at ``path`` (resolved comparison)."""
        target = resolve_path(path)
        for wt in self.list_worktrees():
            if resolve_path(wt.path) == target:
                return wt
        return None

    def project_root(self) -> str:
        """Path of the main working tree."""
        worktrees = self.list_worktrees()
        if worktrees:
            return worktrees[0].path
        repo = self._get_repo()
        return repo.working_tree_dir or self.repo_path

    # ------------------------------------------------------------------
    # Branch queries
    # ------------------------------------------------------------------

    def branch_exists(self, name: str) -> bool:
        """Check if a local branch exists."""
        try:
            self._get_repo().git.show_ref("--verify", "--quiet", f"refs/heads/{name}")
            return True
        except git.exc.GitCommandError:
            return False

    def resolve_base_branch(self, candidates: Optional[List[str]] = None) -> Optional[str]:
        """Return the first existing branch of the ordered candidates."""
        for name in candidates or self.config.base_branch_candidates:
            if self.branch_exists(name):
                return name
        return None

    def commits_mentioning(self, text: str, base_branch: str, limit: int = 5) -> List[str]:
        """One-line log entries on ``base_branch`` whose message mentions ``text``."""
        try:
            output = self._get_repo().git.log(
                "--oneline", f"--max-count={limit}", "--fixed-strings", f"--grep={text}", base_branch
            )
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not search {base_branch} for '{text}': {e}")
            return []
        return [line for line in output.splitlines() if line.strip()]

    def current_branch(self, path: str) -> Optional[str]:
        """Branch checked out at ``path``, or None when detached."""
        try:
            name = self._git_in(path, "branch", "--show-current").strip()
        except git.exc.GitCommandError as e:
            raise GitOperationError("branch --show-current", path, _git_error_message(e))
        return name or None

    # ------------------------------------------------------------------
    # Worktree state queries
    # ------------------------------------------------------------------

    def is_valid_worktree(self, path: str) -> bool:
        """Check whether ``path`` is inside a git working tree."""
        if not os.path.isdir(path):
            return False
        try:
            return self._git_in(path, "rev-parse", "--is-inside-work-tree").strip() == "true"
        except git.exc.GitCommandError:
            return False

    def status_lines(self, path: str) -> List[str]:
        """``git status --porcelain`` lines for a worktree.

        Raises:
            GitOperationError: if git status fails
        """
        try:
            status = self._git_in(path, "status", "--porcelain")
        except git.exc.GitCommandError as e:
            raise GitOperationError("status", path, _git_error_message(e))
        return [line for line in status.split("\n") if line.strip()]

    def unmerged_commit_count(self, path: str, branch: str, base_branch: str) -> int:
        """Commits reachable from ``branch`` but not from ``base_branch``."""
        try:
            count = self._git_in(path, "rev-list", "--count", f"{base_branch}..{branch}")
        except git.exc.GitCommandError as e:
            raise GitOperationError("rev-list --count", branch, _git_error_message(e))
        return int(count.strip() or 0)

    def upstream(self, path: str, branch: str) -> Optional[str]:
        """Tracked upstream of ``branch`` (e.g. origin/feature/x), if any."""
        try:
            tracking = self._git_in(path, "rev-parse", "--abbrev-ref", f"{branch}@{{upstream}}")
        except git.exc.GitCommandError:
            return None
        return tracking.strip() or None

    def ahead_behind(self, path: str, branch: str) -> Tuple[int, int, Optional[str]]:
        """Commits ahead of and behind the tracked upstream.

        Returns:
            Tuple of (ahead, behind, upstream). (0, 0, None) without an upstream.
        """
        tracking = self.upstream(path, branch)
        if not tracking:
            return 0, 0, None
        try:
            counts = self._git_in(
                path, "rev-list", "--left-right", "--count", f"{branch}...{tracking}"
            )
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not compare {branch} with {tracking}: {e}")
            return 0, 0, tracking
        ahead, behind = (int(part) for part in counts.split())
        return ahead, behind, tracking

    def last_commit(self, path: str) -> CommitInfo:
        """Last commit summary, ISO committer date and author."""
        try:
            output = self._git_in(path, "log", "-1", "--format=%h %s%n%cI%n%an")
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not read last commit in {path}: {e}")
            return CommitInfo()
        lines = output.split("\n") + ["", "", ""]
        return CommitInfo(summary=lines[0][:60], date=lines[1], author=lines[2])

    def worktree_git_dir(self, path: str) -> Optional[Path]:
        """The administrative git dir of a worktree (``.git/worktrees/<name>``)."""
        if os.path.isdir(path):
            try:
                return Path(self._git_in(path, "rev-parse", "--absolute-git-dir").strip())
            except git.exc.GitCommandError as e:
                logger.debug(f"Could not resolve git dir of {path}: {e}")
        try:
            common = self._get_repo().git.rev_parse("--git-common-dir").strip()
        except git.exc.GitCommandError:
            return None
        common_path = Path(common)
        if not common_path.is_absolute():
            common_path = Path(self.project_root()) / common_path
        candidate = common_path / "worktrees" / os.path.basename(path.rstrip(os.sep))
        return candidate if candidate.exists() else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_worktree(self, task_id: str, description: str, base_branch: str) -> Worktree:
        """Create a worktree and its feature branch from ``base_branch``.

        Raises:
            InputError: if the derived path or branch already exists
            GitOperationError: if ``git worktree add`` fails
        """
        name, branch_name = derive_names(task_id, description, self.config)
        root = self.project_root()
        path = os.path.join(root, self.config.trees_dir, name)

        if os.path.exists(path) or self.find_worktree(path) is not None:
            raise InputError(
                f"Worktree already exists: {path}",
                [
                    "Inspect existing worktrees: worktree-keeper list",
                    f"Remove the old one first: worktree-keeper cleanup {path} --keep-branch",
                ],
            )
        if self.branch_exists(branch_name):
            raise InputError(
                f"Branch already exists: {branch_name}",
                [
                    f"Use existing branch: git worktree add {path} {branch_name}",
                    f"Delete old branch: git branch -d {branch_name}",
                ],
            )

        os.makedirs(os.path.dirname(path), exist_ok=True)
        try:
            self._get_repo().git.worktree("add", path, "-b", branch_name, base_branch)
        except git.exc.GitCommandError as e:
            raise GitOperationError("worktree add", path, _git_error_message(e))
        logger.info(f"Created worktree {path} on branch {branch_name} from {base_branch}")

        worktree = self.find_worktree(path)
        if worktree is None:
            raise GitOperationError("worktree add", path, "worktree not registered after creation")
        worktree.base_branch = base_branch
        worktree.created_from = base_branch
        return worktree

    def remove_worktree_entry(
        self,
        path: str,
        force: bool = False,
        limit: Optional[float] = None,
        cwd: Optional[str] = None,
        locked: bool = False,
    ) -> OperationOutcome:
        """Remove a worktree directory and its registration under the removal limit.

        Args:
            path: Path to the worktree directory
            force: Pass --force (dirty or locked worktrees)
            limit: Removal limit in seconds (None = configured default)
            cwd: Caller's working directory (defaults to this process's cwd)
            locked: The worktree is locked; with force, --force is passed twice

        Raises:
            WorktreeInUseError: if ``cwd`` is inside ``path``
        """
        target = resolve_path(path)
        caller_cwd = resolve_path(cwd or os.getcwd())
        root = self.project_root()
        if is_within(caller_cwd, target):
            raise WorktreeInUseError(target, caller_cwd, root)

        limit = self.executor.resolve_limit(LimitKind.REMOVAL, limit)
        argv = ["git", "worktree", "remove", target]
        if force:
            argv.append("--force")
            if locked:
                argv.append("--force")
        outcome = self.executor.run_bounded(
            BoundedCommand(argv, description="git worktree remove", cwd=root),
            limit,
            timeout_remediation=[
                f"Retry with a longer timeout: worktree-keeper cleanup {target} --timeout {int(max(limit * 2, 300))}",
                f"Pre-delete large directories: rm -rf {target}/node_modules {target}/.venv",
                f"Force prune the worktree: rm -rf {target} && git worktree prune",
            ],
            failure_remediation=[
                f"Inspect the worktree: git -C {target} status",
                "Unlock it if locked: git worktree unlock " + os.path.basename(target),
            ],
        )
        if outcome.ok:
            logger.info(f"Removed worktree at {target}")
        return outcome

    def prune(self) -> OperationOutcome:
        """Prune stale worktree registrations."""
        try:
            self._get_repo().git.worktree("prune")
        except git.exc.GitCommandError as e:
            message = f"git worktree prune failed ({_git_error_message(e)})"
            logger.error(message)
            return OperationOutcome(
                ExitStatus.INPUT_ERROR,
                step="prune",
                messages=[message],
                remediation=["Run 'git worktree prune -v' manually"],
            )
        logger.info("Pruned stale worktree metadata")
        return OperationOutcome.success("prune", "Pruned stale worktree entries")

    def unlock_worktree(self, path: str) -> OperationOutcome:
        """Release a ``git worktree lock`` so the entry can be pruned."""
        try:
            self._get_repo().git.worktree("unlock", path)
        except git.exc.GitCommandError as e:
            message = f"git worktree unlock failed ({_git_error_message(e)})"
            logger.error(message)
            return OperationOutcome(
                ExitStatus.INPUT_ERROR,
                step="unlock",
                messages=[message],
                remediation=[f"Unlock it manually: git worktree unlock {path}"],
            )
        logger.info(f"Unlocked worktree at {path}")
        return OperationOutcome.success("unlock", f"Unlocked {path}")

    def delete_local_branch(self, name: str) -> OperationOutcome:
        """Delete a local branch, falling back to force delete when not fully merged."""
        repo = self._get_repo()
        try:
            repo.delete_head(name)
            return OperationOutcome.success("delete local branch", f"Local branch deleted: {name}")
        except git.exc.GitCommandError as e:
            logger.debug(f"git branch -d {name} failed: {e}")

        try:
            repo.delete_head(name, force=True)
        except git.exc.GitCommandError as e:
            logger.warning(f"Could not delete local branch {name}: {_git_error_message(e)}")
            return OperationOutcome.success(
                "delete local branch",
                warnings=[f"Could not delete local branch: {name} (may already be deleted)"],
            )
        return OperationOutcome.success(
            "delete local branch",
            f"Local branch deleted: {name}",
            warnings=[f"Local branch force-deleted (was not fully merged): {name}"],
        )

    def remote_branch_exists(self, name: str, limit: Optional[float] = None) -> OperationOutcome:
        """Ask the remote whether ``name`` exists. ``details['exists']`` holds the answer."""
        limit = self.executor.resolve_limit(LimitKind.NETWORK, limit)
        command = BoundedCommand(
            ["git", "ls-remote", "--exit-code", "--heads", self.remote_name, name],
            description="git ls-remote",
            cwd=self.project_root(),
        )
        result = self.executor.run(command, limit)
        if result.timed_out:
            return OperationOutcome(
                ExitStatus.TIMEOUT,
                step="check remote branch",
                messages=[f"Checking {self.remote_name}/{name} timed out after {limit:g} seconds"],
                remediation=[
                    f"Retry with a longer network timeout: --network-timeout {int(max(limit * 2, 60))}",
                    f"Check connectivity: git ls-remote {self.remote_name}",
                ],
            )
        # ls-remote --exit-code returns 2 when no matching ref exists
        exists = result.ok and bool(result.stdout.strip())
        if not result.ok and result.returncode != 2:
            return OperationOutcome.success(
                "check remote branch",
                details={"exists": False},
                warnings=[f"Could not query remote '{self.remote_name}': {result.stderr.strip() or result.error}"],
            )
        return OperationOutcome.success("check remote branch", details={"exists": exists})

    def delete_remote_branch(self, name: str, limit: Optional[float] = None) -> OperationOutcome:
        """Delete ``name`` on the remote under the network limit."""
        limit = self.executor.resolve_limit(LimitKind.NETWORK, limit)
        outcome = self.executor.run_bounded(
            BoundedCommand(
                ["git", "push", self.remote_name, "--delete", name],
                description="git push --delete",
                cwd=self.project_root(),
            ),
            limit,
            timeout_remediation=[
                f"Retry with a longer network timeout: --network-timeout {int(max(limit * 2, 60))}",
                f"Delete the remote branch manually: git push {self.remote_name} --delete {name}",
            ],
        )
        if outcome.status is ExitStatus.TIMEOUT:
            return outcome
        if not outcome.ok:
            # Protected or already-deleted remote branches are reported, not fatal
            return OperationOutcome.success(
                "delete remote branch",
                warnings=[f"Could not delete remote branch: {self.remote_name}/{name}"] + outcome.messages,
            )
        return OperationOutcome.success(
            "delete remote branch", f"Remote branch deleted: {self.remote_name}/{name}"
        )

    def delete_branch(
        self,
        name: str,
        local: bool = True,
        remote: bool = False,
        network_limit: Optional[float] = None,
    ) -> List[OperationOutcome]:
        """Delete a branch locally and/or on the remote.

        Stops after a remote timeout. A missing remote branch is not an error.
        """
        outcomes = []
        if local:
            outcomes.append(self.delete_local_branch(name))
        if remote:
            check = self.remote_branch_exists(name, network_limit)
            if not check.ok:
                outcomes.append(check)
                return outcomes
            if check.details.get("exists"):
                outcomes.append(self.delete_remote_branch(name, network_limit))
            else:
                outcomes.append(OperationOutcome.success(
                    "delete remote branch", "No remote branch to delete", warnings=check.warnings
                ))
        return outcomes


def parse_worktree_porcelain(output: str) -> List[Worktree]:
    """Parse ``git worktree list --porcelain`` output.

    Format (blank line between worktrees)::

        worktree /path/to/worktree
        HEAD commit_sha
        branch refs/heads/branch-name   (or "detached")
        locked [reason]                 (optional)
    """
    worktree_list: List[Worktree] = []
    current: Dict[str, Any] = {}

    def flush():
        path = current.get("path")
        if path:
            worktree_list.append(
                Worktree(
                    path=path,
                    branch=current.get("branch"),
                    head_commit=current.get("HEAD", ""),
                    is_main=not worktree_list,  # First entry is always the main worktree
                    is_orphaned=not os.path.exists(path),
                    is_locked=current.get("locked", False),
                    lock_reason=current.get("lock_reason"),
                )
            )
        current.clear()

    for line in output.split("\n"):
        line = line.strip()
        if not line:
            flush()
            continue

        if line.startswith("worktree "):
            if current:
                flush()
            current["path"] = line.split(" ", 1)[1]
        elif line.startswith("HEAD "):
            current["HEAD"] = line.split(" ", 1)[1]
        elif line.startswith("branch "):
            branch_ref = line.split(" ", 1)[1]
            if branch_ref.startswith("refs/heads/"):
                current["branch"] = branch_ref[len("refs/heads/"):]
        elif line == "detached":
            current["branch"] = None
        elif line == "locked" or line.startswith("locked "):
            current["locked"] = True
            reason = line[len("locked"):].strip()
            current["lock_reason"] = reason or None

    # Handle last entry if no trailing blank line
    flush()
    return worktree_list

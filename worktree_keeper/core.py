"""Core functionality for worktree-keeper"""

import os
from typing import Dict, List, Optional, Union

from worktree_keeper.config import Config
from worktree_keeper.exceptions import (
    GitOperationError,
    InputError,
    WorktreeInUseError,
    WorktreeKeeperError,
)
from worktree_keeper.models.cleanup import CleanupResult, CreateResult
from worktree_keeper.models.disposition import BranchDisposition
from worktree_keeper.models.outcome import ExitStatus, OperationOutcome
from worktree_keeper.models.worktree import (
    Worktree,
    WorktreeState,
    WorktreeStatus,
    WorktreeSummary,
)
from worktree_keeper.services import installer
from worktree_keeper.services.activity_service import ActivityDetector
from worktree_keeper.services.disposition_service import DispositionResolver
from worktree_keeper.services.executor import LimitKind, TimeoutBoundedExecutor
from worktree_keeper.services.git import WorktreeService, derive_names
from worktree_keeper.services.safety_service import SafetyEvaluator
from worktree_keeper.utils.logging import get_logger
from worktree_keeper.utils.paths import is_within, resolve_path

logger = get_logger(__name__)


class WorktreeKeeper:
    """Creates, inspects and removes task worktrees.

    The keeper never changes its own working directory. Callers must leave a
    worktree before asking for its removal; ``cwd`` arguments let them declare
    where they are when that is not this process's cwd. Child processes run
    from the project root.
    """

    def __init__(
        self,
        repo_path: str = ".",
        config: Union[Config, dict, None] = None,
        executor: Optional[TimeoutBoundedExecutor] = None,
        activity_detector: Optional[ActivityDetector] = None,
    ):
        """Initialize WorktreeKeeper.

        Args:
            repo_path: Path inside the git repository
            config: Configuration dict or Config object
            executor: Bounded executor shared by all child processes
            activity_detector: Lock and open-handle detector
        """
        if config is None:
            config = Config.from_env()
        elif isinstance(config, dict):
            config = Config.from_dict(config)
        self.repo_path = repo_path
        self.config = config
        self.executor = executor or TimeoutBoundedExecutor(config)
        self.worktree_service = WorktreeService(repo_path, config, self.executor)
        self.safety_evaluator = SafetyEvaluator(self.worktree_service, config)
        self.disposition_resolver = DispositionResolver(config)
        self.activity_detector = activity_detector or ActivityDetector(config)
        self._states: Dict[str, WorktreeState] = {}

    def state_of(self, path: str) -> Optional[WorktreeState]:
        """Lifecycle state this keeper has observed for ``path``."""
        return self._states.get(resolve_path(path))

    def _refuse_removed(self, path: str) -> None:
        if self._states.get(path) is WorktreeState.REMOVED:
            raise InputError(
                f"Worktree was already removed: {path}",
                ["Create a new worktree for the task instead: worktree-keeper create <task-id> <description>"],
            )

    def _mark_active(self, path: str) -> WorktreeState:
        """A valid worktree seen after creation has entered use."""
        if self._states.get(path) is not WorktreeState.REMOVED:
            self._states[path] = WorktreeState.ACTIVE
        return self._states[path]

    def _limit(self, kind: LimitKind, value: Optional[float]) -> float:
        try:
            return self.executor.resolve_limit(kind, value)
        except ValueError as e:
            raise InputError(str(e), [f"Pass a positive number of seconds for {kind.value}"])

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    def create(
        self,
        task_id: str,
        description: str,
        base_branch: Optional[str] = None,
        install: Optional[bool] = None,
        cwd: Optional[str] = None,
    ) -> CreateResult:
        """Create an isolated worktree and feature branch for a task.

        Raises:
            InputError: on invalid names, a missing base branch, an existing
                path or branch, or when called from inside a linked worktree
        """
        caller_cwd = resolve_path(cwd or os.getcwd())
        worktrees = self.worktree_service.list_worktrees()
        for wt in worktrees[1:]:
            if is_within(caller_cwd, wt.path):
                raise InputError(
                    f"Cannot create a worktree from inside another worktree: {wt.path}",
                    [f"Change to the main repository first: cd {worktrees[0].path}"],
                )

        if base_branch:
            if not self.worktree_service.branch_exists(base_branch):
                raise InputError(
                    f"Base branch does not exist: {base_branch}",
                    ["List local branches: git branch", "Omit --base-branch to use develop, main or master"],
                )
        else:
            base_branch = self.worktree_service.resolve_base_branch()
            if base_branch is None:
                raise InputError(
                    f"No base branch found (tried {', '.join(self.config.base_branch_candidates)})",
                    ["Create one of them or pass --base-branch explicitly"],
                )

        name, branch_name = derive_names(task_id, description, self.config)
        root = worktrees[0].path if worktrees else self.worktree_service.project_root()
        self._refuse_removed(resolve_path(os.path.join(root, self.config.trees_dir, name)))

        warnings: List[str] = []
        existing = self.worktree_service.commits_mentioning(task_id, base_branch)
        if existing:
            warnings.append(
                f"Found {len(existing)} existing commit(s) mentioning {task_id} on {base_branch}; "
                "the task may already be done"
            )

        worktree = self.worktree_service.create_worktree(task_id, description, base_branch)
        self._states[resolve_path(worktree.path)] = WorktreeState.CREATED
        result = CreateResult(worktree=worktree, warnings=warnings)

        if self.config.install_dependencies if install is None else install:
            result.install_plan = installer.detect_install_plan(worktree.path)
            if result.install_plan is not None:
                result.install_outcome = installer.install(result.install_plan, worktree.path, self.executor)
                warnings.extend(result.install_outcome.warnings)

        warnings.extend(self._validate_created(worktree, branch_name))
        for warning in warnings:
            logger.debug(f"create warning: {warning}")
        return result

    def _validate_created(self, worktree: Worktree, branch_name: str) -> List[str]:
        warnings = []
        actual = self.worktree_service.current_branch(worktree.path)
        if actual != branch_name:
            warnings.append(f"Branch mismatch: expected {branch_name}, got {actual or '(detached)'}")
        changes = self.worktree_service.status_lines(worktree.path)
        if changes:
            warnings.append(f"New worktree has {len(changes)} uncommitted change(s) after setup")
        return warnings

    # ------------------------------------------------------------------
    # list / status
    # ------------------------------------------------------------------

    def list_worktrees(self) -> List[WorktreeSummary]:
        """Summarize every registered worktree. Read-only."""
        base_branch = self.worktree_service.resolve_base_branch()
        summaries = []
        for wt in self.worktree_service.list_worktrees():
            wt.base_branch = base_branch
            summaries.append(self._summarize(wt))
        return summaries

    def _summarize(self, wt: Worktree) -> WorktreeSummary:
        exists = os.path.isdir(wt.path)
        markers, _ = ActivityDetector.find_lock_markers(self.worktree_service.worktree_git_dir(wt.path))
        summary = WorktreeSummary(
            worktree=wt,
            exists=exists,
            has_uncommitted_changes=None,
            unmerged_commits=None,
            is_locked=wt.is_locked or bool(markers),
        )
        if not exists:
            return summary
        if self._states.get(resolve_path(wt.path)) is WorktreeState.CREATED:
            self._mark_active(resolve_path(wt.path))

        try:
            changes = self.worktree_service.status_lines(wt.path)
            summary.has_uncommitted_changes = bool(changes)
            summary.change_count = len(changes)
            if wt.base_branch:
                summary.unmerged_commits = self.worktree_service.unmerged_commit_count(
                    wt.path, wt.branch or "HEAD", wt.base_branch
                )
        except GitOperationError as e:
            logger.warning(f"Could not read status of {wt.path}: {e.message}")
        if wt.branch:
            summary.ahead, summary.behind, _ = self.worktree_service.ahead_behind(wt.path, wt.branch)
        summary.last_commit = self.worktree_service.last_commit(wt.path)
        return summary

    def status(self, path: str, cwd: Optional[str] = None) -> WorktreeStatus:
        """Deep read of one worktree: safety, activity, sync and dependency state."""
        target = resolve_path(path, cwd)
        exists = os.path.isdir(target)
        valid = exists and self.worktree_service.is_valid_worktree(target)
        status = WorktreeStatus(
            path=target,
            exists=exists,
            is_valid_worktree=valid,
            state=self._states.get(target),
        )
        if not valid:
            return status

        wt = self.worktree_service.find_worktree(target)
        if wt is None:
            wt = Worktree(
                path=target,
                branch=self.worktree_service.current_branch(target),
                head_commit="",
            )
        status.worktree = wt
        status.state = self._mark_active(target)

        safety = self.safety_evaluator.evaluate(wt)
        activity = self.activity_detector.detect(target, self.worktree_service.worktree_git_dir(target))
        status.safety = safety.with_activity(activity)
        if wt.branch:
            status.ahead, status.behind, status.upstream = self.worktree_service.ahead_behind(target, wt.branch)
        status.last_commit = self.worktree_service.last_commit(target)
        status.dependencies = installer.dependency_state(target)
        return status

    # ------------------------------------------------------------------
    # cleanup
    # ------------------------------------------------------------------

    def cleanup(
        self,
        path: str,
        intent: Optional[BranchDisposition] = None,
        force: bool = False,
        dry_run: bool = False,
        skip_lock_check: bool = False,
        timeout: Optional[float] = None,
        network_timeout: Optional[float] = None,
        cwd: Optional[str] = None,
    ) -> CleanupResult:
        """Remove a worktree and apply the branch disposition.

        Steps run in order and stop at the first blocking outcome: validate,
        safety check, lock check, branch disposition, then either the dry-run
        plan or removal, branch deletion and prune.
        """
        caller_cwd = resolve_path(cwd or os.getcwd())
        target = resolve_path(path, caller_cwd)
        result = CleanupResult(path=target, dry_run=dry_run)
        step = "validate"
        try:
            removal_limit = self._limit(LimitKind.REMOVAL, timeout)
            network_limit = self._limit(LimitKind.NETWORK, network_timeout)
            wt = self._validate_target(target, caller_cwd, result)

            step = "safety check"
            report = self.safety_evaluator.evaluate(wt)
            result.safety = report
            result.add(OperationOutcome.success(
                step,
                f"{report.change_count} uncommitted change(s), {report.unmerged_commit_count} unmerged commit(s)",
                warnings=self.safety_evaluator.check_changes(wt, report, force),
            ))

            step = "lock check"
            if skip_lock_check:
                result.add(OperationOutcome.success(step, "Lock check skipped"))
            else:
                activity = self.activity_detector.detect(target, self.worktree_service.worktree_git_dir(target))
                report = report.with_activity(activity)
                result.safety = report
                result.add(OperationOutcome.success(
                    step,
                    "No locks found" if not report.is_locked else f"Locked: {report.lock_reason}",
                    warnings=self.safety_evaluator.check_activity(wt, report, force),
                ))

            step = "branch disposition"
            disposition = None
            if wt.branch is None:
                message = "Detached HEAD; no branch to keep or delete"
            else:
                disposition = self.disposition_resolver.resolve(wt.branch, intent, target)
                message = f"Branch {wt.branch}: {disposition.value}"
            result.disposition = disposition
            result.add(OperationOutcome.success(
                step, message,
                warnings=self.safety_evaluator.unmerged_warnings(report, wt.branch, disposition),
            ))

            step = "plan"
            result.plan = self._plan(wt, disposition, force, dry_run, network_limit, result)
            if dry_run:
                result.add(OperationOutcome.success("dry run", *result.plan))
                return result

            self._apply(wt, disposition, force, removal_limit, network_limit, caller_cwd, result)
        except WorktreeKeeperError as e:
            logger.debug(f"Cleanup of {target} stopped at '{step}': {e.message}")
            result.add(OperationOutcome.from_error(step, e))
        return result

    def _validate_target(self, target: str, caller_cwd: str, result: CleanupResult) -> Worktree:
        self._refuse_removed(target)
        worktrees = self.worktree_service.list_worktrees()
        root = worktrees[0].path if worktrees else self.worktree_service.project_root()
        result.project_root = root

        wt = next((w for w in worktrees if resolve_path(w.path) == target), None)
        if wt is None:
            raise InputError(
                f"Not a registered worktree: {target}",
                ["List worktrees: worktree-keeper list", "Remove stale registrations: git worktree prune"],
            )
        if wt.is_main:
            raise InputError(
                f"Refusing to remove the main working tree: {target}",
                ["Pass the path of a linked worktree under the trees directory"],
            )
        if is_within(caller_cwd, target):
            raise WorktreeInUseError(target, caller_cwd, root)

        result.branch = wt.branch
        result.add(OperationOutcome.success("validate", f"Worktree {wt}"))
        return wt

    def _plan(
        self,
        wt: Worktree,
        disposition: Optional[BranchDisposition],
        force: bool,
        dry_run: bool,
        network_limit: float,
        result: CleanupResult,
    ) -> List[str]:
        """Describe the destructive steps, in order. Performs no mutation."""
        steps = []
        if wt.is_orphaned:
            if wt.is_locked and force:
                steps.append(f"Unlock orphaned registration for {wt.path}")
            steps.append(f"Prune orphaned registration for {wt.path} (directory is missing)")
        else:
            steps.append(f"Remove worktree {wt.path}" + (" (--force)" if force else ""))

        remote = self.config.remote_name
        if disposition is None:
            steps.append("No branch to handle (detached HEAD)")
        elif disposition is BranchDisposition.PROTECTED_SKIP:
            steps.append(f"Keep protected branch {wt.branch}")
        elif disposition is BranchDisposition.KEEP:
            steps.append(f"Keep branch {wt.branch}")
        else:
            steps.append(f"Delete local branch {wt.branch}")
            if disposition.deletes_remote:
                if dry_run:
                    check = self.worktree_service.remote_branch_exists(wt.branch, network_limit)
                    if not check.ok:
                        result.add(OperationOutcome.success(
                            "check remote branch", warnings=check.messages
                        ))
                        steps.append(f"Delete remote branch {remote}/{wt.branch} if it exists")
                    elif check.details.get("exists"):
                        steps.append(f"Delete remote branch {remote}/{wt.branch}")
                    else:
                        steps.append(f"No remote branch {remote}/{wt.branch} to delete")
                else:
                    steps.append(f"Delete remote branch {remote}/{wt.branch} if it exists")

        if not wt.is_orphaned:
            steps.append("Prune stale worktree metadata")
        return [f"{i}. {text}" for i, text in enumerate(steps, 1)]

    def _apply(
        self,
        wt: Worktree,
        disposition: Optional[BranchDisposition],
        force: bool,
        removal_limit: float,
        network_limit: float,
        caller_cwd: str,
        result: CleanupResult,
    ) -> None:
        """Run the destructive steps. The only code path that mutates anything."""
        target = resolve_path(wt.path)
        if wt.is_orphaned:
            # git worktree prune skips locked entries
            if wt.is_locked and force:
                outcome = result.add(self.worktree_service.unlock_worktree(target))
                if not outcome.ok:
                    return
            outcome = result.add(self.worktree_service.prune())
        else:
            outcome = result.add(self.worktree_service.remove_worktree_entry(
                target, force=force, limit=removal_limit, cwd=caller_cwd, locked=wt.is_locked
            ))
        if not outcome.ok:
            return
        if self.worktree_service.find_worktree(target) is not None:
            result.add(OperationOutcome(
                ExitStatus.INPUT_ERROR,
                step="verify removal",
                messages=[f"Worktree is still registered after removal: {target}"],
                remediation=[
                    f"Unlock it if locked: git worktree unlock {target}",
                    "Then prune stale worktree metadata: git worktree prune",
                    f"Retry: worktree-keeper cleanup {target} --force",
                ],
            ))
            return
        self._states[target] = WorktreeState.REMOVED

        if disposition is not None and disposition.deletes_local:
            for outcome in self.worktree_service.delete_branch(
                wt.branch, local=True, remote=disposition.deletes_remote, network_limit=network_limit
            ):
                result.add(outcome)
                if not outcome.ok:
                    outcome.remediation.append("Then prune stale worktree metadata: git worktree prune")
                    return
        elif disposition is not None:
            kept = "Protected branch kept" if disposition is BranchDisposition.PROTECTED_SKIP else "Branch kept"
            result.add(OperationOutcome.success("keep branch", f"{kept}: {wt.branch}"))

        if not wt.is_orphaned:
            result.add(self.worktree_service.prune())

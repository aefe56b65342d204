"""Safety evaluation service for worktree-keeper."""

import os
from typing import List, Optional, Union

from worktree_keeper.config import Config
from worktree_keeper.exceptions import SafetyBlockedError
from worktree_keeper.models.disposition import BranchDisposition
from worktree_keeper.models.worktree import SafetyReport, Worktree
from worktree_keeper.services.git.worktrees import WorktreeService
from worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)


class SafetyEvaluator:
    """Decides whether a worktree may be removed.

    Reports are computed fresh on every call; nothing is cached between
    cleanup attempts.
    """

    def __init__(self, worktree_service: WorktreeService, config: Union[Config, dict, None] = None):
        if config is None:
            config = Config()
        elif isinstance(config, dict):
            config = Config.from_dict(config)
        self.worktree_service = worktree_service
        self.config = config

    def evaluate(self, worktree: Worktree) -> SafetyReport:
        """Build a SafetyReport from the worktree's status and branch history.

        Raises:
            GitOperationError: if git status or rev-list fails on an existing worktree
        """
        base_branch = worktree.base_branch or self.worktree_service.resolve_base_branch()

        if worktree.is_orphaned:
            logger.debug(f"{worktree.path} is orphaned, reporting clean")
            return SafetyReport(
                has_uncommitted_changes=False,
                unmerged_commit_count=0,
                is_locked=worktree.is_locked,
                lock_reason=worktree.lock_reason,
                base_branch=base_branch,
            )

        changes = self.worktree_service.status_lines(worktree.path)
        unmerged = 0
        if base_branch:
            unmerged = self.worktree_service.unmerged_commit_count(
                worktree.path, worktree.branch or "HEAD", base_branch
            )
        else:
            logger.warning(
                f"None of {', '.join(self.config.base_branch_candidates)} exist; "
                "cannot count unmerged commits"
            )

        report = SafetyReport(
            has_uncommitted_changes=bool(changes),
            unmerged_commit_count=unmerged,
            change_count=len(changes),
            base_branch=base_branch,
            is_locked=worktree.is_locked,
            lock_reason=worktree.lock_reason,
        )
        logger.debug(f"Safety for {worktree.path}: {report}")
        return report

    def check_changes(self, worktree: Worktree, report: SafetyReport, force: bool = False) -> List[str]:
        """Block on uncommitted changes unless forced.

        Returns:
            Warnings to record (forced removal, missing base branch)

        Raises:
            SafetyBlockedError: if the worktree is dirty and force is not set
        """
        warnings = []
        if report.base_branch is None:
            warnings.append(
                f"No base branch found ({', '.join(self.config.base_branch_candidates)}); "
                "unmerged commits were not counted"
            )
        if not report.has_uncommitted_changes:
            return warnings
        if not force:
            raise SafetyBlockedError(
                f"Worktree has {report.change_count} uncommitted change(s): {worktree.path}",
                [
                    f"Commit changes: cd {worktree.path} && git add . && git commit",
                    f"Stash changes: git -C {worktree.path} stash",
                    f"Force removal (changes will be lost): worktree-keeper cleanup {worktree.path} --force",
                ],
            )
        warnings.append(
            f"Forcing removal of {report.change_count} uncommitted change(s); they will be lost"
        )
        return warnings

    def check_activity(self, worktree: Worktree, report: SafetyReport, force: bool = False) -> List[str]:
        """Block on locks (and on open handles when configured) unless forced.

        Returns:
            Warnings to record

        Raises:
            SafetyBlockedError: if a lock is active and force is not set
        """
        warnings = list(report.open_handle_warnings)
        blocking_handles = self.config.block_on_open_handles and bool(report.open_handles)

        if report.is_locked:
            if not force:
                name = os.path.basename(worktree.path.rstrip(os.sep))
                raise SafetyBlockedError(
                    f"Worktree is locked: {worktree.path} ({report.lock_reason or 'no reason given'})",
                    [
                        f"Unlock it if no operation is running: git worktree unlock {name}",
                        f"Force removal: worktree-keeper cleanup {worktree.path} --force",
                        f"Skip lock detection: worktree-keeper cleanup {worktree.path} --skip-lock-check",
                    ],
                )
            warnings.append(f"Ignoring lock because of --force: {report.lock_reason}")

        if blocking_handles:
            if not force:
                raise SafetyBlockedError(
                    f"{len(report.open_handles)} process(es) have open handles under {worktree.path}",
                    [
                        "Close the listed processes or leave the worktree directory in other shells",
                        f"Force removal: worktree-keeper cleanup {worktree.path} --force",
                    ],
                )
            warnings.append("Ignoring open handles because of --force")
        return warnings

    @staticmethod
    def unmerged_warnings(
        report: SafetyReport,
        branch: Optional[str],
        disposition: Optional[BranchDisposition] = None,
    ) -> List[str]:
        """Warnings for unmerged commits. These never block."""
        count = report.unmerged_commit_count
        if not count:
            return []
        warnings = [
            f"Branch {branch or 'HEAD'} has {count} commit(s) not merged into {report.base_branch}"
        ]
        if disposition is not None and disposition.deletes_local:
            warnings.append(
                f"Deleting {branch} will discard {count} unmerged commit(s) unless they exist elsewhere"
            )
        return warnings

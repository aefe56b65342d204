"""Branch disposition service for worktree-keeper."""

from typing import List, Optional, Union

from worktree_keeper.config import Config
from worktree_keeper.exceptions import DispositionRequiredError, InputError
from worktree_keeper.models.disposition import BranchDisposition
from worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)


class DispositionResolver:
    """Decides the fate of a worktree's branch. Never guesses."""

    def __init__(self, config: Union[Config, dict, None] = None):
        if config is None:
            config = Config()
        elif isinstance(config, dict):
            config = Config.from_dict(config)
        self.protected_branches: List[str] = config.protected_branches

    def is_protected(self, branch_name: str) -> bool:
        """Check if a branch is protected."""
        return branch_name in self.protected_branches

    def resolve(
        self,
        branch_name: str,
        intent: Optional[BranchDisposition],
        path: Optional[str] = None,
    ) -> BranchDisposition:
        """Resolve the disposition for ``branch_name``.

        Protected branches always resolve to PROTECTED_SKIP, whatever the
        caller asked for.

        Raises:
            DispositionRequiredError: if no intent was given for a non-protected branch
            InputError: if the caller supplied PROTECTED_SKIP
        """
        if self.is_protected(branch_name):
            if intent is not None and intent is not BranchDisposition.PROTECTED_SKIP:
                logger.info(f"Branch {branch_name} is protected; ignoring requested '{intent.value}'")
            return BranchDisposition.PROTECTED_SKIP

        if intent is None:
            raise DispositionRequiredError(branch_name, path)

        if intent is BranchDisposition.PROTECTED_SKIP:
            raise InputError(
                f"'{intent.value}' cannot be requested; it is reserved for protected branches",
                ["Pass --keep-branch, --delete-branch or --delete-local-branch"],
            )

        logger.debug(f"Disposition for {branch_name}: {intent.value}")
        return intent

"""Results of orchestrated create/cleanup operations."""

from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

from worktree_keeper.models.disposition import BranchDisposition
from worktree_keeper.models.outcome import ExitStatus, OperationOutcome
from worktree_keeper.models.worktree import SafetyReport, Worktree

if TYPE_CHECKING:
    from worktree_keeper.services.installer import InstallPlan


@dataclass
class CleanupResult:
    """Ordered step outcomes of one cleanup invocation."""

    path: str
    dry_run: bool = False
    branch: Optional[str] = None
    disposition: Optional[BranchDisposition] = None
    project_root: Optional[str] = None
    safety: Optional[SafetyReport] = None
    plan: List[str] = field(default_factory=list)
    steps: List[OperationOutcome] = field(default_factory=list)

    def add(self, outcome: OperationOutcome) -> OperationOutcome:
        self.steps.append(outcome)
        return outcome

    @property
    def blocking(self) -> Optional[OperationOutcome]:
        """The first non-success step, if any."""
        return next((step for step in self.steps if not step.ok), None)

    @property
    def warnings(self) -> List[str]:
        return [warning for step in self.steps for warning in step.warnings]

    @property
    def outcome(self) -> OperationOutcome:
        blocking = self.blocking
        if blocking is not None:
            return blocking
        summary = "Dry run complete, no changes made" if self.dry_run else "Cleanup complete"
        return OperationOutcome(
            ExitStatus.SUCCESS,
            step="cleanup",
            messages=[summary],
            warnings=self.warnings,
        )

    @property
    def exit_code(self) -> int:
        return self.outcome.exit_code

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "branch": self.branch,
            "disposition": self.disposition.value if self.disposition else None,
            "dry_run": self.dry_run,
            "project_root": self.project_root,
            "plan": list(self.plan),
            "safety": self.safety.to_dict() if self.safety else None,
            "steps": [step.to_dict() for step in self.steps],
            "outcome": self.outcome.to_dict(),
        }


@dataclass
class CreateResult:
    """A newly created worktree plus what happened around it."""

    worktree: Worktree
    install_plan: Optional["InstallPlan"] = None
    install_outcome: Optional[OperationOutcome] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = self.worktree.to_dict()
        data["install"] = self.install_plan.to_dict() if self.install_plan else None
        data["warnings"] = list(self.warnings)
        return data

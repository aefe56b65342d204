"""Dependency installation for new worktrees.

Project type is detected from marker files. When several markers coexist the
first entry of ``CAPABILITIES`` wins, so the order of that list is the
precedence: node, python (pyproject), python (requirements), ruby, php, go,
rust.
"""

import os
import shutil
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from worktree_keeper.models.outcome import OperationOutcome
from worktree_keeper.models.worktree import DependencyState
from worktree_keeper.services.executor import BoundedCommand, LimitKind, TimeoutBoundedExecutor
from worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class InstallPlan:
    """How to install dependencies for one ecosystem."""

    ecosystem: str
    marker: str
    command: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"type": self.ecosystem, "marker": self.marker, "command": list(self.command)}


def _node_command(path: str) -> List[str]:
    if os.path.exists(os.path.join(path, "package-lock.json")):
        return ["npm", "install"]
    if os.path.exists(os.path.join(path, "yarn.lock")):
        return ["yarn", "install"]
    if os.path.exists(os.path.join(path, "pnpm-lock.yaml")):
        return ["pnpm", "install"]
    return ["npm", "install"]


def _pyproject_command(path: str) -> List[str]:
    try:
        with open(os.path.join(path, "pyproject.toml")) as f:
            uses_poetry = "tool.poetry" in f.read()
    except OSError:
        uses_poetry = False
    if uses_poetry and shutil.which("poetry"):
        return ["poetry", "install"]
    if shutil.which("uv"):
        return ["uv", "sync"]
    return ["pip", "install", "-e", "."]


@dataclass
class Capability:
    """Marker file to ecosystem and install command."""

    ecosystem: str
    marker: str
    command: Callable[[str], List[str]]
    installed: Callable[[str], str]


def _dir_state(*names: str, missing: str = "false") -> Callable[[str], str]:
    def check(path: str) -> str:
        if any(os.path.exists(os.path.join(path, name)) for name in names):
            return "true"
        return missing
    return check


CAPABILITIES: List[Capability] = [
    Capability("nodejs", "package.json", _node_command, _dir_state("node_modules")),
    Capability("python", "pyproject.toml", _pyproject_command,
               _dir_state(".venv", "venv", missing="unknown")),
    Capability("python", "requirements.txt", lambda path: ["pip", "install", "-r", "requirements.txt"],
               _dir_state(".venv", "venv", missing="unknown")),
    Capability("ruby", "Gemfile", lambda path: ["bundle", "install"],
               _dir_state(os.path.join("vendor", "bundle"), "Gemfile.lock", missing="unknown")),
    Capability("php", "composer.json", lambda path: ["composer", "install"], _dir_state("vendor")),
    Capability("go", "go.mod", lambda path: ["go", "mod", "download"], lambda path: "true"),
    Capability("rust", "Cargo.toml", lambda path: ["cargo", "fetch"], _dir_state("target")),
]


def _match(path: str) -> Optional[Capability]:
    for capability in CAPABILITIES:
        if os.path.isfile(os.path.join(path, capability.marker)):
            return capability
    return None


def detect_install_plan(path: str) -> Optional[InstallPlan]:
    """Return the install plan for the worktree at ``path``, or None."""
    capability = _match(path)
    if capability is None:
        logger.debug(f"No dependency manifest found in {path}")
        return None
    plan = InstallPlan(capability.ecosystem, capability.marker, capability.command(path))
    logger.debug(f"Detected {plan.ecosystem} project ({plan.marker}): {' '.join(plan.command)}")
    return plan


def dependency_state(path: str) -> DependencyState:
    """Report the ecosystem of ``path`` and whether its dependencies look installed."""
    capability = _match(path)
    if capability is None:
        return DependencyState()
    return DependencyState(ecosystem=capability.ecosystem, installed=capability.installed(path))


def install(
    plan: InstallPlan,
    path: str,
    executor: TimeoutBoundedExecutor,
    limit: Optional[float] = None,
) -> OperationOutcome:
    """Run the plan's install command in ``path`` under the install limit.

    Failures come back as SUCCESS outcomes with a warning; a worktree without
    installed dependencies is still usable.
    """
    limit = executor.resolve_limit(LimitKind.INSTALL, limit)
    logger.info(f"Installing {plan.ecosystem} dependencies: {' '.join(plan.command)}")
    outcome = executor.run_bounded(
        BoundedCommand(plan.command, description=" ".join(plan.command), cwd=path), limit
    )
    if outcome.ok:
        return OperationOutcome.success(
            "install dependencies", f"{plan.ecosystem} dependencies installed", details=outcome.details
        )
    warnings = [f"Dependency install failed ({' '.join(plan.command)}); install manually in {path}"]
    warnings.extend(outcome.messages)
    return OperationOutcome.success("install dependencies", warnings=warnings, details=outcome.details)

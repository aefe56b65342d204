"""Timeout-bounded execution of external commands.

Removal, network and install commands run as child processes in their own
session. When a wall-clock limit expires the whole process group is
terminated (SIGTERM, then SIGKILL after a short grace period), its pipes are
drained and closed, and a TIMEOUT outcome is returned. There is no way to tell
a slow operation from a hung one other than the limit, so timeout remediation
always offers both a larger limit and manual inspection.
"""

import os
import signal
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from worktree_keeper.config import (
    Config,
    DEFAULT_INSTALL_TIMEOUT,
    DEFAULT_NETWORK_TIMEOUT,
    DEFAULT_REMOVE_TIMEOUT,
)
from worktree_keeper.exceptions import OperationTimeoutError
from worktree_keeper.models.outcome import ExitStatus, OperationOutcome
from worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)


class LimitKind(Enum):
    """Independently configurable limits."""
    REMOVAL = "remove_timeout"
    NETWORK = "network_timeout"
    INSTALL = "install_timeout"


@dataclass
class BoundedCommand:
    """An external command to run under a time limit."""

    argv: List[str]
    description: str = ""
    cwd: Optional[str] = None

    def __post_init__(self):
        if not self.description:
            self.description = " ".join(self.argv[:3])


@dataclass
class CommandResult:
    """Raw result of a bounded command."""

    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""
    elapsed: float = 0.0
    timed_out: bool = False
    error: Optional[str] = None  # Set when the command could not be started

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.error is None and self.returncode == 0


DEFAULT_LIMITS = {
    LimitKind.REMOVAL: DEFAULT_REMOVE_TIMEOUT,
    LimitKind.NETWORK: DEFAULT_NETWORK_TIMEOUT,
    LimitKind.INSTALL: DEFAULT_INSTALL_TIMEOUT,
}


class TimeoutBoundedExecutor:
    """Runs commands under hard wall-clock limits."""

    def __init__(self, config: Union[Config, dict, None] = None, kill_grace: float = 1.0):
        """Initialize the executor.

        Args:
            config: Configuration dict or Config object holding process-wide limits
            kill_grace: Seconds to wait after SIGTERM before SIGKILL
        """
        self.config = config
        self.kill_grace = kill_grace

    def resolve_limit(self, kind: LimitKind, override: Optional[float] = None) -> float:
        """Per-call value, else process-wide configuration, else built-in default."""
        if override is not None:
            if override <= 0:
                raise ValueError(f"{kind.value} must be positive, got {override}")
            return float(override)
        if self.config is not None:
            configured = self.config.get(kind.value)
            if configured is not None:
                return float(configured)
        return DEFAULT_LIMITS[kind]

    def run(self, command: BoundedCommand, limit: float) -> CommandResult:
        """Run a command, killing it if it exceeds ``limit`` seconds."""
        logger.debug(f"Running '{' '.join(command.argv)}' (limit {limit:g}s, cwd={command.cwd})")
        start = time.monotonic()
        try:
            process = subprocess.Popen(
                command.argv,
                cwd=command.cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                start_new_session=(os.name == "posix"),
            )
        except OSError as e:
            logger.debug(f"Could not start '{command.description}': {e}")
            return CommandResult(returncode=None, error=str(e), elapsed=time.monotonic() - start)

        try:
            stdout, stderr = process.communicate(timeout=limit)
        except subprocess.TimeoutExpired:
            self._terminate(process)
            stdout, stderr = self._drain(process)
            elapsed = time.monotonic() - start
            logger.warning(f"'{command.description}' timed out after {elapsed:.1f}s (limit {limit:g}s)")
            return CommandResult(
                returncode=process.returncode,
                stdout=stdout,
                stderr=stderr,
                elapsed=elapsed,
                timed_out=True,
            )

        elapsed = time.monotonic() - start
        logger.debug(f"'{command.description}' exited {process.returncode} after {elapsed:.2f}s")
        return CommandResult(
            returncode=process.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            elapsed=elapsed,
        )

    def run_bounded(
        self,
        command: BoundedCommand,
        limit: float,
        timeout_remediation: Optional[List[str]] = None,
        failure_remediation: Optional[List[str]] = None,
    ) -> OperationOutcome:
        """Run a command and classify the result as an OperationOutcome."""
        result = self.run(command, limit)
        details = {
            "command": command.argv,
            "limit": limit,
            "elapsed": round(result.elapsed, 3),
            "returncode": result.returncode,
        }

        if result.timed_out:
            error = OperationTimeoutError(command.description, limit, timeout_remediation)
            outcome = OperationOutcome.from_error(command.description, error)
            outcome.details = details
            return outcome

        if result.error is not None:
            return OperationOutcome(
                ExitStatus.INPUT_ERROR,
                step=command.description,
                messages=[f"Could not run '{command.description}': {result.error}"],
                remediation=failure_remediation or [
                    f"Check that '{command.argv[0]}' is installed and on PATH",
                ],
                details=details,
            )

        if result.returncode != 0:
            stderr = result.stderr.strip()
            message = f"'{command.description}' failed (exit {result.returncode})"
            if stderr:
                message += f": {stderr}"
            return OperationOutcome(
                ExitStatus.INPUT_ERROR,
                step=command.description,
                messages=[message],
                remediation=failure_remediation or [
                    f"Run '{' '.join(command.argv)}' manually to see the full error",
                ],
                details=details,
            )

        return OperationOutcome.success(command.description, details=details)

    def _terminate(self, process: subprocess.Popen) -> None:
        """Terminate the process group, escalating to SIGKILL after the grace period.

        SIGKILL is sent even when the leader exits on SIGTERM, so grandchildren
        still holding the output pipes do not outlive the call.
        """
        self._signal(process, signal.SIGTERM if os.name == "posix" else None)
        try:
            process.wait(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            logger.debug(f"Process {process.pid} ignored SIGTERM, escalating")
        self._signal(process, signal.SIGKILL if os.name == "posix" else None)
        try:
            process.wait(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            logger.error(f"Process {process.pid} did not exit after SIGKILL")

    @staticmethod
    def _signal(process: subprocess.Popen, sig) -> None:
        try:
            if sig is not None:
                os.killpg(process.pid, sig)
            else:
                process.kill()
        except (ProcessLookupError, PermissionError) as e:
            logger.debug(f"Could not signal process group {process.pid}: {e}")

    def _drain(self, process: subprocess.Popen) -> Tuple[str, str]:
        """Collect remaining output and close the pipes."""
        try:
            stdout, stderr = process.communicate(timeout=self.kill_grace)
        except (subprocess.TimeoutExpired, ValueError, OSError) as e:
            logger.debug(f"Could not drain output of process {process.pid}: {e}")
            stdout, stderr = "", ""
        finally:
            for stream in (process.stdout, process.stderr):
                if stream is not None and not stream.closed:
                    stream.close()
        return stdout or "", stderr or ""

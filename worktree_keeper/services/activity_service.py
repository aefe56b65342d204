"""Lock and activity detection for worktree paths.

Two sources of evidence are consulted:

* marker files in the worktree's administrative git dir, left by
  ``git worktree lock`` or by an in-progress index write, merge, rebase,
  cherry-pick, revert or bisect;
* processes with a current directory or open file under the worktree path,
  found with psutil.

This is a best-effort, non-atomic guard. Two cleanups racing on the same path
can both pass the check before either removes anything; callers that run
agents in parallel must still give each agent its own worktree.
"""

import os
import time
from pathlib import Path
from typing import List, Optional, Tuple, Union

import psutil

from worktree_keeper.config import Config
from worktree_keeper.constants import LOCK_MARKERS
from worktree_keeper.models.worktree import ActivityReport
from worktree_keeper.utils.logging import get_logger
from worktree_keeper.utils.paths import is_within, resolve_path

logger = get_logger(__name__)


class ActivityDetector:
    """Finds locks and open handles that make removing a worktree unsafe."""

    def __init__(self, config: Union[Config, dict, None] = None, own_pid: Optional[int] = None):
        if config is None:
            config = Config()
        elif isinstance(config, dict):
            config = Config.from_dict(config)
        self.config = config
        self.own_pid = own_pid if own_pid is not None else os.getpid()

    def detect(self, path: str, git_dir: Optional[Path] = None) -> ActivityReport:
        """Collect lock markers and open handles for ``path``."""
        markers, reason = self.find_lock_markers(git_dir)
        handles, warnings, available = self.scan_open_handles(path)
        report = ActivityReport(
            is_locked=bool(markers),
            lock_reason=reason,
            lock_markers=markers,
            open_handles=handles,
            open_handle_warnings=warnings,
            handle_detection_available=available,
        )
        logger.debug(
            f"Activity for {path}: markers={markers} handles={len(handles)} "
            f"detection_available={available}"
        )
        return report

    @staticmethod
    def find_lock_markers(git_dir: Optional[Path]) -> Tuple[List[str], Optional[str]]:
        """Return present lock markers and the lock reason, if any.

        The reason is the content of the ``locked`` file written by
        ``git worktree lock --reason``. Other markers describe themselves.
        """
        if git_dir is None or not git_dir.is_dir():
            return [], None

        markers = [name for name in LOCK_MARKERS if (git_dir / name).exists()]
        if not markers:
            return [], None

        reason = None
        if "locked" in markers:
            try:
                reason = (git_dir / "locked").read_text().strip() or None
            except OSError as e:
                logger.debug(f"Could not read lock reason in {git_dir}: {e}")
            if reason is None:
                reason = "locked by git worktree lock"
        else:
            reason = f"in-progress git operation ({', '.join(markers)})"
        return markers, reason

    def scan_open_handles(self, path: str) -> Tuple[List[str], List[str], bool]:
        """Find other processes using files under ``path``.

        Returns:
            Tuple of (handles, warnings, detection_available). Every detected
            handle also appears in warnings; degraded detection adds a warning
            without any handle.
        """
        target = resolve_path(path)
        if not os.path.exists(target):
            return [], [], True

        deadline = time.monotonic() + self.config.lock_check_timeout
        handles: List[str] = []
        warnings: List[str] = []
        scanned = 0
        denied = 0

        try:
            processes = psutil.process_iter(["pid", "name"])
        except (psutil.Error, OSError) as e:
            logger.debug(f"Process listing unavailable: {e}")
            return [], [f"Open-handle detection unavailable ({e}); continuing without it"], False

        for proc in processes:
            if time.monotonic() > deadline:
                warnings.append(
                    f"Open-handle scan stopped after {self.config.lock_check_timeout:g}s; "
                    "results are incomplete"
                )
                break
            pid = proc.info.get("pid")
            if pid == self.own_pid:
                continue
            scanned += 1
            try:
                found = self._handles_of(proc, target)
            except (psutil.NoSuchProcess, psutil.ZombieProcess):
                continue
            except psutil.AccessDenied:
                denied += 1
                continue
            for where in found:
                handles.append(f"{proc.info.get('name') or '?'} (pid {pid}) {where}")

        available = not (scanned and denied == scanned)
        if not available:
            warnings.append(
                "Open-handle detection unavailable: access denied to every process; "
                "continuing without it"
            )
        elif denied:
            logger.debug(f"Access denied to {denied} of {scanned} processes during handle scan")

        for handle in handles:
            warnings.append(f"Open handle under worktree: {handle}")
        return handles, warnings, available

    @staticmethod
    def _handles_of(proc: psutil.Process, target: str) -> List[str]:
        found = []
        cwd = proc.cwd()
        if cwd and is_within(cwd, target):
            found.append(f"has its working directory in {cwd}")
        for open_file in proc.open_files():
            if is_within(open_file.path, target):
                found.append(f"has {open_file.path} open")
                break
        return found

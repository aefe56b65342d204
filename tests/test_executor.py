"""Tests for the timeout-bounded executor"""
import sys
import time

import pytest

from worktree_keeper.config import Config
from worktree_keeper.models.outcome import ExitStatus
from worktree_keeper.services.executor import BoundedCommand, LimitKind, TimeoutBoundedExecutor

SLEEPER = [sys.executable, "-c", "import time; time.sleep(30)"]
# Parent that leaves a grandchild holding the output pipes
SPAWNER = [
    sys.executable,
    "-c",
    "import subprocess, sys, time; "
    "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)']); "
    "time.sleep(30)",
]
EPSILON = 5.0


class TestLimitResolution:
    """Test per-call > configuration > default precedence."""

    def test_defaults(self):
        executor = TimeoutBoundedExecutor()
        assert executor.resolve_limit(LimitKind.REMOVAL) == 120
        assert executor.resolve_limit(LimitKind.NETWORK) == 30
        assert executor.resolve_limit(LimitKind.INSTALL) == 600

    def test_config_overrides_default(self):
        executor = TimeoutBoundedExecutor(Config(remove_timeout=45, network_timeout=12))
        assert executor.resolve_limit(LimitKind.REMOVAL) == 45
        assert executor.resolve_limit(LimitKind.NETWORK) == 12

    def test_per_call_overrides_config(self):
        executor = TimeoutBoundedExecutor(Config(remove_timeout=45))
        assert executor.resolve_limit(LimitKind.REMOVAL, 300) == 300

    @pytest.mark.parametrize("value", [0, -1])
    def test_non_positive_rejected(self, value):
        with pytest.raises(ValueError):
            TimeoutBoundedExecutor().resolve_limit(LimitKind.REMOVAL, value)


class TestRun:
    """Test running commands."""

    def test_success(self):
        executor = TimeoutBoundedExecutor()
        result = executor.run(BoundedCommand([sys.executable, "-c", "print('hello')"]), 10)
        assert result.ok
        assert result.stdout.strip() == "hello"
        assert result.timed_out is False

    def test_success_outcome(self):
        outcome = TimeoutBoundedExecutor().run_bounded(
            BoundedCommand([sys.executable, "-c", "pass"], description="noop"), 10
        )
        assert outcome.ok
        assert outcome.step == "noop"
        assert outcome.details["returncode"] == 0

    def test_non_zero_exit_is_input_error(self):
        command = BoundedCommand(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"],
            description="failing",
        )
        outcome = TimeoutBoundedExecutor().run_bounded(command, 10)
        assert outcome.status is ExitStatus.INPUT_ERROR
        assert "boom" in outcome.messages[0]
        assert outcome.remediation

    def test_missing_program(self):
        outcome = TimeoutBoundedExecutor().run_bounded(
            BoundedCommand(["definitely-not-a-real-program-xyz"]), 10
        )
        assert outcome.status is ExitStatus.INPUT_ERROR
        assert "Could not run" in outcome.messages[0]

    def test_description_defaults_to_argv(self):
        assert BoundedCommand(["git", "worktree", "remove", "/x"]).description == "git worktree remove"


class TestTimeout:
    """Test that delayed commands are cut off near the limit."""

    def test_timeout_returns_within_limit(self):
        executor = TimeoutBoundedExecutor(kill_grace=0.5)
        limit = 1.0
        start = time.monotonic()
        outcome = executor.run_bounded(BoundedCommand(SLEEPER, description="sleep"), limit)
        elapsed = time.monotonic() - start

        assert outcome.status is ExitStatus.TIMEOUT
        assert outcome.exit_code == 4
        assert elapsed < limit + EPSILON
        assert len(outcome.remediation) >= 2

    def test_timeout_kills_process_group(self):
        executor = TimeoutBoundedExecutor(kill_grace=0.5)
        limit = 1.0
        start = time.monotonic()
        result = executor.run(BoundedCommand(SPAWNER), limit)
        elapsed = time.monotonic() - start

        assert result.timed_out
        assert elapsed < limit + EPSILON

    def test_custom_timeout_remediation(self):
        executor = TimeoutBoundedExecutor(kill_grace=0.5)
        outcome = executor.run_bounded(
            BoundedCommand(SLEEPER), 0.5, timeout_remediation=["Retry with --timeout 300"]
        )
        assert outcome.remediation == ["Retry with --timeout 300"]

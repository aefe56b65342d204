"""Tests for dependency detection and installation"""
import sys
from unittest.mock import patch

import pytest

from worktree_keeper.services import installer
from worktree_keeper.services.executor import TimeoutBoundedExecutor
from worktree_keeper.services.installer import InstallPlan, dependency_state, detect_install_plan


def _touch(root, *names):
    for name in names:
        (root / name).write_text("")


class TestDetectInstallPlan:
    def test_no_manifest(self, temp_dir):
        assert detect_install_plan(str(temp_dir)) is None

    @pytest.mark.parametrize("lockfile, command", [
        ("package-lock.json", ["npm", "install"]),
        ("yarn.lock", ["yarn", "install"]),
        ("pnpm-lock.yaml", ["pnpm", "install"]),
    ])
    def test_node_lockfiles(self, temp_dir, lockfile, command):
        _touch(temp_dir, "package.json", lockfile)
        plan = detect_install_plan(str(temp_dir))
        assert plan.ecosystem == "nodejs"
        assert plan.command == command

    def test_node_without_lockfile(self, temp_dir):
        _touch(temp_dir, "package.json")
        assert detect_install_plan(str(temp_dir)).command == ["npm", "install"]

    def test_node_wins_over_python(self, temp_dir):
        _touch(temp_dir, "pyproject.toml", "requirements.txt", "package.json")
        plan = detect_install_plan(str(temp_dir))
        assert plan.ecosystem == "nodejs"
        assert plan.marker == "package.json"

    def test_pyproject_wins_over_requirements(self, temp_dir):
        _touch(temp_dir, "pyproject.toml", "requirements.txt")
        assert detect_install_plan(str(temp_dir)).marker == "pyproject.toml"

    def test_poetry_project(self, temp_dir):
        (temp_dir / "pyproject.toml").write_text("[tool.poetry]\nname = 'x'\n")
        with patch.object(installer.shutil, "which", return_value="/usr/bin/poetry"):
            assert detect_install_plan(str(temp_dir)).command == ["poetry", "install"]

    def test_uv_when_available(self, temp_dir):
        (temp_dir / "pyproject.toml").write_text("[project]\nname = 'x'\n")
        with patch.object(installer.shutil, "which", side_effect=lambda name: "/bin/uv" if name == "uv" else None):
            assert detect_install_plan(str(temp_dir)).command == ["uv", "sync"]

    def test_pip_fallback(self, temp_dir):
        (temp_dir / "pyproject.toml").write_text("[tool.poetry]\n")
        with patch.object(installer.shutil, "which", return_value=None):
            assert detect_install_plan(str(temp_dir)).command == ["pip", "install", "-e", "."]

    @pytest.mark.parametrize("marker, ecosystem, command", [
        ("requirements.txt", "python", ["pip", "install", "-r", "requirements.txt"]),
        ("Gemfile", "ruby", ["bundle", "install"]),
        ("composer.json", "php", ["composer", "install"]),
        ("go.mod", "go", ["go", "mod", "download"]),
        ("Cargo.toml", "rust", ["cargo", "fetch"]),
    ])
    def test_other_ecosystems(self, temp_dir, marker, ecosystem, command):
        _touch(temp_dir, marker)
        plan = detect_install_plan(str(temp_dir))
        assert (plan.ecosystem, plan.command) == (ecosystem, command)

    def test_go_wins_over_rust(self, temp_dir):
        _touch(temp_dir, "Cargo.toml", "go.mod")
        assert detect_install_plan(str(temp_dir)).ecosystem == "go"


class TestDependencyState:
    def test_none(self, temp_dir):
        assert dependency_state(str(temp_dir)).to_dict() == {"type": "none", "installed": "unknown"}

    def test_node_installed(self, temp_dir):
        _touch(temp_dir, "package.json")
        assert dependency_state(str(temp_dir)).installed == "false"
        (temp_dir / "node_modules").mkdir()
        assert dependency_state(str(temp_dir)).installed == "true"

    def test_python_unknown_without_venv(self, temp_dir):
        _touch(temp_dir, "requirements.txt")
        state = dependency_state(str(temp_dir))
        assert (state.ecosystem, state.installed) == ("python", "unknown")
        (temp_dir / ".venv").mkdir()
        assert dependency_state(str(temp_dir)).installed == "true"

    def test_ruby_lockfile_counts(self, temp_dir):
        _touch(temp_dir, "Gemfile", "Gemfile.lock")
        assert dependency_state(str(temp_dir)).installed == "true"

    def test_go_always_installed(self, temp_dir):
        _touch(temp_dir, "go.mod")
        assert dependency_state(str(temp_dir)).installed == "true"


class TestInstall:
    def test_success(self, temp_dir):
        plan = InstallPlan("python", "requirements.txt", [sys.executable, "-c", "pass"])
        outcome = installer.install(plan, str(temp_dir), TimeoutBoundedExecutor())
        assert outcome.ok
        assert outcome.warnings == []

    def test_failure_is_a_warning(self, temp_dir):
        plan = InstallPlan("python", "requirements.txt", [sys.executable, "-c", "import sys; sys.exit(1)"])
        outcome = installer.install(plan, str(temp_dir), TimeoutBoundedExecutor())
        assert outcome.ok
        assert any("install failed" in w for w in outcome.warnings)

    def test_timeout_is_a_warning(self, temp_dir):
        plan = InstallPlan("python", "requirements.txt", [sys.executable, "-c", "import time; time.sleep(30)"])
        outcome = installer.install(plan, str(temp_dir), TimeoutBoundedExecutor(kill_grace=0.5), limit=0.5)
        assert outcome.ok
        assert any("timed out" in w for w in outcome.warnings)

    def test_plan_to_dict(self):
        plan = InstallPlan("nodejs", "package.json", ["npm", "install"])
        assert plan.to_dict() == {"type": "nodejs", "marker": "package.json", "command": ["npm", "install"]}

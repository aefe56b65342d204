"""Pytest fixtures for worktree-keeper tests"""
import os
import tempfile
from pathlib import Path

import git
import pytest

from worktree_keeper.config import Config
from worktree_keeper.core import WorktreeKeeper


def commit_file(repo: git.Repo, root: Path, name: str, content: str, message: str) -> str:
    """Write a file under ``root`` and commit it in ``repo``."""
    path = root / name
    path.write_text(content)
    repo.index.add([str(path)])
    return repo.index.commit(message).hexsha


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing (symlink-free path)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(os.path.realpath(tmpdir))


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository on branch main with one commit."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    (repo_path / ".gitignore").write_text("trees/\n")
    commit_file(repo, repo_path, "README.md", "# Test Repository\n", "Initial commit")
    repo.index.add([".gitignore"])
    repo.index.commit("Ignore trees directory")

    repo.git.branch("-M", "main")

    yield repo

    repo.close()


@pytest.fixture
def git_repo_with_develop(git_repo):
    """Repository with a develop branch next to main."""
    git_repo.git.branch("develop")
    yield git_repo


@pytest.fixture
def remote_repo(temp_dir, git_repo):
    """Bare repository registered as origin, with main pushed."""
    remote_path = temp_dir / "remote.git"
    bare = git.Repo.init(remote_path, bare=True)
    git_repo.create_remote("origin", str(remote_path))
    git_repo.git.push("origin", "main")
    yield bare
    bare.close()


@pytest.fixture
def config():
    """Configuration without dependency installs."""
    return Config(install_dependencies=False)


@pytest.fixture
def keeper(git_repo, config):
    """WorktreeKeeper for the test repository."""
    return WorktreeKeeper(git_repo.working_dir, config)


@pytest.fixture
def add_worktree(git_repo):
    """Factory adding a linked worktree under trees/ with a new branch."""
    repo_path = Path(git_repo.working_dir)

    def _add(name: str, branch=None, base: str = "main", new_branch: bool = True) -> str:
        path = repo_path / "trees" / name
        path.parent.mkdir(exist_ok=True)
        if branch is None:
            git_repo.git.worktree("add", "--detach", str(path), base)
        elif new_branch:
            git_repo.git.worktree("add", str(path), "-b", branch, base)
        else:
            git_repo.git.worktree("add", str(path), branch)
        return str(path)

    return _add


@pytest.fixture
def commit():
    """Helper writing and committing a file: commit(repo, root, name, content, message)."""
    return commit_file

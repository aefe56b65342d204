"""Tests for the git worktree service"""
import os
from pathlib import Path
from unittest.mock import patch

import git
import pytest

from worktree_keeper.config import Config
from worktree_keeper.exceptions import GitOperationError, InputError, WorktreeInUseError
from worktree_keeper.models.outcome import ExitStatus
from worktree_keeper.services.git import (
    WorktreeService,
    derive_names,
    normalize_description,
    parse_worktree_porcelain,
)


class TestParseWorktreePorcelain:
    """Test parsing of `git worktree list --porcelain` output."""

    def test_main_and_linked_worktrees(self):
        output = (
            "worktree /repo\n"
            "HEAD 1111111111111111111111111111111111111111\n"
            "branch refs/heads/main\n"
            "\n"
            "worktree /repo/trees/T1-feat\n"
            "HEAD 2222222222222222222222222222222222222222\n"
            "branch refs/heads/feature/T1-feat\n"
            "\n"
        )
        worktrees = parse_worktree_porcelain(output)

        assert [wt.path for wt in worktrees] == ["/repo", "/repo/trees/T1-feat"]
        assert worktrees[0].is_main is True
        assert worktrees[1].is_main is False
        assert worktrees[1].branch == "feature/T1-feat"
        assert worktrees[1].head_commit.startswith("2222")

    def test_detached_and_locked(self):
        output = (
            "worktree /repo\n"
            "HEAD 1111111111111111111111111111111111111111\n"
            "branch refs/heads/main\n"
            "\n"
            "worktree /repo/trees/detached\n"
            "HEAD 3333333333333333333333333333333333333333\n"
            "detached\n"
            "locked agent is running"
        )
        worktrees = parse_worktree_porcelain(output)

        assert len(worktrees) == 2
        assert worktrees[1].branch is None
        assert worktrees[1].is_locked is True
        assert worktrees[1].lock_reason == "agent is running"

    def test_locked_without_reason(self):
        output = "worktree /repo\nHEAD abc\nbranch refs/heads/main\n\nworktree /x\nHEAD def\nbranch refs/heads/b\nlocked\n"
        worktrees = parse_worktree_porcelain(output)
        assert worktrees[1].is_locked is True
        assert worktrees[1].lock_reason is None

    def test_missing_directory_is_orphaned(self, temp_dir):
        missing = temp_dir / "gone"
        output = f"worktree {temp_dir}\nHEAD abc\nbranch refs/heads/main\n\nworktree {missing}\nHEAD def\nbranch refs/heads/x\n"
        worktrees = parse_worktree_porcelain(output)
        assert worktrees[0].is_orphaned is False
        assert worktrees[1].is_orphaned is True

    def test_empty_output(self):
        assert parse_worktree_porcelain("") == []


class TestNameDerivation:
    """Test worktree and branch name derivation."""

    def test_normalize_description(self):
        assert normalize_description("Auth Feature") == "auth-feature"
        assert normalize_description("Fix: login (v2)!") == "fix-login-v2"

    def test_derive_names(self):
        name, branch = derive_names("PROJ-123", "Auth Feature", Config())
        assert name == "PROJ-123-auth-feature"
        assert branch == "feature/PROJ-123-auth-feature"

    def test_custom_branch_prefix(self):
        _, branch = derive_names("T1", "feat", Config(branch_prefix="task/"))
        assert branch == "task/T1-feat"

    @pytest.mark.parametrize("task_id", ["", "   ", "-leading", "has space", "semi;colon"])
    def test_invalid_task_id(self, task_id):
        with pytest.raises(InputError):
            derive_names(task_id, "feat", Config())

    def test_description_without_usable_characters(self):
        with pytest.raises(InputError) as exc_info:
            derive_names("T1", "!!!", Config())
        assert exc_info.value.remediation


class TestWorktreeQueries:
    """Test read-only worktree queries against a real repository."""

    def test_not_a_repository(self, temp_dir):
        service = WorktreeService(str(temp_dir), Config())
        with pytest.raises(InputError) as exc_info:
            service.list_worktrees()
        assert "Not in a git repository" in str(exc_info.value)

    def test_list_main_only(self, git_repo):
        service = WorktreeService(git_repo.working_dir, Config())
        worktrees = service.list_worktrees()

        assert len(worktrees) == 1
        assert worktrees[0].is_main is True
        assert worktrees[0].branch == "main"
        assert os.path.realpath(worktrees[0].path) == os.path.realpath(git_repo.working_dir)

    def test_list_error_is_raised(self, git_repo):
        service = WorktreeService(git_repo.working_dir, Config())
        with patch.object(service, "_get_repo") as mock_get_repo:
            mock_get_repo.return_value.git.worktree.side_effect = git.exc.GitCommandError(
                "worktree", status=128, stderr="fatal: broken"
            )
            with pytest.raises(GitOperationError) as exc_info:
                service.list_worktrees()
        assert "fatal: broken" in str(exc_info.value)

    def test_find_worktree(self, git_repo, add_worktree):
        path = add_worktree("T1-feat", "feature/T1-feat")
        service = WorktreeService(git_repo.working_dir, Config())

        found = service.find_worktree(path)
        assert found is not None
        assert found.branch == "feature/T1-feat"
        assert service.find_worktree(os.path.join(path, "nope")) is None

    def test_resolve_base_branch_order(self, git_repo_with_develop):
        service = WorktreeService(git_repo_with_develop.working_dir, Config())
        assert service.resolve_base_branch() == "develop"
        assert service.resolve_base_branch(["master", "main"]) == "main"
        assert service.resolve_base_branch(["trunk"]) is None

    def test_unmerged_commit_count(self, git_repo, add_worktree, commit):
        path = add_worktree("T1-feat", "feature/T1-feat")
        wt_repo = git.Repo(path)
        commit(wt_repo, Path(path), "a.txt", "a\n", "T1: first")
        commit(wt_repo, Path(path), "b.txt", "b\n", "T1: second")
        service = WorktreeService(git_repo.working_dir, Config())

        assert service.unmerged_commit_count(path, "feature/T1-feat", "main") == 2

    def test_status_lines(self, git_repo, add_worktree):
        path = add_worktree("T1-feat", "feature/T1-feat")
        service = WorktreeService(git_repo.working_dir, Config())
        assert service.status_lines(path) == []

        Path(path, "new.txt").write_text("x\n")
        assert len(service.status_lines(path)) == 1

    def test_last_commit(self, git_repo):
        service = WorktreeService(git_repo.working_dir, Config())
        info = service.last_commit(git_repo.working_dir)
        assert "Ignore trees directory" in info.summary
        assert info.author == "Test User"
        assert info.date[:4].isdigit()

    def test_ahead_behind_without_upstream(self, git_repo, add_worktree):
        path = add_worktree("T1-feat", "feature/T1-feat")
        service = WorktreeService(git_repo.working_dir, Config())
        assert service.ahead_behind(path, "feature/T1-feat") == (0, 0, None)

    def test_ahead_behind_with_upstream(self, git_repo, remote_repo, add_worktree, commit):
        path = add_worktree("T1-feat", "feature/T1-feat")
        wt_repo = git.Repo(path)
        wt_repo.git.push("-u", "origin", "feature/T1-feat")
        commit(wt_repo, Path(path), "a.txt", "a\n", "local only")
        service = WorktreeService(git_repo.working_dir, Config())

        ahead, behind, upstream = service.ahead_behind(path, "feature/T1-feat")
        assert (ahead, behind) == (1, 0)
        assert upstream == "origin/feature/T1-feat"

    def test_commits_mentioning(self, git_repo, commit):
        commit(git_repo, Path(git_repo.working_dir), "t.txt", "t\n", "PROJ-9: earlier attempt")
        service = WorktreeService(git_repo.working_dir, Config())
        assert len(service.commits_mentioning("PROJ-9", "main")) == 1
        assert service.commits_mentioning("PROJ-10", "main") == []

    def test_worktree_git_dir(self, git_repo, add_worktree):
        path = add_worktree("T1-feat", "feature/T1-feat")
        service = WorktreeService(git_repo.working_dir, Config())
        git_dir = service.worktree_git_dir(path)
        assert git_dir is not None
        assert git_dir.parent.name == "worktrees"


class TestWorktreeMutations:
    """Test creating and removing worktrees and branches."""

    def test_create_worktree(self, git_repo):
        service = WorktreeService(git_repo.working_dir, Config())
        worktree = service.create_worktree("T1", "Feat", "main")

        expected = os.path.join(os.path.realpath(git_repo.working_dir), "trees", "T1-feat")
        assert os.path.realpath(worktree.path) == expected
        assert worktree.branch == "feature/T1-feat"
        assert worktree.base_branch == "main"
        assert service.branch_exists("feature/T1-feat")

    def test_create_refuses_existing_branch(self, git_repo):
        git_repo.git.branch("feature/T1-feat")
        service = WorktreeService(git_repo.working_dir, Config())
        with pytest.raises(InputError) as exc_info:
            service.create_worktree("T1", "feat", "main")
        assert "Branch already exists" in str(exc_info.value)

    def test_create_refuses_existing_path(self, git_repo):
        Path(git_repo.working_dir, "trees", "T1-feat").mkdir(parents=True)
        service = WorktreeService(git_repo.working_dir, Config())
        with pytest.raises(InputError) as exc_info:
            service.create_worktree("T1", "feat", "main")
        assert "Worktree already exists" in str(exc_info.value)

    def test_remove_refuses_when_cwd_inside(self, git_repo, add_worktree):
        path = add_worktree("T1-feat", "feature/T1-feat")
        service = WorktreeService(git_repo.working_dir, Config())
        with pytest.raises(WorktreeInUseError) as exc_info:
            service.remove_worktree_entry(path, cwd=os.path.join(path, "."))
        assert exc_info.value.exit_status is ExitStatus.INPUT_ERROR
        assert any("cd " in step for step in exc_info.value.remediation)
        assert os.path.isdir(path)

    def test_remove_worktree_entry(self, git_repo, add_worktree):
        path = add_worktree("T1-feat", "feature/T1-feat")
        service = WorktreeService(git_repo.working_dir, Config())

        outcome = service.remove_worktree_entry(path, cwd=git_repo.working_dir)

        assert outcome.ok
        assert not os.path.exists(path)
        assert service.find_worktree(path) is None

    def test_remove_dirty_without_force_fails(self, git_repo, add_worktree):
        path = add_worktree("T1-feat", "feature/T1-feat")
        Path(path, "dirty.txt").write_text("x\n")
        service = WorktreeService(git_repo.working_dir, Config())

        outcome = service.remove_worktree_entry(path, cwd=git_repo.working_dir)

        assert outcome.status is ExitStatus.INPUT_ERROR
        assert outcome.remediation
        assert os.path.isdir(path)

    def test_delete_local_branch_merged(self, git_repo):
        git_repo.git.branch("feature/merged")
        service = WorktreeService(git_repo.working_dir, Config())

        outcome = service.delete_local_branch("feature/merged")

        assert outcome.ok
        assert outcome.warnings == []
        assert not service.branch_exists("feature/merged")

    def test_delete_local_branch_falls_back_to_force(self, git_repo, add_worktree, commit):
        path = add_worktree("T1-feat", "feature/T1-feat")
        commit(git.Repo(path), Path(path), "a.txt", "a\n", "unmerged work")
        git_repo.git.worktree("remove", path)
        service = WorktreeService(git_repo.working_dir, Config())

        outcome = service.delete_local_branch("feature/T1-feat")

        assert outcome.ok
        assert any("force-deleted" in w for w in outcome.warnings)
        assert not service.branch_exists("feature/T1-feat")

    def test_remote_branch_without_remote(self, git_repo):
        service = WorktreeService(git_repo.working_dir, Config())
        outcome = service.remote_branch_exists("main", limit=30)
        assert outcome.ok
        assert outcome.details["exists"] is False

    def test_remote_branch_round_trip(self, git_repo, remote_repo):
        git_repo.git.branch("feature/pushed")
        git_repo.git.push("origin", "feature/pushed")
        service = WorktreeService(git_repo.working_dir, Config())

        assert service.remote_branch_exists("feature/pushed").details["exists"] is True
        assert service.remote_branch_exists("feature/never").details["exists"] is False

        outcomes = service.delete_branch("feature/pushed", local=True, remote=True)

        assert [o.step for o in outcomes] == ["delete local branch", "delete remote branch"]
        assert all(o.ok for o in outcomes)
        assert "feature/pushed" not in [h.name for h in remote_repo.heads]

    def test_prune(self, git_repo, add_worktree):
        import shutil

        path = add_worktree("T1-feat", "feature/T1-feat")
        shutil.rmtree(path)
        service = WorktreeService(git_repo.working_dir, Config())
        assert service.find_worktree(path).is_orphaned

        assert service.prune().ok
        assert service.find_worktree(path) is None

    def test_prune_keeps_locked_entry_until_unlocked(self, git_repo, add_worktree):
        import shutil

        path = add_worktree("T1-feat", "feature/T1-feat")
        git_repo.git.worktree("lock", "--reason", "agent", path)
        shutil.rmtree(path)
        service = WorktreeService(git_repo.working_dir, Config())

        assert service.prune().ok
        assert service.find_worktree(path).is_locked

        assert service.unlock_worktree(path).ok
        assert service.prune().ok
        assert service.find_worktree(path) is None

    def test_unlock_unknown_worktree_fails(self, git_repo, temp_dir):
        service = WorktreeService(git_repo.working_dir, Config())
        outcome = service.unlock_worktree(str(temp_dir / "nowhere"))
        assert outcome.status is ExitStatus.INPUT_ERROR
        assert outcome.remediation

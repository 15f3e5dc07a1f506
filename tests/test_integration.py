"""End-to-end branch lifecycle against real temporary git repositories."""

import pytest

from swarm_engine.core.config import EngineConfig
from swarm_engine.core.errors import BranchExistsError, GitStepError, MergeError, SwarmGitError
from swarm_engine.core.manager import SwarmManager
from swarm_engine.core.store import InMemorySwarmStore

from conftest import commit_file, git, make_diamond_swarm, requires_git

pytestmark = requires_git


@pytest.fixture
def swarm_setup(git_repo):
    base = git(git_repo, "rev-parse", "HEAD")
    store = InMemorySwarmStore({"sw-1": make_diamond_swarm(base_commit=base)})
    config = EngineConfig(repo_root=git_repo, fetch_retry_delay=0, lock_timeout=5.0)
    return git_repo, SwarmManager(config, store), base


def make_worker_branch(repo, base, branch, content, name="shared.txt"):
    """Commit ``content`` to ``name`` on a new branch from base, then go back to main."""
    git(repo, "checkout", "-q", "-b", branch, base)
    commit_file(repo, name, content, f"Work on {branch}")
    git(repo, "checkout", "-q", "main")


def refs(repo):
    return git(repo, "for-each-ref", "--format=%(refname)")


class TestLifecycle:
    """Create, merge, land and clean up on a real repository."""

    def test_create_integration_branch(self, swarm_setup):
        repo, manager, base = swarm_setup

        report = manager.create_integration_branch("sw-1")

        assert manager.branch_exists("swarm/sw-1")
        assert manager.current_branch() == "swarm/sw-1"
        assert git(repo, "rev-parse", "swarm/sw-1") == base
        # No origin configured: the push is attempted and ignored.
        assert not report.outcome("push").succeeded
        assert isinstance(report.outcome("push").error, SwarmGitError)

    def test_create_twice_changes_nothing(self, swarm_setup):
        repo, manager, _ = swarm_setup
        manager.create_integration_branch("sw-1")
        before = refs(repo)

        with pytest.raises(BranchExistsError):
            manager.create_integration_branch("sw-1")

        assert refs(repo) == before

    def test_merge_workers(self, swarm_setup):
        repo, manager, base = swarm_setup
        make_worker_branch(repo, base, "sw-1/Toast/A", "a\n", name="a.txt")
        make_worker_branch(repo, base, "sw-1/Nux/B", "b\n", name="b.txt")
        manager.create_integration_branch("sw-1")
        git(repo, "checkout", "-q", "main")

        report = manager.merge_to_integration("sw-1", "sw-1/Toast/A")
        manager.merge_to_integration("sw-1", "sw-1/Nux/B")

        assert manager.current_branch() == "swarm/sw-1"
        assert (repo / "a.txt").exists() and (repo / "b.txt").exists()
        assert git(repo, "log", "-1", "--format=%s") == "Merge sw-1/Nux/B into swarm/sw-1"
        # The worker branch is not on any remote; the local merge still happens.
        assert not report.outcome("fetch").succeeded

    def test_conflict_detected_from_unmerged_paths(self, swarm_setup):
        repo, manager, base = swarm_setup
        make_worker_branch(repo, base, "sw-1/Toast/A", "from toast\n")
        make_worker_branch(repo, base, "sw-1/Nux/B", "from nux\n")
        manager.create_integration_branch("sw-1")
        manager.merge_to_integration("sw-1", "sw-1/Toast/A")

        with pytest.raises(SwarmGitError) as exc_info:
            manager.merge_to_integration("sw-1", "sw-1/Nux/B")

        assert exc_info.value.command == "merge"
        assert exc_info.value.conflicting_files == ["shared.txt"]
        assert manager.conflicting_files() == ["shared.txt"]

        manager.abort_merge()
        assert manager.conflicting_files() == []
        assert (repo / "shared.txt").read_text() == "from toast\n"

    def test_missing_worker_branch_is_merge_error(self, swarm_setup):
        _, manager, _ = swarm_setup
        manager.create_integration_branch("sw-1")

        with pytest.raises(MergeError, match="^merging: "):
            manager.merge_to_integration("sw-1", "sw-1/Ghost/Z")

    def test_land_without_remote_fails_on_push(self, swarm_setup):
        repo, manager, base = swarm_setup
        make_worker_branch(repo, base, "sw-1/Toast/A", "a\n", name="a.txt")
        manager.create_integration_branch("sw-1")
        manager.merge_to_integration("sw-1", "sw-1/Toast/A")

        with pytest.raises(GitStepError, match="^pushing: "):
            manager.land_to_main("sw-1")

        # The merge itself happened locally.
        assert manager.current_branch() == "main"
        assert (repo / "a.txt").exists()

    def test_land_with_remote(self, swarm_setup, git_remote):
        repo, manager, base = swarm_setup
        make_worker_branch(repo, base, "sw-1/Toast/A", "a\n", name="a.txt")
        manager.create_integration_branch("sw-1")
        manager.merge_to_integration("sw-1", "sw-1/Toast/A")

        report = manager.land_to_main("sw-1")

        assert report.outcome("fetch").succeeded
        assert git(repo, "rev-parse", "main") == git(git_remote, "rev-parse", "main")
        assert git(git_remote, "log", "-1", "--format=%s", "main") == "Land swarm sw-1"

    def test_create_pushes_to_remote(self, swarm_setup, git_remote):
        _, manager, base = swarm_setup

        report = manager.create_integration_branch("sw-1")

        assert report.outcome("push").succeeded
        assert git(git_remote, "rev-parse", "swarm/sw-1") == base

    def test_cleanup_retains_local_failure(self, swarm_setup):
        """Deleting the checked-out integration branch fails; workers are still deleted."""
        repo, manager, base = swarm_setup
        make_worker_branch(repo, base, "sw-1/Toast/A", "a\n", name="a.txt")
        make_worker_branch(repo, base, "sw-1/Nux/B", "b\n", name="b.txt")
        manager.create_integration_branch("sw-1")

        with pytest.raises(SwarmGitError) as exc_info:
            manager.cleanup_branches("sw-1")

        assert exc_info.value.command == "branch"
        assert manager.branch_exists("swarm/sw-1")
        assert not manager.branch_exists("sw-1/Toast/A")
        assert not manager.branch_exists("sw-1/Nux/B")
        report = exc_info.value.report
        assert report.outcome("delete sw-1/Toast/A").succeeded
        assert not report.outcome("delete sw-1/Slit/C").succeeded

    def test_cleanup_after_landing(self, swarm_setup, git_remote):
        repo, manager, base = swarm_setup
        make_worker_branch(repo, base, "sw-1/Toast/A", "a\n", name="a.txt")
        manager.create_integration_branch("sw-1")
        manager.merge_to_integration("sw-1", "sw-1/Toast/A")
        manager.land_to_main("sw-1")

        manager.cleanup_branches("sw-1")

        assert not manager.branch_exists("swarm/sw-1")
        assert not manager.branch_exists("sw-1/Toast/A")
        assert "refs/heads/swarm/sw-1" not in refs(git_remote)
        assert (repo / ".swarm-locks" / "sw-1.lock").exists()

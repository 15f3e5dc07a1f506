"""
Shared pytest fixtures for swarm_engine tests.
"""

import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from swarm_engine.core.config import EngineConfig
from swarm_engine.core.errors import SwarmGitError
from swarm_engine.core.manager import SwarmManager
from swarm_engine.core.models import Swarm, Task
from swarm_engine.core.store import InMemorySwarmStore


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def make_diamond_swarm(
    swarm_id: str = "sw-1",
    completed: Tuple[str, ...] = (),
    base_commit: str = "base123",
) -> Swarm:
    """A -> (B, C) -> D, with the given tasks marked completed."""
    deps = {"A": [], "B": ["A"], "C": ["A"], "D": ["B", "C"]}
    workers = {"A": "Toast", "B": "Nux", "C": "Slit", "D": "Toast"}
    return Swarm(
        swarm_id=swarm_id,
        base_commit=base_commit,
        integration_branch=f"swarm/{swarm_id}",
        target_branch="main",
        tasks=[
            Task(
                task_id=task_id,
                title=f"Task {task_id}",
                dependencies=task_deps,
                status="completed" if task_id in completed else "pending",
                worker=workers[task_id],
            )
            for task_id, task_deps in deps.items()
        ],
    )


class FakeGitRunner:
    """
    Scripted stand-in for GitRunner.

    Records every call. ``failures`` maps an exact argument tuple to the error
    it raises, or to a list of errors consumed one per call. ``branches`` backs
    show-ref; ``head`` backs rev-parse; ``unmerged`` backs the unmerged-path diff.
    """

    def __init__(self, branches=None, head: str = "main"):
        self.calls: List[Tuple[str, ...]] = []
        self.failures: Dict[Tuple[str, ...], object] = {}
        self.branches = set(branches or [])
        self.head = head
        self.unmerged: List[str] = []
        self.unmerged_error: Optional[SwarmGitError] = None

    def fail(self, *args: str, stderr: str = "error", times: Optional[int] = None) -> None:
        error = SwarmGitError(args[0], stderr=stderr, returncode=1)
        self.failures[tuple(args)] = [error] * times if times else error

    def run(self, *args: str) -> str:
        self.calls.append(tuple(args))

        scripted = self.failures.get(tuple(args))
        if isinstance(scripted, list):
            if scripted:
                raise scripted.pop(0)
        elif scripted is not None:
            raise scripted

        if args[:3] == ("show-ref", "--verify", "--quiet"):
            if args[3][len("refs/heads/"):] not in self.branches:
                raise SwarmGitError("show-ref", returncode=1)
            return ""
        if args[:2] == ("rev-parse", "--abbrev-ref"):
            return self.head
        if args[:3] == ("diff", "--name-only", "--diff-filter=U"):
            if self.unmerged_error is not None:
                raise self.unmerged_error
            return "\n".join(self.unmerged)
        if args[0] == "checkout":
            if args[1] == "-b":
                self.branches.add(args[2])
                self.head = args[2]
            else:
                self.head = args[1]
        return ""

    def branch_exists(self, branch: str) -> bool:
        try:
            self.run("show-ref", "--verify", "--quiet", f"refs/heads/{branch}")
            return True
        except SwarmGitError:
            return False

    def current_branch(self) -> str:
        return self.run("rev-parse", "--abbrev-ref", "HEAD")

    def unmerged_files(self) -> List[str]:
        output = self.run("diff", "--name-only", "--diff-filter=U")
        return [line for line in output.split("\n") if line.strip()]

    def mutations(self) -> List[Tuple[str, ...]]:
        read_only = {"show-ref", "rev-parse", "diff"}
        return [call for call in self.calls if call[0] not in read_only]


@pytest.fixture
def fake_git():
    return FakeGitRunner()


@pytest.fixture
def store():
    return InMemorySwarmStore({"sw-1": make_diamond_swarm()})


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def manager(tmp_path, store, fake_git, sleeps):
    """Manager over a fake git runner; sleeps are recorded, not taken."""
    config = EngineConfig(repo_root=tmp_path, lock_timeout=5.0)
    return SwarmManager(config, store, git_runner=fake_git, sleep=sleeps.append)


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    (repo / name).write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path):
    """A repository on ``main`` with one commit and no remote."""
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.email", "swarm@example.com")
    git(repo, "config", "user.name", "Swarm Test")
    git(repo, "config", "commit.gpgsign", "false")
    (repo / ".gitignore").write_text(".swarm-locks/\n")
    git(repo, "add", ".gitignore")
    commit_file(repo, "shared.txt", "line one\n", "Initial commit")
    return repo


@pytest.fixture
def git_remote(tmp_path, git_repo):
    """A bare ``origin`` for git_repo with main pushed."""
    remote = tmp_path / "origin.git"
    git(tmp_path, "init", "-q", "--bare", str(remote))
    git(git_repo, "remote", "add", "origin", str(remote))
    git(git_repo, "push", "-q", "-u", "origin", "main")
    return remote

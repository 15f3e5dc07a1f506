"""Git command execution pinned to a repository root."""

from pathlib import Path
from typing import List, Optional

import git
from git.exc import GitCommandNotFound

from ..core.errors import SwarmGitError
from .helpers import setup_logging

logger = setup_logging(__name__)


def command_name(args: List[str]) -> str:
    """
    Pick the git subcommand out of an argument list.

    Args:
        args: Arguments passed to git

    Returns:
        First argument that is not an option, else the first argument
    """
    for arg in args:
        if not arg.startswith("-"):
            return arg
    return args[0] if args else ""


class GitRunner:
    """
    Runs git commands against a fixed repository root.

    Failures come back as SwarmGitError carrying the raw stdout and stderr.
    The runner never inspects stderr to decide what a failure means; that
    belongs to the callers.
    """

    def __init__(self, repo_root: Path, timeout: Optional[float] = None):
        """
        Initialize the runner.

        Args:
            repo_root: Working directory for every command
            timeout: Seconds after which a running command is killed
        """
        self.repo_root = Path(repo_root)
        self.timeout = timeout
        self._git = git.Git(str(self.repo_root))

    def run(self, *args: str) -> str:
        """
        Execute ``git <args>``.

        Args:
            *args: Arguments passed to git

        Returns:
            Captured stdout, stripped

        Raises:
            SwarmGitError: The command exited nonzero or could not be started
        """
        argv = [str(a) for a in args]
        name = command_name(argv)
        logger.debug(f"git {' '.join(argv)}")

        try:
            status, stdout, stderr = self._git.execute(
                [self._git.GIT_PYTHON_GIT_EXECUTABLE, *argv],
                with_extended_output=True,
                with_exceptions=False,
                kill_after_timeout=self.timeout,
            )
        except GitCommandNotFound as e:
            raise SwarmGitError(name, cause=e) from e

        if status != 0:
            raise SwarmGitError(
                name,
                stdout=(stdout or "").strip(),
                stderr=(stderr or "").strip(),
                returncode=status,
            )

        return (stdout or "").strip()

    def branch_exists(self, branch: str) -> bool:
        """
        Check if a branch exists locally.

        Args:
            branch: Branch name to check

        Returns:
            True if ``refs/heads/<branch>`` exists
        """
        try:
            self.run("show-ref", "--verify", "--quiet", f"refs/heads/{branch}")
            return True
        except SwarmGitError:
            return False

    def current_branch(self) -> str:
        """Return the abbreviated name of HEAD."""
        return self.run("rev-parse", "--abbrev-ref", "HEAD")

    def unmerged_files(self) -> List[str]:
        """
        List paths left in unmerged state by a failed merge.

        Returns:
            Paths reported by ``diff --name-only --diff-filter=U``
        """
        output = self.run("diff", "--name-only", "--diff-filter=U")
        return [line for line in output.split('\n') if line.strip()]

"""
Exception taxonomy for the swarm engine.

Git failures carry raw command output and no interpretation; callers (human or
agent) read ``stdout``/``stderr`` directly. Merge conflicts are not a separate
type: the original ``SwarmGitError`` is re-raised with ``conflicting_files``
populated.
"""

from typing import List, Optional


class SwarmError(Exception):
    """Base class for every error raised by the engine."""

    report = None


class BranchExistsError(SwarmError):
    """The branch about to be created already exists locally."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"branch already exists: {branch}")


class BranchNotFoundError(SwarmError):
    """A branch the operation requires does not exist locally."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"branch not found: {branch}")


class NotOnIntegrationBranchError(SwarmError):
    """The checkout is not on the swarm's integration branch."""

    def __init__(self, expected: str, current: str):
        self.expected = expected
        self.current = current
        super().__init__(f"not on integration branch: expected {expected}, on {current}")


class SwarmNotFoundError(SwarmError):
    """The dependency store has no swarm with the requested id."""

    def __init__(self, swarm_id: str):
        self.swarm_id = swarm_id
        super().__init__(f"swarm not found: {swarm_id}")


class LockError(SwarmError):
    """A swarm lock could not be acquired."""


class SwarmGitError(SwarmError):
    """Raw output of a failed git command."""

    def __init__(
        self,
        command: str,
        stdout: str = "",
        stderr: str = "",
        returncode: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        self.command = command
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        self.cause = cause
        self.conflicting_files: List[str] = []
        super().__init__(command, stdout, stderr)

    def __str__(self) -> str:
        if self.stderr:
            return f"{self.command}: {self.stderr}"
        if self.cause is not None:
            return f"{self.command}: {self.cause}"
        return f"{self.command}: exit status {self.returncode}"

    @property
    def is_conflict(self) -> bool:
        return bool(self.conflicting_files)


class GitStepError(SwarmError):
    """A mandatory lifecycle step failed; wraps the underlying git failure."""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"{step}: {cause}")


class MergeError(GitStepError):
    """A merge failed without leaving unmerged paths behind."""

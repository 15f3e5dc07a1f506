"""
Swarm and task models.

A Swarm is a read-through view of the dependency store: it is rebuilt on
every operation and never written back by the engine.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import BaseModel, Field


def worker_branch_name(swarm_id: str, worker: str, task_id: str) -> str:
    """
    Derive the branch a worker uses for one task.

    Args:
        swarm_id: Swarm identifier
        worker: Worker name
        task_id: Task identifier

    Returns:
        ``"<swarm>/<worker>/<task>"``
    """
    for label, value in (("swarm id", swarm_id), ("worker", worker), ("task id", task_id)):
        if not value:
            raise ValueError(f"{label} must not be empty")
        if "/" in value:
            raise ValueError(f"{label} must not contain '/': {value}")
    return f"{swarm_id}/{worker}/{task_id}"


def integration_branch_name(swarm_id: str) -> str:
    """Default integration branch for a swarm whose record names none."""
    return f"swarm/{swarm_id}"


class Task(BaseModel):
    """Individual task model."""

    task_id: str
    title: str = ""
    dependencies: List[str] = Field(default_factory=list)
    status: str = Field(default="pending", pattern="^(pending|in_progress|completed|blocked)$")
    worker: Optional[str] = None
    branch: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status == "completed"


class Swarm(BaseModel):
    """A swarm as loaded from the dependency store."""

    swarm_id: str
    base_commit: str
    integration_branch: str
    target_branch: str = "main"
    tasks: List[Task] = Field(default_factory=list)

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.task_id == task_id:
                return task
        return None

    def worker_branch(self, task: Task) -> Optional[str]:
        """Branch assigned to a task: explicit, derived from its worker, or none."""
        if task.branch:
            return task.branch
        if task.worker:
            return worker_branch_name(self.swarm_id, task.worker, task.task_id)
        return None

    def worker_branches(self) -> List[str]:
        branches = []
        for task in self.tasks:
            branch = self.worker_branch(task)
            if branch and branch not in branches:
                branches.append(branch)
        return branches


class SwarmStatus(BaseModel):
    """Progress snapshot of a swarm."""

    swarm_id: str
    total_tasks: int
    completed: List[str]
    ready: List[str]
    blocked: List[str]
    waves: List[List[str]]
    max_parallelism: int

    @property
    def progress(self) -> float:
        if not self.total_tasks:
            return 100.0
        return 100.0 * len(self.completed) / self.total_tasks


@dataclass
class StepOutcome:
    """One best-effort step: attempted, and either succeeded or failed and was ignored."""

    step: str
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class OperationReport:
    """Best-effort steps taken by one lifecycle operation."""

    operation: str
    swarm_id: Optional[str] = None
    steps: List[StepOutcome] = field(default_factory=list)

    def record(self, step: str, error: Optional[BaseException] = None) -> StepOutcome:
        outcome = StepOutcome(step, error)
        self.steps.append(outcome)
        return outcome

    @property
    def ignored_failures(self) -> List[StepOutcome]:
        return [s for s in self.steps if not s.succeeded]

    def outcome(self, step: str) -> Optional[StepOutcome]:
        for s in self.steps:
            if s.step == step:
                return s
        return None

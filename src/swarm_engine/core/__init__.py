"""Core coordination components for the swarm engine."""

from .config import EngineConfig
from .errors import (
    BranchExistsError,
    BranchNotFoundError,
    GitStepError,
    LockError,
    MergeError,
    NotOnIntegrationBranchError,
    SwarmError,
    SwarmGitError,
    SwarmNotFoundError,
)
from .manager import SwarmManager
from .models import OperationReport, StepOutcome, Swarm, SwarmStatus, Task, worker_branch_name
from .scheduler import WaveScheduler
from .store import InMemorySwarmStore, JsonSwarmStore, SwarmStore

__all__ = [
    "EngineConfig",
    "BranchExistsError",
    "BranchNotFoundError",
    "GitStepError",
    "LockError",
    "MergeError",
    "NotOnIntegrationBranchError",
    "SwarmError",
    "SwarmGitError",
    "SwarmNotFoundError",
    "SwarmManager",
    "OperationReport",
    "StepOutcome",
    "Swarm",
    "SwarmStatus",
    "Task",
    "worker_branch_name",
    "WaveScheduler",
    "InMemorySwarmStore",
    "JsonSwarmStore",
    "SwarmStore",
]

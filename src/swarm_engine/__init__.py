"""
Swarm Engine

Coordinates a fleet of worker agents executing a dependency-ordered set of
tasks against one shared git repository: ready-front scheduling, integration
branch lifecycle under per-swarm locks, and retry of transient git failures.
"""

__version__ = "1.0.0"

from .core.config import EngineConfig
from .core.manager import SwarmManager
from .core.scheduler import WaveScheduler
from .core.store import InMemorySwarmStore, JsonSwarmStore, SwarmStore

__all__ = [
    "EngineConfig",
    "SwarmManager",
    "WaveScheduler",
    "InMemorySwarmStore",
    "JsonSwarmStore",
    "SwarmStore",
]

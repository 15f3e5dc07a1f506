"""
Dependency store adapters.

The store is the source of truth for tasks, dependency edges and completion.
The engine only reads it through ``load_swarm``.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..utils.helpers import ensure_directory, setup_logging
from ..utils.locking import validate_swarm_id
from .errors import SwarmNotFoundError
from .models import Swarm, integration_branch_name

logger = setup_logging(__name__)


class SwarmStore(ABC):
    """Read interface the engine requires from the dependency store."""

    @abstractmethod
    def load_swarm(self, swarm_id: str) -> Swarm:
        """
        Load a swarm.

        Raises:
            SwarmNotFoundError: The store has no such swarm
        """

    def list_swarms(self) -> List[str]:
        return []


class InMemorySwarmStore(SwarmStore):
    """Store backed by a dict; used for embedding and tests."""

    def __init__(self, swarms: Optional[Dict[str, Swarm]] = None):
        self._swarms: Dict[str, Swarm] = dict(swarms or {})

    def add(self, swarm: Swarm) -> None:
        self._swarms[swarm.swarm_id] = swarm

    def load_swarm(self, swarm_id: str) -> Swarm:
        try:
            # Callers get a copy; the stored record stays untouched.
            return self._swarms[swarm_id].model_copy(deep=True)
        except KeyError:
            raise SwarmNotFoundError(swarm_id) from None

    def list_swarms(self) -> List[str]:
        return sorted(self._swarms)


class JsonSwarmStore(SwarmStore):
    """
    Store reading one JSON document per swarm from ``<store_dir>/<id>.json``.

    Document shape::

        {
          "swarm_id": "sw-1",
          "base_commit": "3f2a...",
          "integration_branch": "swarm/sw-1",
          "target_branch": "main",
          "tasks": [{"task_id": "A", "dependencies": [], "status": "completed"}]
        }

    ``integration_branch`` defaults to ``swarm/<id>`` and ``swarm_id`` to the
    file name.
    """

    def __init__(self, store_dir: Path):
        self.store_dir = Path(store_dir)

    def swarm_file(self, swarm_id: str) -> Path:
        return self.store_dir / f"{validate_swarm_id(swarm_id)}.json"

    def load_swarm(self, swarm_id: str) -> Swarm:
        swarm_file = self.swarm_file(swarm_id)
        if not swarm_file.exists():
            raise SwarmNotFoundError(swarm_id)

        with open(swarm_file, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid swarm file {swarm_file}: {e}")

        if not isinstance(data, dict):
            raise ValueError(f"Invalid swarm file {swarm_file}: expected a JSON object")

        data.setdefault("swarm_id", swarm_id)
        data.setdefault("integration_branch", integration_branch_name(swarm_id))

        try:
            return Swarm(**data)
        except ValidationError as e:
            raise ValueError(f"Invalid swarm file {swarm_file}: {e}")

    def save_swarm(self, swarm: Swarm) -> Path:
        ensure_directory(self.store_dir)
        swarm_file = self.swarm_file(swarm.swarm_id)
        with open(swarm_file, 'w') as f:
            json.dump(swarm.model_dump(), f, indent=2, default=str)

        logger.debug(f"Swarm {swarm.swarm_id} saved to: {swarm_file}")
        return swarm_file

    def list_swarms(self) -> List[str]:
        if not self.store_dir.exists():
            return []
        return sorted(p.stem for p in self.store_dir.glob("*.json"))

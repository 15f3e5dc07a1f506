"""
Dependency/wave scheduling over a loaded swarm.

The dependency graph is assumed acyclic; the store guarantees it. Waves are
for reporting and validation only, they do not order execution.
"""

from typing import Dict, List

import networkx as nx

from ..utils.helpers import setup_logging
from .models import Swarm, SwarmStatus, Task

logger = setup_logging(__name__)


class WaveScheduler:
    """
    Computes the ready front, blocked set and waves of a swarm.

    Stateless: every method works from the Swarm it is given.
    """

    def build_graph(self, swarm: Swarm) -> nx.DiGraph:
        """
        Build the dependency graph.

        Edges run from a dependency to the task that needs it. Dependencies
        on ids outside the swarm are left out of the graph.

        Args:
            swarm: Loaded swarm

        Returns:
            Directed graph with one node per task
        """
        graph = nx.DiGraph()
        known = set()
        for task in swarm.tasks:
            graph.add_node(task.task_id)
            known.add(task.task_id)

        for task in swarm.tasks:
            for dep in task.dependencies:
                if dep in known:
                    graph.add_edge(dep, task.task_id)
                else:
                    logger.debug(f"Task {task.task_id} depends on unknown task {dep}")

        return graph

    def _completion(self, swarm: Swarm) -> Dict[str, bool]:
        return {task.task_id: task.completed for task in swarm.tasks}

    def blockers(self, swarm: Swarm, task_id: str) -> List[str]:
        """
        Dependencies still holding a task back.

        A dependency the swarm does not contain counts as incomplete.
        """
        task = swarm.get_task(task_id)
        if task is None:
            raise KeyError(task_id)

        done = self._completion(swarm)
        return [dep for dep in task.dependencies if not done.get(dep, False)]

    def ready_tasks(self, swarm: Swarm) -> List[Task]:
        """Incomplete tasks whose every dependency is complete."""
        done = self._completion(swarm)
        return [
            task for task in swarm.tasks
            if not task.completed and all(done.get(dep, False) for dep in task.dependencies)
        ]

    def blocked_tasks(self, swarm: Swarm) -> List[Task]:
        """Incomplete tasks that are not ready."""
        ready = {task.task_id for task in self.ready_tasks(swarm)}
        return [
            task for task in swarm.tasks
            if not task.completed and task.task_id not in ready
        ]

    def is_complete(self, swarm: Swarm) -> bool:
        return all(task.completed for task in swarm.tasks)

    def waves(self, swarm: Swarm) -> List[List[Task]]:
        """
        Group tasks by topological depth.

        Args:
            swarm: Loaded swarm

        Returns:
            Waves in dependency order; tasks inside a wave follow the swarm's
            task order

        Raises:
            ValueError: The dependency graph has a cycle
        """
        graph = self.build_graph(swarm)
        position = {task.task_id: i for i, task in enumerate(swarm.tasks)}

        try:
            generations = list(nx.topological_generations(graph))
        except nx.NetworkXUnfeasible:
            raise ValueError(f"Dependency graph of swarm {swarm.swarm_id} contains a cycle")

        waves = []
        for generation in generations:
            ids = sorted(generation, key=position.__getitem__)
            waves.append([swarm.get_task(task_id) for task_id in ids])
        return waves

    def summarize(self, swarm: Swarm) -> SwarmStatus:
        waves = [[task.task_id for task in wave] for wave in self.waves(swarm)]

        return SwarmStatus(
            swarm_id=swarm.swarm_id,
            total_tasks=len(swarm.tasks),
            completed=[task.task_id for task in swarm.tasks if task.completed],
            ready=[task.task_id for task in self.ready_tasks(swarm)],
            blocked=[task.task_id for task in self.blocked_tasks(swarm)],
            waves=waves,
            max_parallelism=max((len(wave) for wave in waves), default=0),
        )

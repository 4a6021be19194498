"""Stage DAG — explicit declared dependencies, topological execution order.

The graph is validated once at construction (Kahn's algorithm).  A build
target resolves to its transitive prerequisites plus itself, ordered so
every stage runs after everything it depends on; ties keep the declared
ordinal order.
"""

from __future__ import annotations

import heapq
from collections import deque

from bootforge.core.errors import CyclicDependencyError, UnknownTargetError
from bootforge.models.stages import StageDefinition


class StageGraph:
    """Directed acyclic graph of pipeline stages."""

    def __init__(self, stage_definitions: list[StageDefinition]) -> None:
        self._stages: dict[str, StageDefinition] = {
            sd.stage_id: sd for sd in stage_definitions
        }
        # Forward edges: stage_id -> prerequisite stage_ids
        self._prerequisites: dict[str, list[str]] = {
            sd.stage_id: list(sd.prerequisites) for sd in stage_definitions
        }
        # Reverse edges: stage_id -> stages that depend on it
        self._dependents: dict[str, list[str]] = {
            sd.stage_id: [] for sd in stage_definitions
        }
        for sd in stage_definitions:
            for prereq in sd.prerequisites:
                if prereq not in self._stages:
                    raise UnknownTargetError(prereq, list(self._stages))
                self._dependents[prereq].append(sd.stage_id)

        self._order = self._topological_order()

    def _ordinal(self, stage_id: str) -> float:
        return self._stages[stage_id].ordinal

    def _topological_order(self) -> list[str]:
        in_degree = {sid: len(prereqs) for sid, prereqs in self._prerequisites.items()}
        # Ready stages are taken lowest ordinal first.
        ready = [
            (self._ordinal(sid), sid) for sid, deg in in_degree.items() if deg == 0
        ]
        heapq.heapify(ready)
        result: list[str] = []
        while ready:
            _, node = heapq.heappop(ready)
            result.append(node)
            for dep in self._dependents[node]:
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    heapq.heappush(ready, (self._ordinal(dep), dep))

        if len(result) != len(self._stages):
            raise CyclicDependencyError(
                f"Stage graph has a cycle. "
                f"Ordered {len(result)}/{len(self._stages)} stages."
            )
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def stage_ids(self) -> list[str]:
        """All stage_ids in topological order."""
        return list(self._order)

    def resolve(self, *targets: str) -> list[str]:
        """Transitive closure of *targets*, in execution order."""
        needed: set[str] = set()
        queue = deque(targets)
        while queue:
            node = queue.popleft()
            if node not in self._stages:
                raise UnknownTargetError(node, self.stage_ids)
            if node in needed:
                continue
            needed.add(node)
            queue.extend(self._prerequisites[node])
        return [sid for sid in self._order if sid in needed]

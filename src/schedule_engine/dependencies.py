from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

from .schedule_models import DependencyEdge, ScheduleError, Task

logger = logging.getLogger(__name__)

DEPENDENCY_TYPE_LABELS: dict[str, str] = {
    "FS": "Finish-to-Start (FS)",
    "SS": "Start-to-Start (SS)",
    "FF": "Finish-to-Finish (FF)",
    "SF": "Start-to-Finish (SF)",
}

MISSING_PREDECESSOR = "Please select a predecessor task"
SELF_DEPENDENCY = "A task cannot depend on itself"
CIRCULAR_DEPENDENCY = "This would create a circular dependency"


class DependencyError(ScheduleError):
    """Raised when a proposed dependency edge would break the acyclic graph."""


@dataclass(frozen=True)
class Cycle:
    """Represents a detected cycle path for error reporting."""

    path: list[str]

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return " -> ".join(self.path)


@dataclass(frozen=True)
class DependencyCheck:
    """Outcome of validating a proposed edge before it is submitted."""

    allowed: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


def predecessors_index(edges: Iterable[DependencyEdge]) -> dict[str, list[str]]:
    """successor id -> predecessor ids, in edge order."""

    index: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        index[edge.successor_task_id].append(edge.predecessor_task_id)
    return dict(index)


def would_create_cycle(
    edges: Iterable[DependencyEdge],
    proposed_predecessor_id: str,
    target_task_id: str,
) -> bool:
    """
    Whether adding "target depends on proposed predecessor" closes a cycle.

    Walks backward from the proposed predecessor through existing
    predecessor links; reaching the target means the target already
    (transitively) precedes the predecessor. A self-dependency is always a
    cycle. The visited set bounds the walk even on already-cyclic input.
    """

    if proposed_predecessor_id == target_task_id:
        return True

    predecessors = predecessors_index(edges)
    visited: set[str] = set()
    stack = [proposed_predecessor_id]
    while stack:
        current = stack.pop()
        if current == target_task_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        for pred in predecessors.get(current, ()):
            if pred not in visited:
                stack.append(pred)
    return False


def check_new_dependency(
    edges: Iterable[DependencyEdge],
    proposed_predecessor_id: str | None,
    target_task_id: str,
) -> DependencyCheck:
    """Validate a proposed edge and explain a rejection in user-facing terms."""

    if not proposed_predecessor_id:
        return DependencyCheck(False, MISSING_PREDECESSOR)
    if proposed_predecessor_id == target_task_id:
        return DependencyCheck(False, SELF_DEPENDENCY)
    if would_create_cycle(edges, proposed_predecessor_id, target_task_id):
        logger.info(
            "Rejected dependency %s -> %s: would create a cycle", proposed_predecessor_id, target_task_id
        )
        return DependencyCheck(False, CIRCULAR_DEPENDENCY)
    return DependencyCheck(True)


def require_acyclic(
    edges: Iterable[DependencyEdge],
    proposed_predecessor_id: str | None,
    target_task_id: str,
) -> None:
    """Raise DependencyError instead of returning a rejected check."""

    check = check_new_dependency(edges, proposed_predecessor_id, target_task_id)
    if not check.allowed:
        raise DependencyError(f"{proposed_predecessor_id} -> {target_task_id}: {check.reason}")


def find_cycle(edges: Iterable[DependencyEdge]) -> Cycle | None:
    """
    Return one existing cycle in the edge set (predecessor order), or None.

    Iterative three-colour DFS over successor links; nodes are visited in
    first-seen order so the reported path is deterministic.
    """

    successors: dict[str, list[str]] = defaultdict(list)
    order: list[str] = []
    seen: set[str] = set()
    for edge in edges:
        successors[edge.predecessor_task_id].append(edge.successor_task_id)
        for node in (edge.predecessor_task_id, edge.successor_task_id):
            if node not in seen:
                seen.add(node)
                order.append(node)

    state: dict[str, str] = {}
    for root in order:
        if state.get(root) is not None:
            continue
        path: list[str] = [root]
        positions: dict[str, int] = {root: 0}
        state[root] = "visiting"
        iterators = [iter(successors.get(root, ()))]
        while iterators:
            node = next(iterators[-1], None)
            if node is None:
                done = path.pop()
                positions.pop(done, None)
                state[done] = "done"
                iterators.pop()
                continue
            node_state = state.get(node)
            if node_state == "visiting":
                return Cycle(path[positions[node] :] + [node])
            if node_state is None:
                state[node] = "visiting"
                positions[node] = len(path)
                path.append(node)
                iterators.append(iter(successors.get(node, ())))
    return None


def edges_for_task(edges: Iterable[DependencyEdge], task_id: str) -> list[DependencyEdge]:
    """Edges where `task_id` is the successor, i.e. its predecessors."""
    return [edge for edge in edges if edge.successor_task_id == task_id]


def available_predecessors(tasks: Iterable[Task], task_id: str) -> list[Task]:
    """Every task other than `task_id`; cycle checks happen on selection."""
    return [task for task in tasks if task.id != task_id]


def describe_dependency(edge: DependencyEdge) -> str:
    """Human label such as 'Finish-to-Start (FS) Lag: +2 days'."""

    label = DEPENDENCY_TYPE_LABELS.get(edge.dependency_type, edge.dependency_type)
    if edge.lag_days:
        sign = "+" if edge.lag_days > 0 else ""
        label = f"{label} Lag: {sign}{edge.lag_days} days"
    return label

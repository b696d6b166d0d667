from __future__ import annotations

import logging
from typing import Collection, Iterable, List

from .schedule_models import FlatTask, Task

logger = logging.getLogger(__name__)


def flatten(tasks: Iterable[Task], collapsed: Collection[str] | None = None) -> list[FlatTask]:
    """
    Convert a flat parent-pointer list into display order with nesting levels.

    Tasks are emitted pre-order: each parent precedes all of its descendants
    and level equals the number of ancestors. Roots and siblings keep their
    input order. A task whose parent is absent from `tasks` is a root.
    Descendants of ids in `collapsed` are omitted; the collapsed row itself
    still reports `has_children`.
    """

    task_list = list(tasks)
    collapsed = set(collapsed or ())
    index_by_id: dict[str, int] = {}
    for idx, task in enumerate(task_list):
        index_by_id.setdefault(task.id, idx)

    children: dict[int, list[int]] = {idx: [] for idx in range(len(task_list))}
    roots: list[int] = []
    for idx, task in enumerate(task_list):
        parent_idx = index_by_id.get(task.parent_task_id) if task.parent_task_id else None
        if parent_idx is None or parent_idx == idx:
            if task.parent_task_id and parent_idx is None:
                logger.debug("Task %s references missing parent %s; treating as root", task.id, task.parent_task_id)
            roots.append(idx)
        else:
            children[parent_idx].append(idx)

    rows: List[FlatTask] = []
    visited: set[int] = set()
    _walk(roots, task_list, children, collapsed, rows, visited)

    if len(visited) < len(task_list):
        # Only reachable when parent pointers form a loop; surface those rows as roots.
        stranded = [idx for idx in range(len(task_list)) if idx not in visited]
        logger.warning(
            "Parent cycle detected among tasks %s; flattening them as roots",
            [task_list[idx].id for idx in stranded],
        )
        for idx in stranded:
            if idx not in visited:
                _walk([idx], task_list, children, collapsed, rows, visited)

    return rows


def _walk(
    roots: list[int],
    task_list: list[Task],
    children: dict[int, list[int]],
    collapsed: set[str],
    rows: List[FlatTask],
    visited: set[int],
) -> None:
    """Iterative pre-order walk; siblings are pushed reversed so they pop in input order."""

    stack: list[tuple[int, int]] = [(idx, 0) for idx in reversed(roots)]
    while stack:
        idx, level = stack.pop()
        if idx in visited:
            continue
        visited.add(idx)
        task = task_list[idx]
        kids = children[idx]
        rows.append(FlatTask(task=task, level=level, has_children=bool(kids)))
        if task.id in collapsed:
            _mark_hidden(kids, children, visited)
            continue
        for child_idx in reversed(kids):
            stack.append((child_idx, level + 1))


def _mark_hidden(indices: list[int], children: dict[int, list[int]], visited: set[int]) -> None:
    pending = list(indices)
    while pending:
        idx = pending.pop()
        if idx in visited:
            continue
        visited.add(idx)
        pending.extend(children[idx])


def children_index(tasks: Iterable[Task]) -> dict[str, list[str]]:
    """Map each task id to its direct child ids (input order); dangling parents are ignored."""

    task_list = list(tasks)
    known = {task.id for task in task_list}
    index: dict[str, list[str]] = {task.id: [] for task in task_list}
    for task in task_list:
        if task.parent_task_id and task.parent_task_id in known and task.parent_task_id != task.id:
            index[task.parent_task_id].append(task.id)
    return index


def descendant_ids(tasks: Iterable[Task], task_id: str) -> set[str]:
    """All ids below `task_id` in the hierarchy (excluding `task_id` itself)."""

    index = children_index(tasks)
    found: set[str] = set()
    pending = list(index.get(task_id, []))
    while pending:
        current = pending.pop()
        if current in found or current == task_id:
            continue
        found.add(current)
        pending.extend(index.get(current, []))
    return found


def parent_candidates(tasks: Iterable[Task], task_id: str | None) -> list[Task]:
    """
    Tasks that may be chosen as the parent of `task_id`.

    Excludes the task itself and its descendants so that re-parenting keeps
    the hierarchy a forest. For a task that does not exist yet (None), every
    task is a candidate.
    """

    task_list = list(tasks)
    if task_id is None:
        return task_list
    excluded = descendant_ids(task_list, task_id) | {task_id}
    return [task for task in task_list if task.id not in excluded]

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .schedule_models import CriticalPathEntry, Task


class CriticalPathIndex:
    """Membership lookup over an externally computed critical path."""

    def __init__(self, entries: Iterable[CriticalPathEntry] = ()) -> None:
        self._floats: dict[str, float] = {}
        for entry in entries:
            # Keep the smallest float when the source lists a task twice.
            current = self._floats.get(entry.task_id)
            if current is None or entry.total_float < current:
                self._floats[entry.task_id] = entry.total_float

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._floats

    def __len__(self) -> int:
        return len(self._floats)

    def is_critical(self, task_id: str) -> bool:
        return task_id in self._floats

    def total_float(self, task_id: str) -> float | None:
        return self._floats.get(task_id)

    @property
    def task_ids(self) -> frozenset[str]:
        return frozenset(self._floats)


def is_critical(critical_path: Iterable[CriticalPathEntry], task_id: str) -> bool:
    """True when any entry of `critical_path` names `task_id`."""
    return any(entry.task_id == task_id for entry in critical_path)


@dataclass(frozen=True)
class StatusFilters:
    """
    Visibility toggles for the chart and task list.

    `critical`, `in_progress`, `completed` and `not_started` are independent:
    turning one off hides every task in that category, and a task must pass
    all of them. `critical_only` narrows to critical tasks; `search` matches
    name or description case-insensitively.
    """

    critical: bool = True
    in_progress: bool = True
    completed: bool = True
    not_started: bool = True
    critical_only: bool = False
    search: str | None = None

    def status_enabled(self, status: str) -> bool:
        if status == "in_progress":
            return self.in_progress
        if status == "completed":
            return self.completed
        return self.not_started

    def matches(self, task: Task, critical: bool) -> bool:
        if critical and not self.critical:
            return False
        if self.critical_only and not critical:
            return False
        if not self.status_enabled(task.status):
            return False
        return _matches_search(task, self.search)


ALL_VISIBLE = StatusFilters()


def _matches_search(task: Task, query: str | None) -> bool:
    if not query:
        return True
    needle = query.lower()
    if needle in task.name.lower():
        return True
    return bool(task.description) and needle in task.description.lower()


def filter_tasks(
    tasks: Iterable[Task],
    critical_path: CriticalPathIndex,
    filters: StatusFilters = ALL_VISIBLE,
) -> list[Task]:
    """Tasks passing `filters`, input order preserved."""
    return [task for task in tasks if filters.matches(task, critical_path.is_critical(task.id))]

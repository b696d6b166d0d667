from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterable

from .critical_path import CriticalPathIndex
from .schedule_models import Task

UPCOMING_HORIZON_DAYS = 14
AT_RISK_THRESHOLD_DAYS = 7
LIST_LIMIT = 5


@dataclass(frozen=True)
class ScheduleSummary:
    total_tasks: int
    not_started_tasks: int
    in_progress_tasks: int
    completed_tasks: int
    critical_path_tasks: int
    completion_percentage: int


@dataclass(frozen=True)
class ScheduleHealth:
    status: str
    label: str


def task_completion_percentage(task: Task) -> float:
    """Reported completion, else 100 / 50 / 0 from the status."""

    if task.actual_completion_percentage is not None:
        return float(task.actual_completion_percentage)
    if task.status == "completed":
        return 100.0
    if task.status == "in_progress":
        return 50.0
    return 0.0


def schedule_summary(tasks: Iterable[Task], critical_path: CriticalPathIndex) -> ScheduleSummary:
    task_list = list(tasks)
    counts = {"not_started": 0, "in_progress": 0, "completed": 0}
    for task in task_list:
        counts[task.status] = counts.get(task.status, 0) + 1
    critical_count = sum(1 for task in task_list if critical_path.is_critical(task.id))
    total = len(task_list)
    completion = round(counts["completed"] * 100 / total) if total else 0
    return ScheduleSummary(
        total_tasks=total,
        not_started_tasks=counts["not_started"],
        in_progress_tasks=counts["in_progress"],
        completed_tasks=counts["completed"],
        critical_path_tasks=critical_count,
        completion_percentage=completion,
    )


def schedule_health(summary: ScheduleSummary) -> ScheduleHealth:
    total = summary.total_tasks or 1
    critical_share = summary.critical_path_tasks * 100 / total
    if summary.completion_percentage >= 90:
        return ScheduleHealth("excellent", "On Track")
    if summary.completion_percentage >= 70:
        return ScheduleHealth("good", "Good Progress")
    if critical_share > 30:
        return ScheduleHealth("warning", "Needs Attention")
    return ScheduleHealth("caution", "Monitor Closely")


def upcoming_tasks(
    tasks: Iterable[Task],
    today: dt.date,
    horizon_days: int = UPCOMING_HORIZON_DAYS,
    limit: int = LIST_LIMIT,
) -> list[Task]:
    """Not-started tasks beginning between today and the horizon, earliest first."""

    horizon = today + dt.timedelta(days=horizon_days)
    candidates = [
        task for task in tasks if task.status == "not_started" and today <= task.planned_start_date <= horizon
    ]
    candidates.sort(key=lambda task: task.planned_start_date)
    return candidates[:limit]


def at_risk_tasks(
    tasks: Iterable[Task],
    critical_path: CriticalPathIndex,
    today: dt.date,
    threshold_days: int = AT_RISK_THRESHOLD_DAYS,
    limit: int = LIST_LIMIT,
) -> list[Task]:
    """Unfinished critical tasks due in fewer than `threshold_days` (overdue included)."""

    risky = [
        task
        for task in tasks
        if critical_path.is_critical(task.id)
        and task.status != "completed"
        and (task.end_date - today).days < threshold_days
    ]
    return risky[:limit]

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Literal


TaskStatus = Literal["not_started", "in_progress", "completed"]
"""Linear task progression; no transition guard is enforced at this layer."""

DependencyType = Literal["FS", "SS", "FF", "SF"]
"""Finish-to-Start, Start-to-Start, Finish-to-Finish, Start-to-Finish."""

Granularity = Literal["day", "week", "month"]
"""Timeline display unit."""

TASK_STATUSES: tuple[str, ...] = ("not_started", "in_progress", "completed")
DEPENDENCY_TYPES: tuple[str, ...] = ("FS", "SS", "FF", "SF")
GRANULARITIES: tuple[str, ...] = ("day", "week", "month")


class ScheduleError(Exception):
    """Base class for errors raised by the schedule engine."""


@dataclass(frozen=True)
class Task:
    """A schedulable task as delivered by the store."""

    id: str
    name: str
    planned_start_date: dt.date
    planned_end_date: dt.date | None = None
    status: TaskStatus = "not_started"
    wbs_code: str | None = None
    parent_task_id: str | None = None
    duration_hint_days: int | None = None
    description: str | None = None
    actual_completion_percentage: float | None = None

    @property
    def end_date(self) -> dt.date:
        """Inclusive finish; explicit end date wins over the duration hint."""
        if self.planned_end_date is not None:
            return self.planned_end_date
        if self.duration_hint_days is not None and self.duration_hint_days > 0:
            return self.planned_start_date + dt.timedelta(days=self.duration_hint_days - 1)
        return self.planned_start_date

    @property
    def duration_days(self) -> int:
        """Inclusive day count between start and end (absolute for inverted ranges)."""
        return abs((self.end_date - self.planned_start_date).days) + 1

    @property
    def has_inverted_dates(self) -> bool:
        return self.end_date < self.planned_start_date

    @property
    def span_start(self) -> dt.date:
        """Earlier boundary of the task interval."""
        return min(self.planned_start_date, self.end_date)

    @property
    def span_finish(self) -> dt.date:
        """Later (inclusive) boundary of the task interval."""
        return max(self.planned_start_date, self.end_date)


@dataclass(frozen=True)
class DependencyEdge:
    """Successor depends on predecessor."""

    predecessor_task_id: str
    successor_task_id: str
    dependency_type: DependencyType = "FS"
    lag_days: int = 0
    id: str | None = None


@dataclass(frozen=True)
class CriticalPathEntry:
    """Externally computed critical (or near-critical) task with its slack."""

    task_id: str
    total_float: float = 0.0


@dataclass(frozen=True)
class FlatTask:
    """A task placed in the flattened display order."""

    task: Task
    level: int
    has_children: bool = False


@dataclass(frozen=True)
class TimelinePeriod:
    """One header cell of the timeline."""

    label: str
    period_start_date: dt.date
    span_days: int

    @property
    def period_end_date(self) -> dt.date:
        """Inclusive last day covered by the period."""
        return self.period_start_date + dt.timedelta(days=self.span_days - 1)


@dataclass(frozen=True)
class TimelineWindow:
    """
    Visible date range of the chart.

    `window_start` is normalized to 00:00:00.000 and `window_end` to
    23:59:59.999 so that date-only comparisons against either bound are
    inclusive.
    """

    granularity: Granularity
    window_start: dt.datetime
    window_end: dt.datetime
    periods: tuple[TimelinePeriod, ...]
    total_days: int

    @property
    def start_date(self) -> dt.date:
        return self.window_start.date()

    @property
    def end_date(self) -> dt.date:
        return self.window_end.date()

    def contains(self, day: dt.date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class PositionedTask:
    """A flattened task mapped onto the pixel timeline."""

    task: Task
    level: int
    row_index: int
    left_offset_px: float
    width_px: float
    visible_start: dt.date
    visible_end: dt.date
    clipped_at_start: bool = False
    clipped_at_end: bool = False
    is_critical: bool = False
    has_children: bool = False


@dataclass(frozen=True)
class ScheduleSnapshot:
    """One atomic delivery of tasks, edges and critical path from the store."""

    tasks: tuple[Task, ...] = ()
    dependencies: tuple[DependencyEdge, ...] = ()
    critical_path: tuple[CriticalPathEntry, ...] = ()
    name: str | None = None

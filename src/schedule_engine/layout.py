from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass

from .clock import Clock, SystemClock
from .critical_path import ALL_VISIBLE, CriticalPathIndex, StatusFilters, filter_tasks
from .geometry import map_to_geometry
from .hierarchy import flatten
from .schedule_models import DependencyEdge, Granularity, PositionedTask, ScheduleSnapshot, TimelineWindow
from .settings import DEFAULT_SETTINGS, LayoutSettings
from .timeline import compute_window

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GanttLayout:
    """Everything a renderer needs for one pass over a snapshot."""

    window: TimelineWindow
    rows: tuple[PositionedTask, ...]
    dependencies: tuple[DependencyEdge, ...]
    pixels_per_day: float
    today_marker_offset_px: float | None
    viewport_width_px: float
    timeline_width_px: float
    settings: LayoutSettings
    title: str = ""

    def row_for(self, task_id: str) -> PositionedTask | None:
        for row in self.rows:
            if row.task.id == task_id:
                return row
        return None


def build_gantt_layout(
    snapshot: ScheduleSnapshot,
    granularity: Granularity = "week",
    pivot_date: dt.date | None = None,
    viewport_width_px: float = 1200,
    filters: StatusFilters = ALL_VISIBLE,
    collapsed: frozenset[str] | set[str] | None = None,
    window: TimelineWindow | None = None,
    clock: Clock | None = None,
    settings: LayoutSettings = DEFAULT_SETTINGS,
) -> GanttLayout:
    """
    Filter, flatten, window and position a snapshot in a single pure pass.

    `viewport_width_px` is the full chart width; the label column is taken
    off before scaling. Passing `window` overrides the granularity/pivot
    window (e.g. a range chosen by the store). Only edges whose endpoints
    are both laid out are kept.
    """

    clock = clock or SystemClock()
    critical = CriticalPathIndex(snapshot.critical_path)

    visible_tasks = filter_tasks(snapshot.tasks, critical, filters)
    flat = flatten(visible_tasks, collapsed=collapsed)
    if window is None:
        window = compute_window(granularity, pivot_date, clock=clock)

    timeline_width = viewport_width_px - settings.label_column_width_px
    geometry = map_to_geometry(
        flat,
        window,
        timeline_width,
        critical_task_ids=critical.task_ids,
        clock=clock,
        settings=settings,
    )

    on_screen = {row.task.id for row in geometry.positioned}
    edges = tuple(
        edge
        for edge in snapshot.dependencies
        if edge.predecessor_task_id in on_screen and edge.successor_task_id in on_screen
    )
    logger.debug(
        "Layout: %d tasks, %d visible after filters, %d positioned, %d edges",
        len(snapshot.tasks),
        len(visible_tasks),
        len(geometry.positioned),
        len(edges),
    )
    return GanttLayout(
        window=window,
        rows=geometry.positioned,
        dependencies=edges,
        pixels_per_day=geometry.pixels_per_day,
        today_marker_offset_px=geometry.today_marker_offset_px,
        viewport_width_px=settings.label_column_width_px + geometry.timeline_width_px,
        timeline_width_px=geometry.timeline_width_px,
        settings=settings,
        title=snapshot.name or "",
    )

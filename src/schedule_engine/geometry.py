from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Collection, Iterable, List

from .clock import Clock, resolve_today
from .schedule_models import FlatTask, PositionedTask, TimelineWindow
from .settings import DEFAULT_SETTINGS, LayoutSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeometryLayout:
    """Positioned rows plus the scale they were mapped with."""

    positioned: tuple[PositionedTask, ...]
    pixels_per_day: float
    today_marker_offset_px: float | None
    timeline_width_px: float


def pixels_per_day(total_days: int, available_width_px: float, settings: LayoutSettings = DEFAULT_SETTINGS) -> float:
    """
    Horizontal scale for the timeline.

    The available width is floored at `settings.min_available_width_px` and
    the day count at 1, so the result is always finite and positive.
    """

    width = max(float(available_width_px or 0.0), settings.min_available_width_px, 1.0)
    return width / max(1, total_days)


def map_to_geometry(
    flattened_tasks: Iterable[FlatTask],
    window: TimelineWindow,
    viewport_width_px: float,
    critical_task_ids: Collection[str] = (),
    clock: Clock | None = None,
    settings: LayoutSettings = DEFAULT_SETTINGS,
) -> GeometryLayout:
    """
    Map flattened tasks onto the window's pixel scale.

    `viewport_width_px` is the width available to the timeline (any label
    column already subtracted). Tasks that do not overlap the window are
    dropped; the rest are clipped to it and flagged on the truncated edge.
    """

    rows = list(flattened_tasks)
    ppd = pixels_per_day(window.total_days, viewport_width_px, settings)
    critical = set(critical_task_ids)

    positioned: List[PositionedTask] = []
    for row in rows:
        placed = position_task(row, window, ppd, len(positioned), row.task.id in critical, settings)
        if placed is not None:
            positioned.append(placed)

    today_offset = today_marker_offset(window, ppd, resolve_today(clock))
    logger.debug(
        "Mapped %d of %d rows at %.3f px/day (today marker: %s)",
        len(positioned),
        len(rows),
        ppd,
        today_offset,
    )
    return GeometryLayout(
        positioned=tuple(positioned),
        pixels_per_day=ppd,
        today_marker_offset_px=today_offset,
        timeline_width_px=ppd * window.total_days,
    )


def position_task(
    row: FlatTask,
    window: TimelineWindow,
    ppd: float,
    row_index: int,
    is_critical: bool = False,
    settings: LayoutSettings = DEFAULT_SETTINGS,
) -> PositionedTask | None:
    """Clip one task to the window; None when it lies entirely outside."""

    task = row.task
    if task.has_inverted_dates:
        logger.warning(
            "Task %s starts %s after it ends %s; laying out the normalized interval",
            task.id,
            task.planned_start_date,
            task.end_date,
        )
    task_start = task.span_start
    task_finish = task.span_finish
    window_start = window.start_date
    window_end = window.end_date

    if task_finish < window_start or task_start > window_end:
        return None

    visible_start = max(task_start, window_start)
    visible_end = min(task_finish, window_end)

    days_from_start = max(0, (visible_start - window_start).days)
    # Inclusive day count; a same-day task still occupies one day.
    visible_days = max(1, (visible_end - visible_start).days + 1)

    return PositionedTask(
        task=task,
        level=row.level,
        row_index=row_index,
        left_offset_px=days_from_start * ppd,
        width_px=max(settings.min_bar_width_px, visible_days * ppd),
        visible_start=visible_start,
        visible_end=visible_end,
        clipped_at_start=task_start < window_start,
        clipped_at_end=task_finish > window_end,
        is_critical=is_critical,
        has_children=row.has_children,
    )


def today_marker_offset(window: TimelineWindow, ppd: float, today: dt.date) -> float | None:
    """Offset of today's column, or None when today is outside the window."""

    if not window.contains(today):
        return None
    return (today - window.start_date).days * ppd

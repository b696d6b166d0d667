import datetime as dt
import math

import pytest

from schedule_engine.clock import FixedClock
from schedule_engine.geometry import map_to_geometry, pixels_per_day, today_marker_offset
from schedule_engine.hierarchy import flatten
from schedule_engine.schedule_models import Task
from schedule_engine.settings import LayoutSettings
from schedule_engine.timeline import compute_window, window_for_range

CLOCK = FixedClock(dt.date(2024, 1, 3))


def _task(task_id, start, end, status="not_started"):
    return Task(id=task_id, name=task_id, planned_start_date=start, planned_end_date=end, status=status)


def _day_window():
    # 2023-12-19 .. 2024-01-18, 31 days
    return compute_window("day", dt.date(2024, 1, 3))


def test_task_fully_inside_window_is_not_clipped():
    window = _day_window()
    rows = flatten([_task("1", dt.date(2024, 1, 1), dt.date(2024, 1, 5))])

    layout = map_to_geometry(rows, window, 310, clock=CLOCK)

    assert layout.pixels_per_day == pytest.approx(10.0)
    (bar,) = layout.positioned
    assert bar.left_offset_px == pytest.approx(130.0)
    assert bar.width_px == pytest.approx(5 * layout.pixels_per_day)
    assert bar.clipped_at_start is False
    assert bar.clipped_at_end is False


def test_task_spanning_window_is_clipped_on_both_edges():
    window = window_for_range(dt.date(2024, 3, 1), dt.date(2024, 3, 31), "month")
    rows = flatten([_task("1", dt.date(2024, 1, 1), dt.date(2024, 6, 1))])

    layout = map_to_geometry(rows, window, 620, clock=CLOCK)

    (bar,) = layout.positioned
    assert bar.visible_start == dt.date(2024, 3, 1)
    assert bar.visible_end == dt.date(2024, 3, 31)
    assert bar.clipped_at_start is True
    assert bar.clipped_at_end is True
    assert bar.left_offset_px == 0
    assert bar.width_px == pytest.approx(31 * layout.pixels_per_day)


def test_task_clipped_at_start_only():
    window = _day_window()
    rows = flatten([_task("1", dt.date(2023, 12, 1), dt.date(2023, 12, 20))])

    (bar,) = map_to_geometry(rows, window, 310, clock=CLOCK).positioned

    assert bar.clipped_at_start is True
    assert bar.clipped_at_end is False
    assert bar.left_offset_px == 0
    assert bar.width_px == pytest.approx(20.0)


def test_tasks_outside_window_are_excluded():
    window = _day_window()
    rows = flatten(
        [
            _task("before", dt.date(2023, 11, 1), dt.date(2023, 12, 18)),
            _task("inside", dt.date(2024, 1, 2), dt.date(2024, 1, 2)),
            _task("after", dt.date(2024, 1, 19), dt.date(2024, 2, 1)),
        ]
    )

    layout = map_to_geometry(rows, window, 310, clock=CLOCK)

    assert [bar.task.id for bar in layout.positioned] == ["inside"]
    assert layout.positioned[0].row_index == 0


def test_task_touching_window_edge_is_kept():
    window = _day_window()
    rows = flatten([_task("edge", dt.date(2023, 12, 10), dt.date(2023, 12, 19))])

    (bar,) = map_to_geometry(rows, window, 310, clock=CLOCK).positioned

    assert bar.width_px == pytest.approx(10.0)
    assert bar.clipped_at_start is True


def test_same_day_task_is_one_day_wide():
    window = _day_window()
    rows = flatten([_task("1", dt.date(2024, 1, 3), dt.date(2024, 1, 3))])

    (bar,) = map_to_geometry(rows, window, 310, clock=CLOCK).positioned

    assert bar.width_px == pytest.approx(10.0)


def test_minimum_bar_width_applies_on_dense_scale():
    window = compute_window("month", dt.date(2024, 3, 15))
    rows = flatten([_task("1", dt.date(2024, 3, 3), dt.date(2024, 3, 3))])
    settings = LayoutSettings(min_bar_width_px=6)

    (bar,) = map_to_geometry(rows, window, 213, clock=CLOCK, settings=settings).positioned

    assert bar.width_px == pytest.approx(6.0)


@pytest.mark.parametrize("width", [0, -50, None])
def test_degenerate_viewport_width_uses_floor(width):
    ppd = pixels_per_day(31, width)

    assert math.isfinite(ppd)
    assert ppd == pytest.approx(100 / 31)


def test_zero_width_layout_is_finite():
    window = _day_window()
    rows = flatten([_task("1", dt.date(2024, 1, 1), dt.date(2024, 1, 5))])

    (bar,) = map_to_geometry(rows, window, 0, clock=CLOCK).positioned

    assert math.isfinite(bar.left_offset_px)
    assert math.isfinite(bar.width_px)
    assert bar.width_px > 0


def test_today_marker_inside_and_outside_window():
    window = _day_window()

    layout = map_to_geometry([], window, 310, clock=CLOCK)
    assert layout.today_marker_offset_px == pytest.approx(150.0)

    assert today_marker_offset(window, 10.0, dt.date(2024, 2, 1)) is None


def test_critical_flag_is_applied():
    window = _day_window()
    rows = flatten([_task("1", dt.date(2024, 1, 1), dt.date(2024, 1, 2)), _task("2", dt.date(2024, 1, 1), dt.date(2024, 1, 2))])

    layout = map_to_geometry(rows, window, 310, critical_task_ids={"2"}, clock=CLOCK)

    assert [bar.is_critical for bar in layout.positioned] == [False, True]


def test_inverted_task_dates_use_absolute_span():
    window = _day_window()
    task = _task("1", dt.date(2024, 1, 5), dt.date(2024, 1, 1))
    rows = flatten([task])

    (bar,) = map_to_geometry(rows, window, 310, clock=CLOCK).positioned

    assert task.duration_days == 5
    assert bar.visible_start == dt.date(2024, 1, 1)
    assert bar.width_px == pytest.approx(50.0)


def test_geometry_is_recomputed_identically():
    window = _day_window()
    rows = flatten([_task("1", dt.date(2024, 1, 1), dt.date(2024, 1, 5))])

    first = map_to_geometry(rows, window, 310, clock=CLOCK)
    second = map_to_geometry(rows, window, 310, clock=CLOCK)

    assert first == second

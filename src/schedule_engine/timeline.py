from __future__ import annotations

import calendar
import datetime as dt
import logging
import math
from typing import List

from .clock import Clock, resolve_today
from .schedule_models import GRANULARITIES, Granularity, TimelinePeriod, TimelineWindow

logger = logging.getLogger(__name__)

DAY_WINDOW_HALF_SPAN_DAYS = 15  # 31-day window
WEEK_WINDOW_HALF_SPAN_DAYS = 56  # 16 weeks
MONTH_WINDOW_HALF_SPAN_MONTHS = 3
WEEK_LENGTH_DAYS = 7

_ONE_DAY = dt.timedelta(days=1)
_END_OF_DAY = dt.time(23, 59, 59, 999000)


def compute_window(
    granularity: Granularity,
    pivot_date: dt.date | None = None,
    clock: Clock | None = None,
) -> TimelineWindow:
    """
    Compute the visible window around `pivot_date` and partition it into periods.

    - day: 15 days either side of the pivot.
    - week: 56 days either side; weeks start on the pivot's weekday.
    - month: three whole calendar months either side of the pivot's month.

    `pivot_date` defaults to the clock's today.
    """

    _require_granularity(granularity)
    pivot = pivot_date if pivot_date is not None else resolve_today(clock)
    if isinstance(pivot, dt.datetime):
        pivot = pivot.date()

    if granularity == "day":
        start = pivot - dt.timedelta(days=DAY_WINDOW_HALF_SPAN_DAYS)
        end = pivot + dt.timedelta(days=DAY_WINDOW_HALF_SPAN_DAYS)
    elif granularity == "week":
        start = pivot - dt.timedelta(days=WEEK_WINDOW_HALF_SPAN_DAYS)
        end = pivot + dt.timedelta(days=WEEK_WINDOW_HALF_SPAN_DAYS)
    else:
        start = add_months(pivot.replace(day=1), -MONTH_WINDOW_HALF_SPAN_MONTHS)
        end = last_day_of_month(add_months(pivot.replace(day=1), MONTH_WINDOW_HALF_SPAN_MONTHS))

    window = window_for_range(start, end, granularity)
    logger.debug(
        "Computed %s window around %s: %s..%s (%d days, %d periods)",
        granularity,
        pivot,
        window.start_date,
        window.end_date,
        window.total_days,
        len(window.periods),
    )
    return window


def window_for_range(start: dt.date, end: dt.date, granularity: Granularity) -> TimelineWindow:
    """
    Build a window over an explicit inclusive date range.

    An end before the start collapses the window to the start day.
    """

    _require_granularity(granularity)
    if end < start:
        logger.warning("Window end %s precedes start %s; collapsing to one day", end, start)
        end = start

    window_start = start_of_day(start)
    window_end = end_of_day(end)
    periods = tuple(partition(start, end, granularity))
    return TimelineWindow(
        granularity=granularity,
        window_start=window_start,
        window_end=window_end,
        periods=periods,
        total_days=total_days(window_start, window_end),
    )


def partition(start: dt.date, end: dt.date, granularity: Granularity) -> list[TimelinePeriod]:
    """Split the inclusive range into contiguous, non-overlapping periods."""

    if granularity == "day":
        return _day_periods(start, end)
    if granularity == "week":
        return _week_periods(start, end)
    return _month_periods(start, end)


def _day_periods(start: dt.date, end: dt.date) -> list[TimelinePeriod]:
    periods: List[TimelinePeriod] = []
    current = start
    while current <= end:
        periods.append(TimelinePeriod(label=_short_label(current), period_start_date=current, span_days=1))
        current += _ONE_DAY
    return periods


def _week_periods(start: dt.date, end: dt.date) -> list[TimelinePeriod]:
    periods: List[TimelinePeriod] = []
    current = start
    while current <= end:
        block_end = min(current + dt.timedelta(days=WEEK_LENGTH_DAYS - 1), end)
        span = (block_end - current).days + 1
        periods.append(TimelinePeriod(label=_short_label(current), period_start_date=current, span_days=span))
        current = block_end + _ONE_DAY
    return periods


def _month_periods(start: dt.date, end: dt.date) -> list[TimelinePeriod]:
    # First and last periods carry only the days that fall inside the window.
    periods: List[TimelinePeriod] = []
    current = start
    while current <= end:
        block_end = min(last_day_of_month(current), end)
        span = (block_end - current).days + 1
        periods.append(TimelinePeriod(label=f"{current:%b %Y}", period_start_date=current, span_days=span))
        current = block_end + _ONE_DAY
    return periods


def _short_label(day: dt.date) -> str:
    return f"{day:%b} {day.day}"


def total_days(window_start: dt.datetime, window_end: dt.datetime) -> int:
    """ceil((end - start) / 1 day), never below 1."""
    return max(1, math.ceil((window_end - window_start) / _ONE_DAY))


def start_of_day(day: dt.date) -> dt.datetime:
    return dt.datetime.combine(day, dt.time.min)


def end_of_day(day: dt.date) -> dt.datetime:
    return dt.datetime.combine(day, _END_OF_DAY)


def add_months(day: dt.date, months: int) -> dt.date:
    """Shift by whole calendar months, clamping the day to the target month's length."""

    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last = calendar.monthrange(year, month)[1]
    return dt.date(year, month, min(day.day, last))


def last_day_of_month(day: dt.date) -> dt.date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def _require_granularity(granularity: str) -> None:
    if granularity not in GRANULARITIES:
        raise ValueError(f"unknown granularity '{granularity}', expected one of {list(GRANULARITIES)}")

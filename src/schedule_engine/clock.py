from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    """Source of "today" for window defaults and the today marker."""

    def today(self) -> dt.date: ...


class SystemClock:
    """Wall-clock implementation used when the caller does not inject one."""

    def today(self) -> dt.date:
        return dt.date.today()


@dataclass(frozen=True)
class FixedClock:
    """Clock pinned to a single day; layouts computed with it are reproducible."""

    day: dt.date

    def today(self) -> dt.date:
        return self.day


def resolve_today(clock: Clock | None) -> dt.date:
    return (clock or SystemClock()).today()

"""
Report periods: last full week, last full month and the week in progress.

All boundaries are computed in the diary timezone. Weeks run Monday 00:00 to
Sunday 23:59:59.999999.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from mapdiary.reports.models import ReportType
from mapdiary.utils.dates import local_timezone

IN_PROGRESS_SUFFIX = "-IP"
IN_PROGRESS_DISPLAY = " (진행 중)"


@dataclass(frozen=True)
class ReportPeriod:
    type: ReportType
    period_id: str
    display: str
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999999)


def _monday_of(moment: datetime) -> datetime:
    return _start_of_day(moment - timedelta(days=moment.weekday()))


def week_period_id(monday: datetime) -> str:
    """ISO year and week, e.g. ``2024-W33``."""
    iso = monday.isocalendar()
    return f"{iso.year}-W{iso.week:02d}"


def week_display(monday: datetime) -> str:
    """``2024년 8월 3주차``; the week of month is ceil(day / 7) of the Monday."""
    return f"{monday.year}년 {monday.month}월 {math.ceil(monday.day / 7)}주차"


def last_week(now: datetime) -> ReportPeriod:
    local = now.astimezone(local_timezone())
    monday = _monday_of(local - timedelta(days=7))
    sunday = _end_of_day(monday + timedelta(days=6))
    return ReportPeriod(
        type=ReportType.WEEKLY,
        period_id=week_period_id(monday),
        display=week_display(monday),
        start=monday,
        end=sunday,
    )


def last_month(now: datetime) -> ReportPeriod:
    local = now.astimezone(local_timezone())
    this_month_first = _start_of_day(local.replace(day=1))
    last_day = this_month_first - timedelta(microseconds=1)
    first = _start_of_day(last_day.replace(day=1))
    return ReportPeriod(
        type=ReportType.MONTHLY,
        period_id=f"{first.year}-M{first.month:02d}",
        display=f"{first.year}년 {first.month}월 리포트",
        start=first,
        end=last_day,
    )


def current_week(now: datetime) -> ReportPeriod:
    """The running week, Monday 00:00 up to ``now``."""
    local = now.astimezone(local_timezone())
    monday = _monday_of(local)
    return ReportPeriod(
        type=ReportType.WEEKLY,
        period_id=week_period_id(monday) + IN_PROGRESS_SUFFIX,
        display=week_display(monday) + IN_PROGRESS_DISPLAY,
        start=monday,
        end=local,
    )


def due_periods(now: datetime) -> list[ReportPeriod]:
    return [last_week(now), last_month(now), current_week(now)]

"""Tests for report period boundaries and identifiers."""

from __future__ import annotations

from datetime import UTC, datetime

from mapdiary.reports.models import ReportType
from mapdiary.reports.periods import (
    current_week,
    due_periods,
    last_month,
    last_week,
    week_display,
    week_period_id,
)

# Thursday
NOW = datetime(2024, 8, 15, 12, 0, tzinfo=UTC)


def test_last_week_runs_monday_to_sunday():
    period = last_week(NOW)

    assert period.type == ReportType.WEEKLY
    assert period.period_id == "2024-W32"
    assert period.display == "2024년 8월 1주차"
    assert period.start == datetime(2024, 8, 5, tzinfo=UTC)
    assert period.end == datetime(2024, 8, 11, 23, 59, 59, 999999, tzinfo=UTC)


def test_last_week_contains_its_boundaries_only():
    period = last_week(NOW)

    assert period.contains(datetime(2024, 8, 5, 0, 0, tzinfo=UTC))
    assert period.contains(datetime(2024, 8, 11, 23, 59, 59, tzinfo=UTC))
    assert not period.contains(datetime(2024, 8, 12, 0, 0, tzinfo=UTC))
    assert not period.contains(datetime(2024, 8, 4, 23, 59, tzinfo=UTC))


def test_last_month():
    period = last_month(NOW)

    assert period.type == ReportType.MONTHLY
    assert period.period_id == "2024-M07"
    assert period.display == "2024년 7월 리포트"
    assert period.start == datetime(2024, 7, 1, tzinfo=UTC)
    assert period.end == datetime(2024, 7, 31, 23, 59, 59, 999999, tzinfo=UTC)


def test_last_month_in_january_is_previous_december():
    assert last_month(datetime(2024, 1, 10, tzinfo=UTC)).period_id == "2023-M12"


def test_current_week_is_marked_in_progress():
    period = current_week(NOW)

    assert period.period_id == "2024-W33-IP"
    assert period.display == "2024년 8월 2주차 (진행 중)"
    assert period.start == datetime(2024, 8, 12, tzinfo=UTC)
    assert period.end == NOW


def test_week_id_uses_iso_year_at_year_boundary():
    monday = datetime(2024, 12, 30, tzinfo=UTC)

    assert week_period_id(monday) == "2025-W01"
    assert week_display(monday) == "2024년 12월 5주차"


def test_periods_follow_diary_timezone(monkeypatch):
    monkeypatch.setenv("MAPDIARY_TIMEZONE", "Asia/Seoul")
    # Sunday evening in UTC is already Monday morning in Seoul.
    now = datetime(2024, 8, 18, 20, 0, tzinfo=UTC)

    period = current_week(now)

    assert period.period_id == "2024-W34-IP"
    assert period.start.utcoffset().total_seconds() == 9 * 3600


def test_due_periods_order():
    assert [p.period_id for p in due_periods(NOW)] == ["2024-W32", "2024-M07", "2024-W33-IP"]
